"""
This module defines the `ChatService` for doctor/patient messaging.

It provides functionalities for:
- Seeding the chat store with the demo conversation on first use.
- Retrieving the ordered history between two participants.
- Appending messages and deleting a conversation.
- Listing the conversation partners of a user, most recent first.
- Formatting message timestamps for display.

All messages live under a single `LocalStorage` key as a JSON array. Every operation
reads the whole array, filters or modifies it, and writes it back inside a storage
transaction.
"""
# medisync/chat.py

from __future__ import annotations

from datetime import date, datetime
import itertools
import json
import logging
from typing import Callable, Dict, List, Optional

from medisync.mock_data import now_ms, seed_chat_messages
from medisync.models import StoredChatMessage
from medisync.storage import LocalStorage

logger = logging.getLogger(__name__)

STORAGE_KEY = 'medisync_chat_history'


class ChatService:
    """Stores and queries doctor/patient conversations."""

    def __init__(self, storage: LocalStorage, clock: Callable[[], int] = now_ms) -> None:
        """Initializes the ChatService.

        Args:
            storage: The `LocalStorage` holding the chat history key.
            clock: Returns the current time in epoch milliseconds.
        """
        self._storage = storage
        self._clock = clock
        self._sequence = itertools.count()

    def _read_all(self) -> List[Dict]:
        """Returns every stored message dict; unreadable data counts as an empty history."""
        raw = self._storage.get_item(STORAGE_KEY)
        if not raw:
            return []
        try:
            messages = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Chat history under %s is not valid JSON; treating it as empty.", STORAGE_KEY)
            return []
        if not isinstance(messages, list):
            return []
        return [m for m in messages if isinstance(m, dict)]

    def _write_all(self, messages: List[Dict]) -> None:
        self._storage.set_item(STORAGE_KEY, json.dumps(messages))

    def _ensure_initialized(self) -> None:
        """Seeds the demo conversation if the store has never been written."""
        if self._storage.get_item(STORAGE_KEY) is None:
            self._write_all(seed_chat_messages(self._clock()))

    def get_chat_history(self, user_a: str, user_b: str) -> List[StoredChatMessage]:
        """Retrieves the messages exchanged between two users.

        Args:
            user_a: One participant's id.
            user_b: The other participant's id.

        Returns:
            The pair's messages in either direction, sorted ascending by timestamp.
        """
        with self._storage.transaction():
            self._ensure_initialized()
            messages = [StoredChatMessage.from_dict(m) for m in self._read_all()]
        thread = [m for m in messages if m.involves(user_a, user_b)]
        thread.sort(key=lambda m: m.timestamp)
        return thread

    def send_message(
        self,
        sender_id: str,
        receiver_id: str,
        sender_role: str,
        text: str
    ) -> Optional[StoredChatMessage]:
        """Appends one message to the store.

        Args:
            sender_id: The sender's user id.
            receiver_id: The receiver's user id.
            sender_role: 'doctor' or 'patient'.
            text: The message body.

        Returns:
            The stored message, or None if the text was empty.
        """
        body = (text or "").strip()
        if not body:
            return None

        timestamp = self._clock()
        message = StoredChatMessage(
            id=f"{timestamp}-{next(self._sequence)}",
            sender_id=sender_id,
            receiver_id=receiver_id,
            sender_role=sender_role,
            text=body,
            timestamp=timestamp,
        )
        with self._storage.transaction():
            self._ensure_initialized()
            messages = self._read_all()
            messages.append(message.to_dict())
            self._write_all(messages)
        return message

    def delete_chat_history(self, user_a: str, user_b: str) -> int:
        """Removes every message exchanged between two users.

        Messages involving any other pair are kept.

        Returns:
            The number of messages removed.
        """
        with self._storage.transaction():
            self._ensure_initialized()
            messages = self._read_all()
            remaining = [m for m in messages if not StoredChatMessage.from_dict(m).involves(user_a, user_b)]
            self._write_all(remaining)
        return len(messages) - len(remaining)

    def list_conversation_partners(self, user_id: str) -> List[str]:
        """Lists the ids a user has exchanged messages with, most recent activity first."""
        with self._storage.transaction():
            self._ensure_initialized()
            messages = [StoredChatMessage.from_dict(m) for m in self._read_all()]
        last_seen: Dict[str, int] = {}
        for message in messages:
            if message.sender_id == user_id:
                partner = message.receiver_id
            elif message.receiver_id == user_id:
                partner = message.sender_id
            else:
                continue
            last_seen[partner] = max(last_seen.get(partner, 0), message.timestamp)
        return [partner for partner, _ in sorted(last_seen.items(), key=lambda item: item[1], reverse=True)]


def format_time(timestamp: int) -> str:
    """Formats an epoch-millisecond timestamp as local 'HH:MM'."""
    return datetime.fromtimestamp(timestamp / 1000).strftime("%H:%M")


def format_date_header(timestamp: int, today: Optional[date] = None) -> str:
    """Returns 'Today' for messages sent today, otherwise the local date."""
    day = datetime.fromtimestamp(timestamp / 1000).date()
    if day == (today or date.today()):
        return "Today"
    return day.strftime("%b %d, %Y")
