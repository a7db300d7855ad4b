"""
Pytest configuration file for the MediSync test suite.

This file defines shared fixtures used across the test modules:
- An encrypted `LocalStorage` in a temporary directory with a freshly generated Fernet key,
  so tests never touch the production store or key.
- A `ChatService` driven by a controllable clock.
- A `MediSyncService` pinned to a fixed date.
- Fake Gemini models that record prompts and return scripted replies, injected into
  `GeminiAssistant` so no network call is ever made.
"""
import datetime
import json

import pytest
from cryptography.fernet import Fernet

from medisync.chat import ChatService
from medisync.gemini import GeminiAssistant
from medisync.service import MediSyncService
from medisync.storage import LocalStorage

FIXED_TODAY = datetime.date(2024, 5, 15)
FIXED_NOW_MS = int(datetime.datetime(2024, 5, 15, 12, 0).timestamp() * 1000)


class FakeClock:
    """A millisecond clock that advances one second per reading."""

    def __init__(self, start=FIXED_NOW_MS):
        self.now = start

    def __call__(self):
        self.now += 1000
        return self.now


class FakeResponse:
    def __init__(self, text):
        self.text = text


class FakeModel:
    """Stands in for `genai.GenerativeModel`, replaying scripted replies in order.

    A reply that is an Exception instance is raised instead of returned.
    """

    def __init__(self, *replies):
        self.replies = list(replies)
        self.calls = []

    def _next(self):
        reply = self.replies.pop(0) if self.replies else ""
        if isinstance(reply, Exception):
            raise reply
        if not isinstance(reply, str):
            reply = json.dumps(reply)
        return FakeResponse(reply)

    def generate_content(self, contents, generation_config=None):
        self.calls.append({"contents": contents, "generation_config": generation_config})
        return self._next()

    def start_chat(self, history=None):
        self.calls.append({"history": history})
        return FakeChat(self)


class FakeChat:
    def __init__(self, model):
        self._model = model

    def send_message(self, message):
        self._model.calls.append({"message": message})
        return self._model._next()


@pytest.fixture
def encryptor():
    """A Fernet instance with a throwaway key."""
    return Fernet(Fernet.generate_key())


@pytest.fixture
def storage_path(tmp_path):
    return str(tmp_path / "medisync_storage.json")


@pytest.fixture
def storage(storage_path, encryptor):
    """An empty encrypted store in the test's temporary directory."""
    return LocalStorage(storage_path, encryptor)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def chat(storage, clock):
    """A `ChatService` over the temporary store with a deterministic clock."""
    return ChatService(storage, clock=clock)


@pytest.fixture
def service(chat):
    """A fresh session service pinned to `FIXED_TODAY`, using the offline assistant."""
    return MediSyncService(chat, today=lambda: FIXED_TODAY)


@pytest.fixture
def patient_service(service):
    """A session signed in as the demo patient."""
    service.login("sarah.j@example.com", "patient")
    return service


@pytest.fixture
def make_assistant():
    """Builds a `GeminiAssistant` whose models replay the given replies.

    Returns:
        callable: `make(*replies, chat_replies=())` returning `(assistant, model, chat_model)`.
    """
    def make(*replies, chat_replies=()):
        model = FakeModel(*replies)
        chat_model = FakeModel(*chat_replies)
        return GeminiAssistant(api_key="test-key", model=model, chat_model=chat_model), model, chat_model
    return make
