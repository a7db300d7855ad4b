"""
This module provides `LocalStorage`, the persistence layer behind MediSync's chat history.

It mirrors the browser `localStorage` API (string keys mapped to string values) but keeps
every key in a single JSON document on disk, encrypted with Fernet. Each mutation rewrites
the whole document, exactly like the browser version rewrites the whole blob of a key.

Streamlit runs every browser session on its own thread, so all sessions of one process
share a single store. `transaction()` holds a re-entrant lock across a read-modify-write
so that two sessions appending to the same key cannot lose each other's writes.
"""
# medisync/storage.py

import json
import logging
import os
import threading
from contextlib import contextmanager
from typing import Dict, Iterator, Optional

from cryptography.fernet import Fernet, InvalidToken

logger = logging.getLogger(__name__)


class LocalStorage:
    """A file-backed, encrypted string key/value store."""

    def __init__(self, path: str, encryptor: Fernet) -> None:
        """Opens (or creates) the store.

        Args:
            path: The file that holds the encrypted JSON document.
            encryptor: The Fernet instance used to encrypt the document.
        """
        self._path = path
        self._encryptor = encryptor
        self._lock = threading.RLock()
        self._data = self._load_data()

    def _load_data(self) -> Dict[str, str]:
        """Loads and decrypts the store.

        Returns:
            dict: The stored items, or an empty dict if the file is missing or unreadable.
        """
        try:
            with open(self._path, "r") as f:
                encrypted_data = f.read()
            if not encrypted_data:
                return {}
            decrypted_data = self._encryptor.decrypt(encrypted_data.encode()).decode()
            data = json.loads(decrypted_data)
            if not isinstance(data, dict):
                raise ValueError("storage root is not an object")
            return {str(k): str(v) for k, v in data.items()}
        except FileNotFoundError:
            return {}
        except (InvalidToken, json.JSONDecodeError, ValueError) as e:
            logger.warning("Could not load storage file %s (%r). Starting with an empty store.", self._path, e)
            return {}

    def _save_data(self) -> None:
        """Encrypts and writes the whole store back to disk."""
        payload = json.dumps(self._data, indent=4)
        encrypted = self._encryptor.encrypt(payload.encode())
        # Write beside the target and swap it in, so a failed write never truncates the store.
        tmp_path = f"{self._path}.tmp"
        with open(tmp_path, "w") as f:
            f.write(encrypted.decode())
        os.replace(tmp_path, self._path)

    @contextmanager
    def transaction(self) -> Iterator["LocalStorage"]:
        """Serialises a read-modify-write sequence across sessions."""
        with self._lock:
            yield self

    def get_item(self, key: str) -> Optional[str]:
        with self._lock:
            return self._data.get(key)

    def set_item(self, key: str, value: str) -> None:
        with self._lock:
            self._data[key] = value
            self._save_data()

    def remove_item(self, key: str) -> None:
        with self._lock:
            if self._data.pop(key, None) is not None:
                self._save_data()

    def clear(self) -> None:
        with self._lock:
            self._data = {}
            self._save_data()

    def keys(self):
        with self._lock:
            return list(self._data.keys())
