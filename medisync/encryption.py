"""
This module handles encryption of MediSync's local storage file.

It uses `cryptography`'s Fernet symmetric encryption so that chat history and any other
values written through `LocalStorage` are unreadable at rest. It is responsible for:
- Generating a secret key if one does not already exist.
- Storing and loading the key from the configured key file (`secret.key` by default).
- Building the `Fernet` encryptor shared by the storage layer.

Security Note: the key file must be kept out of version control. Losing it makes the
stored chat history unreadable; the storage layer then starts a fresh store.
"""
# medisync/encryption.py

import logging
import os

from cryptography.fernet import Fernet

logger = logging.getLogger(__name__)


def write_key(key_file: str) -> bytes:
    """Generates a new Fernet key and saves it to `key_file`.

    Returns:
        bytes: The newly generated key.
    """
    key = Fernet.generate_key()
    with open(key_file, "wb") as f:
        f.write(key)
    return key


def load_key(key_file: str) -> bytes:
    """Loads the Fernet key from `key_file`.

    Raises:
        FileNotFoundError: If the key file does not exist.
    """
    with open(key_file, "rb") as f:
        return f.read().strip()


def load_or_create_key(key_file: str) -> bytes:
    """Returns the key stored in `key_file`, generating one on first run."""
    if not os.path.exists(key_file):
        logger.info("Encryption key not found at %s. Generating a new one.", key_file)
        return write_key(key_file)
    return load_key(key_file)


def build_encryptor(key_file: str) -> Fernet:
    """Creates the Fernet instance used for all encryption and decryption of stored data."""
    return Fernet(load_or_create_key(key_file))
