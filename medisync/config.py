"""
This module centralises configuration for the MediSync application.

Values are read from environment variables first and then from Streamlit secrets
(`.streamlit/secrets.toml`), so the same code runs under `streamlit run` with a
secrets file, in a container with plain environment variables, and under pytest.
"""
# medisync/config.py

import os
from dataclasses import dataclass
from typing import Optional

import streamlit as st
from streamlit.errors import StreamlitAPIException

# Business constants shared by the service, the pharmacy and the GUI.
REFILL_AMOUNT = 30
STARTER_STOCK = 30
LOW_STOCK_THRESHOLD = 5
REFILL_PRICE = 15.00
CHAT_REFRESH_INTERVAL_SECONDS = 2.0
REMINDER_REFRESH_INTERVAL_SECONDS = 5.0
DEFAULT_MODEL = "gemini-2.5-flash"


def _read_secret(name: str) -> Optional[str]:
    """Returns a value from Streamlit secrets, or None when no secrets file is present."""
    try:
        value = st.secrets.get(name)
    except (FileNotFoundError, KeyError, StreamlitAPIException):
        return None
    return str(value) if value is not None else None


def get_setting(name: str, default: Optional[str] = None) -> Optional[str]:
    """Looks up a setting in the environment, then in Streamlit secrets.

    Args:
        name: The setting name, e.g. 'GEMINI_API_KEY'.
        default: The value returned when the setting is defined nowhere.

    Returns:
        The configured string value, or `default`.
    """
    value = os.environ.get(name)
    if value:
        return value
    value = _read_secret(name)
    if value:
        return value
    return default


@dataclass
class Settings:
    """Resolved runtime configuration."""
    gemini_api_key: Optional[str]
    model_name: str
    storage_file: str
    key_file: str
    log_level: str

    @property
    def ai_enabled(self) -> bool:
        return bool(self.gemini_api_key)


def load_settings() -> Settings:
    """Builds a `Settings` object from the environment and Streamlit secrets."""
    return Settings(
        gemini_api_key=get_setting("GEMINI_API_KEY"),
        model_name=get_setting("MEDISYNC_MODEL", DEFAULT_MODEL),
        storage_file=get_setting("MEDISYNC_STORAGE_FILE", "medisync_storage.json"),
        key_file=get_setting("MEDISYNC_KEY_FILE", "secret.key"),
        log_level=get_setting("MEDISYNC_LOG_LEVEL", "INFO").upper(),
    )
