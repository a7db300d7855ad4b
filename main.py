"""
This is the main entry point for the MediSync Streamlit application.

This script handles the following key responsibilities:
- Sets the overall page configuration and logging.
- Builds the process-wide resources: the encrypted chat store and the AI assistant.
- Creates one `MediSyncService` per browser session in the session state.
- Routes the user to the authentication page or the main app based on login status.

Run with:
    streamlit run main.py
"""
# medisync/main.py

import logging

import streamlit as st

from medisync.chat import ChatService
from medisync.config import load_settings
from medisync.encryption import build_encryptor
from medisync.gemini import build_assistant
from medisync.service import MediSyncService
from medisync.storage import LocalStorage
import gui

# Set the basic configuration for the Streamlit page.
st.set_page_config(
    page_title="MediSync",
    layout="wide"
)

settings = load_settings()
logging.basicConfig(
    level=getattr(logging, settings.log_level, logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


# Shared resources
@st.cache_resource
def get_chat_service():
    """
    Opens the chat store shared by every session of this process.

    Decorated with `@st.cache_resource` so that all sessions read and write the
    same `LocalStorage` (and therefore the same write lock).

    Returns:
        ChatService: The process-wide chat store.
    """
    storage = LocalStorage(settings.storage_file, build_encryptor(settings.key_file))
    return ChatService(storage)


@st.cache_resource
def get_assistant():
    """Returns the process-wide AI assistant (Gemini when a key is configured)."""
    return build_assistant(settings)


# Session State Management
# Each browser session owns its application state.
if 'service' not in st.session_state:
    st.session_state.service = MediSyncService(get_chat_service(), get_assistant())
if 'current_view' not in st.session_state:
    st.session_state.current_view = 'dashboard'

service = st.session_state.service

# Main App Router
if service.current_user:
    gui.show_main_app(service)
else:
    gui.show_auth_page(service)
