"""
Session state management for the Schema Studio Streamlit app.
Holds the document store, the preview value context and page navigation.
"""

import logging
from datetime import datetime
from typing import Dict, Any, Optional

import streamlit as st

from .config_loader import get_config
from .document_store import DocumentStore
from .form_state import resolve_values
from .shortcuts import KeyEventSource, ShortcutBinding

logger = logging.getLogger(__name__)

DEFAULT_PAGE = "designer"
PAGES = ("designer", "preview")


class SessionManager:
    """Manages Streamlit session state for the designer and preview pages."""

    @staticmethod
    def initialize(config: Optional[Dict[str, Any]] = None):
        """
        Initialize session state; existing keys are left untouched.

        The document store is restored from configured storage the first
        time a session starts.
        """
        if 'store' not in st.session_state:
            st.session_state['store'] = DocumentStore.from_config(config or get_config())

        defaults = {
            'current_page': DEFAULT_PAGE,
            'preview_values': {},
            'key_events': KeyEventSource(),
            'session_id': f"session_{datetime.now().strftime('%Y%m%d_%H%M%S')}",
            'last_activity': datetime.now(),
        }
        for key, default_value in defaults.items():
            if key not in st.session_state:
                st.session_state[key] = default_value

        if 'shortcut_binding' not in st.session_state:
            st.session_state['shortcut_binding'] = ShortcutBinding(st.session_state['store'])
        # Reruns call this again; attach is idempotent
        st.session_state['shortcut_binding'].attach(st.session_state['key_events'])

        logger.debug(f"Session initialized: {st.session_state['session_id']}")

    @staticmethod
    def get_store() -> DocumentStore:
        return st.session_state['store']

    @staticmethod
    def get_key_events() -> KeyEventSource:
        return st.session_state['key_events']

    @staticmethod
    def get_current_page() -> str:
        return st.session_state['current_page'] if 'current_page' in st.session_state else DEFAULT_PAGE

    @staticmethod
    def set_current_page(page: str):
        """Set the current page, ignoring unknown page names."""
        if page not in PAGES:
            logger.warning(f"Ignoring unknown page: {page}")
            return
        old_page = SessionManager.get_current_page()
        if old_page != page:
            logger.info(f"Page transition: {old_page} -> {page}")
            st.session_state['current_page'] = page
            SessionManager.update_activity()

    @staticmethod
    def get_preview_values() -> Dict[str, Any]:
        """Raw values entered in the preview form."""
        return st.session_state['preview_values'] if 'preview_values' in st.session_state else {}

    @staticmethod
    def set_preview_value(key: str, value: Any):
        values = dict(SessionManager.get_preview_values())
        values[key] = value
        st.session_state['preview_values'] = values
        SessionManager.update_activity()

    @staticmethod
    def get_resolved_values() -> Dict[str, Any]:
        """Preview values with defaults and computed fields applied."""
        return resolve_values(SessionManager.get_store().schema, SessionManager.get_preview_values())

    @staticmethod
    def reset_preview():
        """Forget everything entered in the preview form, including widget state."""
        for key in list(st.session_state.keys()):
            if str(key).startswith('preview_'):
                del st.session_state[key]
        st.session_state['preview_values'] = {}
        logger.info("Preview values reset")

    @staticmethod
    def update_activity():
        st.session_state['last_activity'] = datetime.now()

    @staticmethod
    def reset_session():
        """Drop all session state and start again from storage."""
        logger.info("Resetting session")
        if 'shortcut_binding' in st.session_state:
            st.session_state['shortcut_binding'].detach()
        for key in list(st.session_state.keys()):
            del st.session_state[key]
        SessionManager.initialize()

    @staticmethod
    def get_session_info() -> Dict[str, Any]:
        """Session summary for the debug panel."""
        store = SessionManager.get_store()
        return {
            'session_id': st.session_state['session_id'],
            'current_page': SessionManager.get_current_page(),
            'field_count': len(store.existing_keys()),
            'selected_id': store.selected_id,
            'can_undo': store.can_undo,
            'can_redo': store.can_redo,
            'clipboard_empty': store.clipboard.is_empty,
            'preview_value_keys': sorted(SessionManager.get_preview_values().keys()),
            'last_activity': st.session_state['last_activity'].isoformat(),
        }


def init_session():
    """Initialize session state."""
    SessionManager.initialize()


def get_store() -> DocumentStore:
    return SessionManager.get_store()
