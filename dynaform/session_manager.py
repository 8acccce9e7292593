"""
Session state management for Streamlit-rendered dynamic forms.
Keeps one DynamicForm per form key alive across script reruns.
"""

import streamlit as st
from typing import Any, Dict, List, Optional, Sequence, Tuple
import logging

from .dynamic_form import DynamicForm

logger = logging.getLogger(__name__)

FORM_STATE_PREFIX = "dynaform_form_"
RESULT_STATE_PREFIX = "dynaform_result_"
WIDGET_STATE_PREFIX = "dynaform_widget_"
VERSION_STATE_PREFIX = "dynaform_version_"


class SessionManager:
    """Manages the Streamlit session state of dynamic forms."""

    @staticmethod
    def _form_key(key: str) -> str:
        return f"{FORM_STATE_PREFIX}{key}"

    @staticmethod
    def widget_key(key: str, field_id: str) -> str:
        """Session state key of the Streamlit widget rendering one field."""
        return f"{WIDGET_STATE_PREFIX}{key}_{field_id}"

    @staticmethod
    def has_form(key: str) -> bool:
        return SessionManager._form_key(key) in st.session_state

    @staticmethod
    def peek_form(key: str) -> Optional[DynamicForm]:
        """Stored form for key, None if no form was created yet."""
        return st.session_state.get(SessionManager._form_key(key))

    @staticmethod
    def get_form(key: str, schema: Sequence[Sequence[Any]], version: Any = None) -> DynamicForm:
        """
        Get the form stored under key, starting a new one from schema on first use.

        A stored form built from a different schema version (e.g. the schema
        file's mtime) is discarded and rebuilt from schema.

        Args:
            key: Form key, unique per page
            schema: Rows of field descriptors
            version: Identifies the schema revision the form is built from

        Returns:
            The session's DynamicForm
        """
        state_key = SessionManager._form_key(key)
        version_key = f"{VERSION_STATE_PREFIX}{key}"
        form = st.session_state.get(state_key)
        if form is not None and st.session_state.get(version_key) != version:
            logger.info(f"Schema for form '{key}' changed, rebuilding")
            SessionManager.reset_form(key)
            form = None
        if form is None:
            form = DynamicForm()
            form.start(schema)
            st.session_state[state_key] = form
            st.session_state[version_key] = version
            logger.info(f"Created dynamic form '{key}' in session")
        return form

    @staticmethod
    def reset_form(key: str):
        """Dispose the stored form and forget its widget values and last result."""
        form = st.session_state.pop(SessionManager._form_key(key), None)
        if form is not None:
            form.dispose()

        widget_prefix = f"{WIDGET_STATE_PREFIX}{key}_"
        for state_key in [k for k in st.session_state.keys() if str(k).startswith(widget_prefix)]:
            del st.session_state[state_key]
        st.session_state.pop(f"{RESULT_STATE_PREFIX}{key}", None)
        st.session_state.pop(f"{VERSION_STATE_PREFIX}{key}", None)
        logger.info(f"Reset dynamic form '{key}'")

    @staticmethod
    def set_submit_result(key: str, success: bool, messages: List[str]):
        st.session_state[f"{RESULT_STATE_PREFIX}{key}"] = {
            'success': success,
            'messages': list(messages),
        }

    @staticmethod
    def get_submit_result(key: str) -> Optional[Dict[str, Any]]:
        return st.session_state.get(f"{RESULT_STATE_PREFIX}{key}")

    @staticmethod
    def pop_submit_result(key: str) -> Optional[Tuple[bool, List[str]]]:
        result = st.session_state.pop(f"{RESULT_STATE_PREFIX}{key}", None)
        if result is None:
            return None
        return result['success'], result['messages']
