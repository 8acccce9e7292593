"""
Streamlit demo application for dynamic forms.
Renders the configured schema, lets an operator load a record to edit and
shows the audit entry produced for each submission.
"""

import streamlit as st
import json
import logging

from dynaform.config_loader import configure_logging, get_config_value, load_config
from dynaform.diff_utils import create_audit_diff_entry
from dynaform.exceptions import FormError
from dynaform.form_generator import FormGenerator
from dynaform.schema_loader import get_schema_mtime, list_available_schemas, load_active_schema
from dynaform.session_manager import SessionManager

configure_logging()
logger = logging.getLogger(__name__)

# Load configuration early
try:
    config = load_config()
    page_title = get_config_value('app', 'name', 'Dynamic Forms')
    app_version = get_config_value('app', 'version', 'Unknown')
    logger.info(f"Starting app version: {app_version}")
except Exception as e:
    logger.error(f"Failed to load configuration: {e}")
    page_title = "Dynamic Forms"

st.set_page_config(
    page_title=page_title,
    page_icon="📋",
    layout="wide",
)


def load_record_callback(form_key: str):
    """Load the JSON record typed in the sidebar into the form."""
    raw = st.session_state.get('record_json', '').strip()
    if not raw:
        st.session_state['record_error'] = "Enter a JSON object first"
        return
    try:
        record = json.loads(raw)
        if not isinstance(record, dict):
            raise ValueError("record must be a JSON object")
    except ValueError as e:
        st.session_state['record_error'] = f"Invalid record: {e}"
        return

    form = SessionManager.peek_form(form_key)
    if form is None:
        return
    form.load_form_data(record)
    form.settle()
    FormGenerator.sync_widgets_from_form(form, form_key)
    st.session_state.pop('record_error', None)
    logger.info(f"Loaded record into '{form_key}'")


def clear_record_callback(form_key: str):
    form = SessionManager.peek_form(form_key)
    if form is None:
        return
    form.clear()
    FormGenerator.sync_widgets_from_form(form, form_key)


def render_sidebar() -> str:
    """Schema picker and record loader; returns the selected schema file."""
    with st.sidebar:
        st.header(page_title)
        schemas = list_available_schemas()
        primary = get_config_value('schema', 'primary_schema', 'enrollment_schema.yaml')
        if not schemas:
            st.error("No schemas found")
            st.stop()
        index = schemas.index(primary) if primary in schemas else 0
        schema_name = st.selectbox("Schema", schemas, index=index)

        st.subheader("Record")
        identity_key = get_config_value('forms', 'identity_key', 'hash')
        st.text_area("Record (JSON)", key='record_json', height=150,
                     help=f"Include '{identity_key}' to edit an existing record")
        col_load, col_clear = st.columns(2)
        with col_load:
            st.button("Load record", on_click=load_record_callback, args=(schema_name,))
        with col_clear:
            st.button("Clear", on_click=clear_record_callback, args=(schema_name,))
        if st.session_state.get('record_error'):
            st.error(st.session_state['record_error'])
    return schema_name


def main():
    """Main application entry point."""
    schema_name = render_sidebar()

    try:
        schema = load_active_schema(schema_name)
        schema_mtime = get_schema_mtime(schema_name)
    except FormError as e:
        st.error(str(e))
        for suggestion in e.recovery_suggestions:
            st.caption(suggestion)
        return

    # A newer schema file rebuilds the session form
    form = SessionManager.get_form(schema_name, schema, version=schema_mtime)

    def handle_submit(values, entity_id):
        entry = create_audit_diff_entry(form.tracker.original_snapshot, values, entity_id)
        st.session_state.setdefault('submissions', []).append(entry)

    st.title(schema_name)
    FormGenerator.render_dynamic_form(form, form_key=schema_name, on_submit=handle_submit)

    submissions = st.session_state.get('submissions', [])
    if submissions:
        with st.expander(f"Submissions ({len(submissions)})"):
            for entry in reversed(submissions):
                st.json(entry)


if __name__ == "__main__":
    main()
