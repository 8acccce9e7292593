"""
Streamlit rendering of dynamic forms.

Each schema row becomes a row of columns; each field is rendered from its
field context and writes user input back into its control. Select and
multiselect fields go through the selection widget state machines.
"""

import streamlit as st
from typing import Dict, Any, List, Optional, Callable
import logging

from .compiler import generate_field_id
from .descriptors import BaseField
from .diff_utils import format_field_changes
from .dynamic_form import DynamicForm
from .session_manager import SessionManager
from .field_context import FieldContext

logger = logging.getLogger(__name__)


class FormGenerator:
    """Renders a DynamicForm with Streamlit widgets."""

    @staticmethod
    def _widget_value(field: BaseField, value: Any) -> Any:
        """Control value in the shape the Streamlit widget expects."""
        if field.type in ('text', 'textarea'):
            return '' if value is None else str(value)
        if field.type == 'multiselect':
            return list(value or [])
        return value

    @staticmethod
    def _iter_fields(form: DynamicForm):
        for row_index, row in enumerate(form.schema):
            for field_index, field in enumerate(row):
                yield row_index, field_index, field

    @staticmethod
    def sync_widgets_from_form(form: DynamicForm, form_key: str):
        """
        Copy control values into widget session state.

        Call from a widget callback (before widgets are instantiated), e.g.
        after loading a record or resetting the form.
        """
        for row_index, field_index, field in FormGenerator._iter_fields(form):
            field_id = generate_field_id(field.name, field.type, row_index, field_index)
            widget_key = SessionManager.widget_key(form_key, field_id)
            control = form.form.control(field.name)
            st.session_state[widget_key] = FormGenerator._widget_value(field, control.value)
            st.session_state.pop(f"{widget_key}_search", None)

    @staticmethod
    def _apply_input(field: BaseField, context: FieldContext, value: Any):
        control = context.control
        if value != FormGenerator._widget_value(field, control.value):
            control.set_value(value)
            control.mark_as_dirty()
            control.mark_as_touched()

    @staticmethod
    def render_dynamic_form(form: DynamicForm, form_key: str = "dynamic_form",
                            on_submit: Optional[Callable[[Dict[str, Any], Any], Any]] = None) -> Dict[str, Any]:
        """
        Render every field of form, then the status, diff and buttons.

        Args:
            form: A started DynamicForm
            form_key: Namespace for widget keys in session state
            on_submit: Handler called with (values, entity_id) on submit

        Returns:
            Current form values
        """
        for row_index, row in enumerate(form.schema):
            if not row:
                continue
            cols = st.columns(len(row))
            for field_index, field in enumerate(row):
                with cols[field_index]:
                    FormGenerator._render_field(form, form_key, field, row_index, field_index)

        # User input above only queued change detection
        form.settle()

        FormGenerator._render_status(form)

        col_buttons = st.columns(2)
        with col_buttons[0]:
            st.button("Submit", key=f"{form_key}_submit", type="primary",
                      on_click=FormGenerator._submit_callback, args=(form, form_key, on_submit))
        with col_buttons[1]:
            st.button("Reset", key=f"{form_key}_reset",
                      on_click=FormGenerator._reset_callback, args=(form, form_key))

        result = SessionManager.pop_submit_result(form_key)
        if result is not None:
            success, messages = result
            if success:
                st.success("Changes submitted successfully!")
            else:
                st.error("Submission failed:")
                for message in messages:
                    st.error(f"  • {message}")

        return form.value()

    @staticmethod
    def _submit_callback(form: DynamicForm, form_key: str, on_submit):
        success, messages = form.submit(on_submit)
        SessionManager.set_submit_result(form_key, success, messages)

    @staticmethod
    def _reset_callback(form: DynamicForm, form_key: str):
        form.reset_form()
        FormGenerator.sync_widgets_from_form(form, form_key)

    @staticmethod
    def _render_status(form: DynamicForm):
        status = form.get_form_status()
        if status.is_edit_mode:
            st.caption(f"Editing record {status.entity_id}")
            if status.has_changes:
                st.markdown("\n".join(format_field_changes(form.diff_fields())))
            else:
                st.info("No changes yet")
        if not status.is_valid:
            st.warning("Some fields need attention")

    @staticmethod
    def _render_field(form: DynamicForm, form_key: str, field: BaseField,
                      row_index: int, field_index: int) -> Any:
        """Render a single field and write the widget's value into its control."""
        try:
            context = form.context_for(field)
            field_id = generate_field_id(field.name, field.type, row_index, field_index)
            widget_key = SessionManager.widget_key(form_key, field_id)

            if widget_key not in st.session_state:
                st.session_state[widget_key] = FormGenerator._widget_value(field, context.control.value)

            widget_kwargs = {
                'key': widget_key,
                'label': context.get('label') or field.name,
            }

            if field.type == 'text':
                value = FormGenerator._render_text_input(context, widget_kwargs)
            elif field.type == 'textarea':
                value = FormGenerator._render_text_area(context, widget_kwargs)
            elif field.type == 'number':
                value = FormGenerator._render_number_input(context, widget_kwargs)
            elif field.type == 'select':
                value = FormGenerator._render_select(form, field, widget_kwargs)
            elif field.type == 'multiselect':
                value = FormGenerator._render_multiselect(form, field, widget_kwargs)
            else:
                value = st.text_input(**widget_kwargs)

            if field.type not in ('select', 'multiselect'):
                FormGenerator._apply_input(field, context, value)

            message = form.get_error_message(field.name, touched_only=True)
            if message:
                st.error(message)
            if form.is_field_changed(field.name):
                st.caption("Modified")
            return context.control.value

        except Exception as e:
            st.error(f"Error rendering field {field.name}: {str(e)}")
            logger.error(f"Error rendering field {field.name}: {e}", exc_info=True)
            return None

    @staticmethod
    def _render_text_input(context: FieldContext, kwargs: Dict[str, Any]) -> str:
        if context.get('placeholder'):
            kwargs['placeholder'] = context['placeholder']
        value = st.text_input(**kwargs)
        return value if value is not None else ""

    @staticmethod
    def _render_text_area(context: FieldContext, kwargs: Dict[str, Any]) -> str:
        kwargs['height'] = 100
        if context.get('placeholder'):
            kwargs['placeholder'] = context['placeholder']
        if context.get('max') is not None:
            kwargs['max_chars'] = int(context['max'])
        value = st.text_area(**kwargs)
        return value if value is not None else ""

    @staticmethod
    def _render_number_input(context: FieldContext, kwargs: Dict[str, Any]) -> Any:
        bounds = [context.get('min'), context.get('max')]
        is_float = any(isinstance(b, float) for b in bounds) or isinstance(context.control.value, float)
        cast = float if is_float else int
        if context.get('min') is not None:
            kwargs['min_value'] = cast(context['min'])
        if context.get('max') is not None:
            kwargs['max_value'] = cast(context['max'])
        kwargs['step'] = 0.01 if is_float else 1
        if context.get('placeholder'):
            kwargs['placeholder'] = context['placeholder']
        return st.number_input(**kwargs)

    @staticmethod
    def _search_options(widget, label: str, search_key: str) -> List[Any]:
        """Run the search box through the widget and return the visible option keys."""
        term = st.text_input(f"Search {label}", key=search_key)
        if term:
            if not widget.is_open:
                widget.open()
            widget.search(term)
        elif widget.is_open:
            widget.close()
        return [option.key for option in widget.filtered_options]

    @staticmethod
    def _format_func(widget) -> Callable[[Any], str]:
        def format_option(key: Any) -> str:
            if key is None:
                return widget.placeholder
            option = widget.option_for(key)
            return option.description if option else str(key)
        return format_option

    @staticmethod
    def _render_select(form: DynamicForm, field: BaseField, kwargs: Dict[str, Any]) -> Any:
        widget = form.widget_for(field)
        keys = FormGenerator._search_options(widget, kwargs['label'], f"{kwargs['key']}_search")
        current = widget.selected_item.key if widget.selected_item else None
        if current is not None and current not in keys:
            keys = [current] + keys
        if st.session_state.get(kwargs['key']) not in [None] + keys:
            st.session_state[kwargs['key']] = current

        choice = st.selectbox(options=[None] + keys, format_func=FormGenerator._format_func(widget), **kwargs)
        if choice != widget.control.value:
            if choice is None:
                widget.clear_selection()
            else:
                widget.select(widget.option_for(choice))
        return widget.control.value

    @staticmethod
    def _render_multiselect(form: DynamicForm, field: BaseField, kwargs: Dict[str, Any]) -> List[Any]:
        widget = form.widget_for(field)
        keys = FormGenerator._search_options(widget, kwargs['label'], f"{kwargs['key']}_search")
        # Selected keys stay available even when filtered out
        options = widget.selected_keys + [key for key in keys if key not in widget.selected_keys]

        chosen = st.multiselect(options=options, format_func=FormGenerator._format_func(widget),
                                placeholder=widget.placeholder, **kwargs)
        for key in [k for k in widget.selected_keys if k not in chosen]:
            widget.remove_option(widget.option_for(key))
        for key in [k for k in chosen if k not in widget.selected_keys]:
            widget.add_option(widget.option_for(key))

        label = "Clear all" if widget.is_all_selected else "Select all"
        st.button(label, key=f"{kwargs['key']}_toggle_all",
                  on_click=FormGenerator._toggle_all_callback, args=(widget, kwargs['key']))
        if widget.has_selection():
            summary = widget.display_text
            if widget.hidden_count:
                summary += f" +{widget.hidden_count} more"
            st.caption(summary)
        return widget.control.value

    @staticmethod
    def _toggle_all_callback(widget, widget_key: str):
        widget.toggle_select_all()
        st.session_state[widget_key] = list(widget.selected_keys)
