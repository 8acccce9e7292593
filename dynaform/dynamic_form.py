"""
Dynamic form orchestrator.

DynamicForm ties the pieces together for one schema: it compiles the
schema into a form model, hands out cached field contexts and selection
widgets, loads records through the change tracker and answers the status
queries a renderer or caller needs (validity, errors, diff, submit state).

Change detection is deferred: control notifications only queue a
recomputation on the tick scheduler, and settle() runs it once the
mutation that caused it has fully completed.
"""

import logging
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from .change_tracker import ChangeTracker, deep_copy
from .compiler import compile_schema, parse_schema
from .config_loader import get_config_value, load_config
from .controls import FormGroup, Subscription
from .descriptors import BaseField, FormStatus
from .diff_utils import calculate_diff, get_change_summary
from .exceptions import FormNotStartedError
from .field_context import FieldContext, FieldContextCache
from .scheduler import TickScheduler
from .selection import build_widget
from .validators import get_error_message

logger = logging.getLogger(__name__)

RECOMPUTE_KEY = 'recompute_diff'

SubmitHandler = Callable[[Dict[str, Any], Any], Any]


class DynamicForm:
    """
    One schema-driven form instance.

    Args:
        scheduler: Tick scheduler for deferred change detection; a private
            one is created when omitted
        identity_key: Record key whose presence switches on edit mode,
            defaults to forms.identity_key from config
    """

    def __init__(self, scheduler: Optional[TickScheduler] = None,
                 identity_key: Optional[str] = None):
        self.scheduler = scheduler or TickScheduler()
        self.identity_key = identity_key or get_config_value('forms', 'identity_key', 'hash')
        self._schema: Optional[List[List[BaseField]]] = None
        self._form: Optional[FormGroup] = None
        self._tracker: Optional[ChangeTracker] = None
        self._contexts: Optional[FieldContextCache] = None
        self._widgets: Dict[str, Any] = {}
        self._subscriptions: List[Subscription] = []

    # -- lifecycle ---------------------------------------------------------

    @property
    def started(self) -> bool:
        return self._form is not None

    def start(self, schema: Sequence[Sequence[Any]]) -> FormGroup:
        """
        Compile schema and start tracking changes.

        Starting again replaces the previous form model; contexts and
        widgets bound to the old controls are discarded.

        Raises:
            SchemaError: If the schema is malformed
            DuplicateFieldError: If two fields share a name
        """
        rows = parse_schema(schema)
        form = compile_schema(rows)

        if self.started:
            self.dispose()

        self._schema = rows
        self._form = form
        self._tracker = ChangeTracker(form, identity_key=self.identity_key)
        self._contexts = FieldContextCache(form)
        self._subscriptions = [
            form.value_changes.subscribe(self._on_value_change),
            form.status_changes.subscribe(self._on_status_change),
        ]
        logger.info(f"Started form with {len(form)} field(s)")
        return form

    def dispose(self) -> None:
        """Detach from the form model and drop cached contexts and widgets."""
        for subscription in self._subscriptions:
            subscription.unsubscribe()
        self._subscriptions = []
        for widget in self._widgets.values():
            widget.dispose()
        self._widgets.clear()
        if self._contexts is not None:
            self._contexts.clear_cache()
        self.scheduler.cancel_all()

    def _require(self, operation: str) -> None:
        if not self.started:
            raise FormNotStartedError(operation)

    @property
    def form(self) -> FormGroup:
        self._require('form')
        return self._form

    @property
    def schema(self) -> List[List[BaseField]]:
        self._require('schema')
        return self._schema

    @property
    def tracker(self) -> ChangeTracker:
        self._require('tracker')
        return self._tracker

    # -- deferred change detection -----------------------------------------

    def _schedule_recompute(self) -> None:
        self.scheduler.call_soon(self._tracker.recompute_diff, key=RECOMPUTE_KEY)

    def _on_value_change(self, _value: Any) -> None:
        self._schedule_recompute()

    def _on_status_change(self, _status: Any) -> None:
        if self._tracker.is_edit_mode:
            self._schedule_recompute()

    def settle(self) -> int:
        """Run deferred work queued by earlier mutations; returns the callbacks run."""
        return self.scheduler.run_pending()

    # -- field contexts and widgets ----------------------------------------

    def context_for(self, descriptor: Union[BaseField, Dict[str, Any]]) -> FieldContext:
        self._require('context_for')
        return self._contexts.context_for(descriptor)

    def clear_cache(self) -> None:
        """Drop cached field contexts and widgets (before reusing field names)."""
        self._require('clear_cache')
        for widget in self._widgets.values():
            widget.dispose()
        self._widgets.clear()
        self._contexts.clear_cache()

    def widget_for(self, descriptor: Union[BaseField, Dict[str, Any]], **kwargs):
        """
        Selection widget for a select/multiselect field, created once per name.

        Raises:
            ValueError: If the field is not a select or multiselect
        """
        context = self.context_for(descriptor)
        widget = self._widgets.get(context.name)
        if widget is None:
            field_type = descriptor.type if isinstance(descriptor, BaseField) else descriptor.get('type')
            widget = build_widget(context, field_type, **kwargs)
            self._widgets[context.name] = widget
        return widget

    # -- records -----------------------------------------------------------

    def load_form_data(self, record: Mapping[str, Any]) -> None:
        """Load a record (edit mode when it carries the identity key)."""
        self._require('load_form_data')
        self._tracker.load(record)

    def value(self) -> Dict[str, Any]:
        self._require('value')
        return self._form.value()

    def valid(self) -> bool:
        self._require('valid')
        return self._form.valid()

    def errors_for(self, name: str) -> Optional[Dict[str, Any]]:
        self._require('errors_for')
        return self._form.errors_for(name)

    def get_form_errors(self) -> Dict[str, Dict[str, Any]]:
        self._require('get_form_errors')
        return self._form.get_errors()

    def has_field_error(self, name: str, error: Optional[str] = None, touched_only: bool = True) -> bool:
        """
        Whether field name currently fails (a specific error, or any).

        With touched_only the error only counts once the field was touched.
        """
        self._require('has_field_error')
        control = self._form.control(name)
        if touched_only and not control.touched:
            return False
        if error is None:
            return bool(control.errors)
        return control.has_error(error)

    def get_error_message(self, name: str, touched_only: bool = False) -> str:
        """
        First applicable message for field name in priority order.

        Returns '' when the field is valid (or untouched with touched_only).
        """
        self._require('get_error_message')
        control = self._form.control(name)
        if touched_only and not control.touched:
            return ''
        return get_error_message(control.errors, load_config().get('messages'))

    # -- change tracking ---------------------------------------------------

    def diff_fields(self) -> Dict[str, Dict[str, Any]]:
        self._require('diff_fields')
        return self._tracker.diff_fields()

    def is_field_changed(self, name: str) -> bool:
        self._require('is_field_changed')
        return self._tracker.is_field_changed(name)

    def change_summary(self) -> Dict[str, int]:
        """Change counts by type against the loaded record (all zero outside edit mode)."""
        self._require('change_summary')
        original = self._tracker.original_snapshot if self._tracker.is_edit_mode else {}
        current = self._form.value() if self._tracker.is_edit_mode else {}
        return get_change_summary(calculate_diff(original, current))

    def get_form_status(self) -> FormStatus:
        """Submit-related state; can_submit needs a pending change in edit mode."""
        self._require('get_form_status')
        is_valid = self._form.valid()
        is_edit_mode = self._tracker.is_edit_mode
        has_changes = self._tracker.has_changes
        return FormStatus(
            is_edit_mode=is_edit_mode,
            has_changes=has_changes,
            is_valid=is_valid,
            can_submit=is_valid and (not is_edit_mode or has_changes),
            entity_id=self._tracker.entity_id if is_edit_mode else None,
        )

    def reset_form(self) -> None:
        """Revert to the loaded record in edit mode, otherwise reset to empty values."""
        self._require('reset_form')
        if self._tracker.is_edit_mode:
            self._tracker.revert()
        else:
            self._form.reset()
        self.settle()
        logger.info("Form reset")

    def clear(self) -> None:
        """Leave edit mode and reset every control."""
        self._require('clear')
        self._tracker.clear()
        self.settle()

    def _collect_messages(self) -> List[str]:
        messages = load_config().get('messages')
        collected: List[str] = []
        for name, errors in self._form.get_errors().items():
            collected.append(f"{name}: {get_error_message(errors, messages)}")
        return collected

    def submit(self, handler: Optional[SubmitHandler] = None) -> Tuple[bool, List[str]]:
        """
        Submit the current values.

        The handler receives (values, entity_id). On success the current
        values become the new baseline.

        Returns:
            (True, []) on success, otherwise (False, messages)
        """
        self._require('submit')
        self.settle()
        status = self.get_form_status()

        if not status.can_submit:
            self._form.mark_all_as_touched()
            if not status.is_valid:
                messages = self._collect_messages()
            else:
                messages = ['No changes to submit']
            logger.info(f"Submit rejected: {messages}")
            return False, messages

        values = deep_copy(self._form.value())
        if handler is not None:
            try:
                handler(values, status.entity_id)
            except Exception as e:
                logger.error(f"Submit handler failed: {e}", exc_info=True)
                return False, [f"Submit failed: {e}"]

        if status.is_edit_mode:
            self._tracker.rebase()
        logger.info(f"Submitted form (entity_id={status.entity_id!r})")
        return True, []
