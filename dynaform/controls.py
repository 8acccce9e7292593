"""
Form controls and the form model (a named group of controls).

A FormControl holds one field's live value, its validators and the
resulting error map, dirty/touched flags and two event streams. A
FormGroup keys controls by field name and re-emits their changes.
"""

import logging
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional

from .exceptions import DuplicateFieldError, UnknownFieldError

logger = logging.getLogger(__name__)

VALID = 'VALID'
INVALID = 'INVALID'


class Subscription:
    """Handle returned by EventStream.subscribe()."""

    def __init__(self, stream: 'EventStream', callback: Callable[[Any], None]):
        self._stream = stream
        self._callback = callback
        self.closed = False

    def unsubscribe(self) -> None:
        if not self.closed:
            self._stream._remove(self._callback)
            self.closed = True


class EventStream:
    """Synchronous multi-subscriber notification stream."""

    def __init__(self):
        self._subscribers: List[Callable[[Any], None]] = []

    def subscribe(self, callback: Callable[[Any], None]) -> Subscription:
        self._subscribers.append(callback)
        return Subscription(self, callback)

    def _remove(self, callback: Callable[[Any], None]) -> None:
        if callback in self._subscribers:
            self._subscribers.remove(callback)

    def emit(self, value: Any) -> None:
        # Copy so callbacks may unsubscribe while being notified
        for callback in list(self._subscribers):
            callback(value)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)


class FormControl:
    """
    Live state of one form field.

    Args:
        value: Initial value
        validators: Callables taking the control and returning an error map or None
        multiple: Value is a list of option keys; anything else is coerced to []
        name: Field name, filled in by FormGroup.add_control() when omitted
    """

    def __init__(self, value: Any = None, validators: Optional[List[Callable]] = None,
                 multiple: bool = False, name: Optional[str] = None):
        self.name = name
        self.multiple = multiple
        self.validators: List[Callable] = list(validators or [])
        self.errors: Optional[Dict[str, Any]] = None
        self.status = VALID
        self.dirty = False
        self.touched = False
        self.value_changes = EventStream()
        self.status_changes = EventStream()
        self._parent: Optional['FormGroup'] = None
        self._value = self._coerce(value)
        self._run_validators()

    def __repr__(self) -> str:
        return f"FormControl(name={self.name!r}, value={self._value!r}, status={self.status})"

    @property
    def value(self) -> Any:
        return self._value

    @property
    def empty_value(self) -> Any:
        """Value a control holds after reset() without arguments."""
        return [] if self.multiple else None

    def _coerce(self, value: Any) -> Any:
        if not self.multiple or isinstance(value, list):
            return value
        if isinstance(value, tuple):
            return list(value)
        if value is not None:
            logger.warning(f"Field '{self.name}' expects a list, got {type(value).__name__}; using []")
        return []

    def _run_validators(self) -> None:
        errors: Dict[str, Any] = {}
        for validator in self.validators:
            result = validator(self)
            if result:
                errors.update(result)
        self.errors = errors or None
        self.status = INVALID if self.errors else VALID

    @property
    def valid(self) -> bool:
        return self.status == VALID

    @property
    def invalid(self) -> bool:
        return self.status == INVALID

    @property
    def pristine(self) -> bool:
        return not self.dirty

    @property
    def untouched(self) -> bool:
        return not self.touched

    def set_value(self, value: Any, emit_event: bool = True, only_self: bool = False) -> None:
        """
        Replace the value, re-run validators and notify subscribers.

        Args:
            value: New value
            emit_event: Emit on value_changes/status_changes
            only_self: Do not propagate the change to the parent group
        """
        self._value = self._coerce(value)
        self.update_value_and_validity(emit_event=emit_event, only_self=only_self)

    def patch_value(self, value: Any, emit_event: bool = True, only_self: bool = False) -> None:
        self.set_value(value, emit_event=emit_event, only_self=only_self)

    def reset(self, value: Any = None, emit_event: bool = True, only_self: bool = False) -> None:
        """Set value (empty_value when None) and clear dirty/touched flags."""
        self.dirty = False
        self.touched = False
        self.set_value(self.empty_value if value is None else value,
                       emit_event=emit_event, only_self=only_self)

    def update_value_and_validity(self, emit_event: bool = True, only_self: bool = False) -> None:
        self._run_validators()
        if emit_event:
            self.value_changes.emit(self._value)
            self.status_changes.emit(self.status)
        if self._parent is not None and not only_self:
            self._parent.update_value_and_validity(emit_event=emit_event)

    def set_validators(self, validators: Optional[List[Callable]]) -> None:
        """Replace the validators; call update_value_and_validity() to re-check."""
        self.validators = list(validators or [])

    def has_error(self, error_name: str) -> bool:
        return bool(self.errors) and error_name in self.errors

    def get_error(self, error_name: str) -> Any:
        return self.errors.get(error_name) if self.errors else None

    def mark_as_dirty(self) -> None:
        self.dirty = True

    def mark_as_pristine(self) -> None:
        self.dirty = False

    def mark_as_touched(self) -> None:
        self.touched = True

    def mark_as_untouched(self) -> None:
        self.touched = False


class FormGroup:
    """
    The form model: one control per field name.

    Lookup is by name; iteration follows insertion order, which the
    compiler keeps equal to schema row/column order.
    """

    def __init__(self, controls: Optional[Mapping[str, FormControl]] = None):
        self.controls: Dict[str, FormControl] = {}
        self.value_changes = EventStream()
        self.status_changes = EventStream()
        self.status = VALID
        for name, control in (controls or {}).items():
            self.add_control(name, control)

    def __contains__(self, name: object) -> bool:
        return name in self.controls

    def __iter__(self) -> Iterator[str]:
        return iter(self.controls)

    def __len__(self) -> int:
        return len(self.controls)

    def add_control(self, name: str, control: FormControl) -> None:
        """
        Register a control under name.

        Raises:
            DuplicateFieldError: If a control is already registered under name
        """
        if name in self.controls:
            raise DuplicateFieldError(name)
        if control.name is None:
            control.name = name
        control._parent = self
        self.controls[name] = control
        self._update_status()

    def get(self, name: str) -> Optional[FormControl]:
        return self.controls.get(name)

    def control(self, name: str) -> FormControl:
        """Like get(), but raise UnknownFieldError for unknown names."""
        try:
            return self.controls[name]
        except KeyError:
            raise UnknownFieldError(name) from None

    def value(self) -> Dict[str, Any]:
        """Current values keyed by field name (a new dict on every call)."""
        return {name: control.value for name, control in self.controls.items()}

    def valid(self) -> bool:
        return all(control.valid for control in self.controls.values())

    def errors_for(self, name: str) -> Optional[Dict[str, Any]]:
        """Active validation errors of one control, None when it passes."""
        return self.control(name).errors

    def get_errors(self) -> Dict[str, Dict[str, Any]]:
        """Error maps of every failing control."""
        return {name: control.errors for name, control in self.controls.items() if control.errors}

    def _update_status(self) -> None:
        self.status = VALID if self.valid() else INVALID

    def update_value_and_validity(self, emit_event: bool = True) -> None:
        self._update_status()
        if emit_event:
            self.value_changes.emit(self.value())
            self.status_changes.emit(self.status)

    def patch_value(self, values: Mapping[str, Any], emit_event: bool = True) -> None:
        """Set the controls named in values; unknown names are ignored."""
        for name, value in values.items():
            control = self.controls.get(name)
            if control is not None:
                control.set_value(value, emit_event=emit_event, only_self=True)
        self.update_value_and_validity(emit_event=emit_event)

    def reset(self, values: Optional[Mapping[str, Any]] = None, emit_event: bool = True) -> None:
        """
        Reset every control to values[name], or to its empty value.

        Dirty and touched flags are cleared on every control.
        """
        values = values or {}
        for name, control in self.controls.items():
            control.reset(values.get(name), emit_event=emit_event, only_self=True)
        self.update_value_and_validity(emit_event=emit_event)

    def mark_all_as_touched(self) -> None:
        for control in self.controls.values():
            control.mark_as_touched()
