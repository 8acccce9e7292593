"""
Edit-diff tracking for dynamic forms.

When a record is loaded the form values are snapshotted; afterwards the
live values are compared against the snapshot to decide whether the form
has pending changes and which fields differ.

Equality rules (deep_equal):
- lists/tuples are equal when they hold the same elements in any order
  (both copies are sorted before an element-wise comparison)
- mappings are equal when they have the same keys and equal values
- a string compared with a non-string treats None as ''
- everything else uses ==
"""

import copy
import json
import logging
from typing import Any, Dict, List, Mapping, Optional

from .controls import EventStream, FormGroup

logger = logging.getLogger(__name__)


def deep_copy(value: Any) -> Any:
    """Structural copy sharing no mutable state with value."""
    return copy.deepcopy(value)


def _canonical_key(item: Any) -> str:
    try:
        return json.dumps(item, sort_keys=True, default=repr)
    except TypeError:
        # Mapping keys of mixed types
        return repr(item)


def _sorted_copy(items: Any) -> List[Any]:
    items = list(items)
    try:
        return sorted(items)
    except TypeError:
        # Mixed or unorderable element types; mappings sort by their key-sorted JSON
        return sorted(items, key=_canonical_key)


def deep_equal(a: Any, b: Any) -> bool:
    """Compare two values with the order-insensitive rules described above."""
    if a is b:
        return True
    if a is None and b is None:
        return True

    a_is_seq = isinstance(a, (list, tuple))
    b_is_seq = isinstance(b, (list, tuple))
    if a_is_seq and b_is_seq:
        if len(a) != len(b):
            return False
        return all(deep_equal(x, y) for x, y in zip(_sorted_copy(a), _sorted_copy(b)))
    if a_is_seq or b_is_seq:
        return False

    a_is_map = isinstance(a, Mapping)
    b_is_map = isinstance(b, Mapping)
    if a_is_map and b_is_map:
        if len(a) != len(b):
            return False
        for key in a:
            if key not in b:
                return False
            if not deep_equal(a[key], b[key]):
                return False
        return True
    if a_is_map or b_is_map:
        return False

    if isinstance(a, str) or isinstance(b, str):
        a_norm = '' if a is None else a
        b_norm = '' if b is None else b
        return a_norm == b_norm

    if a is None or b is None:
        return False
    return a == b


class ChangeTracker:
    """
    Tracks whether a form differs from the record it was loaded from.

    Attributes:
        is_edit_mode: A record with a non-null identity key was loaded
        has_changes: Result of the last recompute_diff()
        original_snapshot: Deep copy of the form values taken at load time
        current_record: The record passed to the last load()
        on_change: Emits the new has_changes value whenever it flips
    """

    def __init__(self, form: FormGroup, identity_key: str = 'hash'):
        self._form = form
        self.identity_key = identity_key
        self.is_edit_mode = False
        self.has_changes = False
        self.original_snapshot: Dict[str, Any] = {}
        self.current_record: Optional[Dict[str, Any]] = None
        self.on_change = EventStream()

    @property
    def entity_id(self) -> Any:
        if not self.current_record:
            return None
        return self.current_record.get(self.identity_key)

    def _set_has_changes(self, value: bool) -> bool:
        if value == self.has_changes:
            return False
        self.has_changes = value
        logger.debug(f"has_changes -> {value}")
        self.on_change.emit(value)
        return True

    def load(self, record: Mapping[str, Any]) -> None:
        """
        Apply a record to the form and take a new snapshot.

        Only keys that are field names are applied; list values are
        shallow-copied so the caller's lists are never mutated.
        """
        if not isinstance(record, Mapping):
            raise TypeError(f"Record must be a mapping, got {type(record).__name__}")

        self.current_record = dict(record)
        self.is_edit_mode = record.get(self.identity_key) is not None

        form_data: Dict[str, Any] = {}
        for name in self._form.controls:
            if name in record:
                value = record[name]
                form_data[name] = list(value) if isinstance(value, (list, tuple)) else value

        dropped = [key for key in record if key not in form_data and key != self.identity_key]
        if dropped:
            logger.debug(f"Ignoring record keys without a field: {dropped}")

        self._form.patch_value(form_data)
        self.original_snapshot = deep_copy(self._form.value())
        self._set_has_changes(False)

        mode = 'edit' if self.is_edit_mode else 'create'
        logger.info(f"Loaded record into form ({mode} mode, {len(form_data)} field(s))")

    def recompute_diff(self) -> bool:
        """
        Recompute has_changes against the snapshot.

        Outside edit mode has_changes is always False.

        Returns:
            True if has_changes flipped
        """
        if not self.is_edit_mode:
            return self._set_has_changes(False)
        return self._set_has_changes(not deep_equal(self.original_snapshot, self._form.value()))

    def diff_fields(self) -> Dict[str, Dict[str, Any]]:
        """
        Per-field differences from the snapshot.

        Returns:
            {field_name: {'from': original, 'to': current}} for every
            snapshot key whose value changed; {} outside edit mode
        """
        if not self.is_edit_mode:
            return {}

        current = self._form.value()
        changes: Dict[str, Dict[str, Any]] = {}
        for key, original in self.original_snapshot.items():
            value = current.get(key)
            if not deep_equal(original, value):
                changes[key] = {'from': deep_copy(original), 'to': deep_copy(value)}
        return changes

    def is_field_changed(self, name: str) -> bool:
        if not self.is_edit_mode:
            return False
        control = self._form.control(name)
        return not deep_equal(self.original_snapshot.get(name), control.value)

    def revert(self) -> None:
        """Write the snapshot back into the form (single-step undo)."""
        self._form.patch_value(deep_copy(self.original_snapshot))
        self._set_has_changes(False)

    def rebase(self) -> None:
        """Make the current form values the new baseline, e.g. after a save."""
        self.original_snapshot = deep_copy(self._form.value())
        self._set_has_changes(False)

    def clear(self) -> None:
        """Leave edit mode, drop the snapshot and reset the form."""
        self.current_record = None
        self.is_edit_mode = False
        self.original_snapshot = {}
        self._form.reset()
        self._set_has_changes(False)
        logger.info("Cleared form and change snapshot")
