"""
Change reporting for dynamic forms.
Compares a loaded record with the current form values using DeepDiff and
turns the result into summaries, audit entries and display lines.

The edit/no-edit decision itself is made by ChangeTracker; these helpers
describe a difference once one exists.
"""

from typing import Dict, Any, List, Optional, Set
from deepdiff import DeepDiff
import json
import logging

logger = logging.getLogger(__name__)

CHANGE_TYPES = (
    'values_changed',
    'type_changes',
    'dictionary_item_added',
    'dictionary_item_removed',
    'iterable_item_added',
    'iterable_item_removed',
)


def normalize_value(value: Any) -> Any:
    """
    Normalize a value before comparison.

    Empty strings become None so that a cleared text field and a missing
    value compare equal; lists and dicts are normalized recursively.
    """
    if value is None or value == '':
        return None
    if isinstance(value, (list, tuple)):
        return [normalize_value(item) for item in value]
    if isinstance(value, dict):
        return {key: normalize_value(item) for key, item in value.items()}
    return value


def _path_to_str(level: Any) -> str:
    """Render a DeepDiff tree level path as name[index].child."""
    try:
        tokens = level.path(output_format='list')
    except (TypeError, AttributeError):
        return str(level.path()).replace('root', '', 1) or 'root'

    parts: List[str] = []
    for token in tokens:
        if isinstance(token, int):
            if parts:
                parts[-1] += f"[{token}]"
            else:
                parts.append(f"[{token}]")
        else:
            parts.append(str(token))
    return '.'.join(parts) if parts else 'root'


def calculate_diff(original: Dict[str, Any], modified: Dict[str, Any],
                   fields: Optional[Set[str]] = None) -> Dict[str, Any]:
    """
    Calculate differences between an original record and modified form values.

    Values are normalized first (see normalize_value) and list order is
    ignored, matching how the form decides whether anything changed.

    Args:
        original: Original data dictionary
        modified: Modified data dictionary
        fields: If given, only these keys are compared

    Returns:
        Dict keyed by change type, each mapping a field path to its change:
        - values_changed / type_changes: {'old_value', 'new_value'}
        - dictionary_item_added / iterable_item_added: the new value
        - dictionary_item_removed / iterable_item_removed: the old value
    """
    orig = dict(original or {})
    mod = dict(modified or {})
    if fields is not None:
        orig = {k: v for k, v in orig.items() if k in fields}
        mod = {k: v for k, v in mod.items() if k in fields}

    diff = DeepDiff(
        normalize_value(orig),
        normalize_value(mod),
        ignore_order=True,
        verbose_level=2,
        threshold_to_diff_deeper=0,
        view='tree'
    )

    processed: Dict[str, Any] = {}
    for change_type in CHANGE_TYPES:
        levels = diff.get(change_type)
        if not levels:
            continue
        entries: Dict[str, Any] = {}
        for level in levels:
            path = _path_to_str(level)
            if change_type in ('values_changed', 'type_changes'):
                entries[path] = {'old_value': level.t1, 'new_value': level.t2}
            elif change_type.endswith('_added'):
                entries[path] = level.t2
            else:
                entries[path] = level.t1
        processed[change_type] = entries

    logger.debug(f"Calculated diff with change types: {sorted(processed)}")
    return processed


def has_changes(diff: Dict[str, Any]) -> bool:
    """
    Check if there are any changes in the diff.

    Args:
        diff: Diff dictionary from calculate_diff

    Returns:
        True if there are changes, False otherwise
    """
    if not diff:
        return False
    return any(diff.get(change_type) for change_type in CHANGE_TYPES)


def get_change_summary(diff: Dict[str, Any]) -> Dict[str, int]:
    """
    Get a summary of changes by type.

    Args:
        diff: Diff dictionary from calculate_diff

    Returns:
        Dictionary with change counts by type
    """
    summary = {
        'modified': len(diff.get('values_changed', {})),
        'added': len(diff.get('dictionary_item_added', {})) + len(diff.get('iterable_item_added', {})),
        'removed': len(diff.get('dictionary_item_removed', {})) + len(diff.get('iterable_item_removed', {})),
        'type_changed': len(diff.get('type_changes', {})),
    }
    summary['total'] = sum(summary.values())
    return summary


def _sort_dict_recursive(d: Any) -> Any:
    if not isinstance(d, dict):
        return d
    return {k: _sort_dict_recursive(v) for k, v in sorted(d.items(), key=lambda item: str(item[0]))}


def create_audit_diff_entry(original: Dict[str, Any], modified: Dict[str, Any],
                            entity_id: Optional[Any] = None) -> Dict[str, Any]:
    """
    Create a diff entry suitable for audit logging.

    Args:
        original: Original data
        modified: Modified data
        entity_id: Identity of the edited record, if any

    Returns:
        Audit diff entry
    """
    diff = calculate_diff(original, modified)
    return {
        'entity_id': entity_id,
        'has_changes': has_changes(diff),
        'change_summary': get_change_summary(diff),
        'detailed_diff': diff,
        'original_data': _sort_dict_recursive(original),
        'modified_data': _sort_dict_recursive(modified)
    }


def _format_value(value: Any, max_length: int = 100) -> str:
    """
    Format a value for display, truncating if necessary.

    Args:
        value: Value to format
        max_length: Maximum length for display

    Returns:
        Formatted string
    """
    if value is None:
        return "None"

    if isinstance(value, str):
        if len(value) > max_length:
            return f"{value[:max_length-3]}..."
        return value

    if isinstance(value, (dict, list)):
        json_str = json.dumps(value, ensure_ascii=False, default=str)
        if len(json_str) > max_length:
            return f"{json_str[:max_length-3]}..."
        return json_str

    return str(value)


def format_field_changes(changes: Dict[str, Dict[str, Any]]) -> List[str]:
    """
    Format per-field changes as markdown lines.

    Args:
        changes: {field: {'from': old, 'to': new}} as produced by diff_fields()

    Returns:
        One line per field, in the order given
    """
    return [
        f"- **{name}**: {_format_value(change.get('from'))} → {_format_value(change.get('to'))}"
        for name, change in changes.items()
    ]
