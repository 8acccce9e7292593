"""
Searchable single/multi selection widget state machines.

Both widgets are comboboxes: closed or open, and while open they keep a
search term, the options matching it and a hovered index into those
options (-1 when nothing is hovered). Keyboard navigation wraps around
at both ends.

The bound control is the source of truth. Every change of its value,
including programmatic ones, re-derives the widget's selection from the
option keys; keys with no matching option are dropped.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Dict, Hashable, List, Optional, Sequence, Union

from .config_loader import get_config_value
from .controls import FormControl
from .descriptors import SelectOption
from .field_context import FieldContext

logger = logging.getLogger(__name__)

SPACE_KEYS = (' ', 'Space', 'Spacebar')
SELECT_KEYS = ('Enter',) + SPACE_KEYS
OPEN_KEYS = SELECT_KEYS + ('ArrowDown',)

DEFAULT_MAX_VISIBLE_ITEMS = 3

OptionLike = Union[SelectOption, Dict[str, Any]]


@dataclass
class KeyEvent:
    """Keyboard event as seen by a widget; flags mirror DOM semantics."""

    key: str
    default_prevented: bool = False
    propagation_stopped: bool = False

    def prevent_default(self) -> None:
        self.default_prevented = True

    def stop_propagation(self) -> None:
        self.propagation_stopped = True

    def consume(self) -> None:
        self.prevent_default()
        self.stop_propagation()


def _as_option(option: OptionLike) -> SelectOption:
    if isinstance(option, SelectOption):
        return option
    return SelectOption.model_validate(option)


class _ComboboxBase(ABC):
    """Open/close, search, hover and keyboard handling shared by both widgets."""

    placeholder_config_key = 'single_placeholder'
    default_placeholder = 'Select an option'

    def __init__(self, control: FormControl, options: Optional[Sequence[OptionLike]] = None,
                 name: Optional[str] = None, placeholder: Optional[str] = None,
                 max_visible_items: Optional[int] = None,
                 on_focus: Optional[Callable[[], None]] = None):
        self.control = control
        self.options: List[SelectOption] = [_as_option(option) for option in (options or [])]
        self._options_by_key: Dict[Any, SelectOption] = {option.key: option for option in self.options}
        self.field_id = name or control.name or 'select-field'
        self.placeholder = placeholder or get_config_value(
            'forms', self.placeholder_config_key, self.default_placeholder)
        if max_visible_items is None:
            max_visible_items = get_config_value('forms', 'max_visible_items', DEFAULT_MAX_VISIBLE_ITEMS)
        self.max_visible_items = max_visible_items
        self._on_focus = on_focus

        self.is_open = False
        self.search_term = ''
        self.filtered_options: List[SelectOption] = list(self.options)
        self.hovered_index = -1

        self._subscription = control.value_changes.subscribe(self._sync_from_control)
        self._sync_from_control(control.value)

    @classmethod
    def from_context(cls, context: FieldContext, **kwargs):
        """Build a widget from a field context (control, options, name, placeholder)."""
        return cls(
            context.control,
            options=context.get('options'),
            name=context.get('name'),
            placeholder=context.get('placeholder'),
            **kwargs
        )

    def dispose(self) -> None:
        """Stop following the control's value."""
        self._subscription.unsubscribe()

    def option_for(self, key: Any) -> Optional[SelectOption]:
        """Option with the given key, None if there is none."""
        if not isinstance(key, Hashable):
            return None
        return self._options_by_key.get(key)

    def _request_focus(self) -> None:
        if self._on_focus is not None:
            self._on_focus()

    def _apply_filter(self) -> None:
        term = self.search_term.lower()
        if not term:
            self.filtered_options = list(self.options)
        else:
            self.filtered_options = [
                option for option in self.options if term in option.description.lower()
            ]

    def _hover_first(self) -> None:
        self.hovered_index = 0 if self.filtered_options else -1

    # -- state transitions -------------------------------------------------

    def open(self) -> None:
        self.is_open = True
        self._apply_filter()
        self._hover_first()
        self._request_focus()
        logger.debug(f"[{self.field_id}] opened with {len(self.filtered_options)} option(s)")

    def close(self) -> None:
        self.is_open = False
        self.search_term = ''
        self._apply_filter()
        self.hovered_index = -1
        logger.debug(f"[{self.field_id}] closed")

    def toggle(self) -> None:
        if self.is_open:
            self.close()
        else:
            self.open()

    def search(self, term: Optional[str]) -> None:
        """Narrow the options to descriptions containing term (case-insensitive)."""
        if not self.is_open:
            logger.debug(f"[{self.field_id}] ignoring search while closed")
            return
        self.search_term = term or ''
        self._apply_filter()
        self._hover_first()

    def clear_search(self) -> None:
        self.search('')

    def navigate_down(self) -> None:
        count = len(self.filtered_options)
        if count == 0:
            return
        if self.hovered_index < count - 1:
            self.hovered_index += 1
        else:
            self.hovered_index = 0

    def navigate_up(self) -> None:
        count = len(self.filtered_options)
        if count == 0:
            return
        if self.hovered_index > 0:
            self.hovered_index -= 1
        else:
            self.hovered_index = count - 1

    def hover(self, index: int) -> None:
        if 0 <= index < len(self.filtered_options):
            self.hovered_index = index

    def is_option_hovered(self, index: int) -> bool:
        return self.hovered_index == index

    @property
    def hovered_option(self) -> Optional[SelectOption]:
        if 0 <= self.hovered_index < len(self.filtered_options):
            return self.filtered_options[self.hovered_index]
        return None

    @abstractmethod
    def select(self, option: OptionLike) -> None:
        """Apply a user choice of option to the bound control."""

    def select_hovered(self) -> bool:
        option = self.hovered_option
        if option is None:
            return False
        self.select(option)
        return True

    @abstractmethod
    def is_option_selected(self, option: OptionLike) -> bool:
        """Whether option is part of the current selection."""

    @abstractmethod
    def _sync_from_control(self, value: Any) -> None:
        """Re-derive the selection from a control value."""

    # -- input events ------------------------------------------------------

    def handle_key(self, event: KeyEvent) -> bool:
        """
        Apply the keyboard contract.

        Closed: Enter/Space/ArrowDown open the widget.
        Open: arrows move the hover, Enter/Space select the hovered option,
        Escape closes and returns focus, Tab closes without selecting.

        Returns:
            True if the key was handled
        """
        key = event.key
        if not self.is_open:
            if key in OPEN_KEYS:
                event.prevent_default()
                self.open()
                return True
            return False

        if key == 'ArrowDown':
            event.consume()
            self.navigate_down()
        elif key == 'ArrowUp':
            event.consume()
            self.navigate_up()
        elif key in SELECT_KEYS:
            event.consume()
            self.select_hovered()
        elif key == 'Escape':
            event.consume()
            self.close()
            self._request_focus()
        elif key == 'Tab':
            self.close()
        else:
            return False
        return True

    def handle_document_click(self, inside: bool) -> None:
        """Close when a click lands outside the widget's container."""
        if not inside and self.is_open:
            self.close()


class SelectWidget(_ComboboxBase):
    """Single selection: the control holds one option key or None."""

    def __init__(self, *args, **kwargs):
        self.selected_item: Optional[SelectOption] = None
        super().__init__(*args, **kwargs)

    def _sync_from_control(self, value: Any) -> None:
        option = self.option_for(value)
        if option is None and value not in (None, ''):
            logger.warning(f"[{self.field_id}] unknown option key {value!r}; showing no selection")
        self.selected_item = option

    def select(self, option: OptionLike) -> None:
        option = _as_option(option)
        self.control.set_value(option.key)
        self.control.mark_as_dirty()
        self.control.mark_as_touched()
        self.close()

    def clear_selection(self) -> None:
        self.control.set_value(None)
        self.control.mark_as_dirty()

    def is_option_selected(self, option: OptionLike) -> bool:
        return self.selected_item is not None and self.selected_item.key == _as_option(option).key

    def has_selection(self) -> bool:
        return self.selected_item is not None

    @property
    def display_text(self) -> str:
        return self.selected_item.description if self.selected_item else self.placeholder


class MultiSelectWidget(_ComboboxBase):
    """Multiple selection: the control holds a list of option keys."""

    placeholder_config_key = 'multi_placeholder'
    default_placeholder = 'Select options'

    def __init__(self, *args, **kwargs):
        self.selected_items: List[SelectOption] = []
        self.display_text = ''
        self.hidden_count = 0
        super().__init__(*args, **kwargs)

    @property
    def selected_keys(self) -> List[Any]:
        return [item.key for item in self.selected_items]

    def _sync_from_control(self, value: Any) -> None:
        items: List[SelectOption] = []
        if isinstance(value, (list, tuple)):
            for key in value:
                option = self.option_for(key)
                if option is None:
                    logger.warning(f"[{self.field_id}] dropping unknown option key {key!r}")
                    continue
                items.append(option)
        self.selected_items = items
        self._update_display()

    def _update_display(self) -> None:
        if not self.selected_items:
            self.display_text = self.placeholder
            self.hidden_count = 0
            return
        visible = self.selected_items[:self.max_visible_items]
        self.display_text = ', '.join(item.description for item in visible)
        self.hidden_count = max(0, len(self.selected_items) - self.max_visible_items)

    def _commit(self, keys: List[Any]) -> None:
        self.control.set_value(list(keys))
        self.control.mark_as_dirty()
        self.control.mark_as_touched()

    def is_option_selected(self, option: OptionLike) -> bool:
        key = _as_option(option).key
        return any(item.key == key for item in self.selected_items)

    def select(self, option: OptionLike) -> None:
        """Toggle option membership; the widget stays open."""
        option = _as_option(option)
        if self.is_option_selected(option):
            self.remove_option(option)
        else:
            self.add_option(option)

    def add_option(self, option: OptionLike) -> None:
        option = _as_option(option)
        if not self.is_option_selected(option):
            self._commit(self.selected_keys + [option.key])

    def remove_option(self, option: OptionLike) -> None:
        key = _as_option(option).key
        self._commit([k for k in self.selected_keys if k != key])

    def remove_option_at(self, index: int) -> None:
        keys = self.selected_keys
        if 0 <= index < len(keys):
            del keys[index]
            self._commit(keys)

    def select_all(self) -> None:
        self._commit([option.key for option in self.options])

    def clear_all(self) -> None:
        self._commit([])

    @property
    def is_all_selected(self) -> bool:
        return len(self.options) > 0 and len(self.selected_items) == len(self.options)

    def toggle_select_all(self) -> None:
        if self.is_all_selected:
            self.clear_all()
        else:
            self.select_all()

    @property
    def selected_count(self) -> int:
        return len(self.selected_items)

    def has_selection(self) -> bool:
        return bool(self.selected_items)

    @property
    def placeholder_text(self) -> str:
        return '' if self.selected_items else self.placeholder


def build_widget(context: FieldContext, field_type: str, **kwargs) -> _ComboboxBase:
    """
    Create the selection widget for a select or multiselect field.

    Raises:
        ValueError: For any other field type
    """
    if field_type == 'select':
        return SelectWidget.from_context(context, **kwargs)
    if field_type == 'multiselect':
        return MultiSelectWidget.from_context(context, **kwargs)
    raise ValueError(f"No selection widget for field type '{field_type}'")
