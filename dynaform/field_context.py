"""
Per-field context bundles and their cache.

A rendered field receives a FieldContext: its bound control plus every
descriptor attribute except 'type' and 'value'. Contexts are built once
per field name and reused until the cache is cleared, so a renderer that
asks again gets the same control reference and keeps its subscriptions.
"""

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Iterator, Mapping, Union

from .controls import FormControl, FormGroup
from .descriptors import BaseField, parse_field

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FieldContext:
    """Read-only configuration handed to whatever renders one field."""

    name: str
    control: FormControl
    params: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))

    def __getitem__(self, key: str) -> Any:
        return self.params[key]

    def __contains__(self, key: object) -> bool:
        return key in self.params

    def __iter__(self) -> Iterator[str]:
        return iter(self.params)

    def get(self, key: str, default: Any = None) -> Any:
        return self.params.get(key, default)

    def as_kwargs(self) -> Dict[str, Any]:
        """Parameters plus 'control', ready to be passed as keyword arguments."""
        kwargs = dict(self.params)
        kwargs['control'] = self.control
        return kwargs


class FieldContextCache:
    """
    Memo table of FieldContext objects keyed by field name.

    One cache belongs to one form model. Call clear_cache() before
    reusing a field name with different descriptor metadata.
    """

    def __init__(self, form: FormGroup):
        self._form = form
        self._cache: Dict[str, FieldContext] = {}

    def __len__(self) -> int:
        return len(self._cache)

    def __contains__(self, name: object) -> bool:
        return name in self._cache

    def context_for(self, descriptor: Union[BaseField, Dict[str, Any]]) -> FieldContext:
        """
        Return the cached context for descriptor.name, building it on first use.

        Raises:
            UnknownFieldError: If the form model has no control for the name
            SchemaError: If a raw descriptor fails to parse
        """
        if isinstance(descriptor, BaseField):
            name = descriptor.name
        elif isinstance(descriptor, dict):
            name = descriptor.get('name')
        else:
            name = None
        cached = self._cache.get(name) if isinstance(name, str) else None
        if cached is not None:
            return cached

        descriptor = parse_field(descriptor)
        context = FieldContext(
            name=descriptor.name,
            control=self._form.control(descriptor.name),
            params=MappingProxyType(descriptor.context_params()),
        )
        self._cache[descriptor.name] = context
        logger.debug(f"Created field context for '{descriptor.name}' with params {sorted(context.params)}")
        return context

    def clear_cache(self) -> None:
        count = len(self._cache)
        self._cache.clear()
        logger.debug(f"Cleared {count} field context(s)")
