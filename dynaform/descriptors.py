"""
Pydantic models for field descriptors and form status.

A schema is a list of rows, each row a list of field descriptors. Raw
dicts are parsed into the models below through parse_field(); the 'type'
key selects the model. Attributes the models do not declare are kept as
extras so they reach the field context untouched.
"""

from typing import Any, Dict, List, Optional, Union, Literal, Annotated

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator
import logging

from .exceptions import SchemaError

logger = logging.getLogger(__name__)

SUPPORTED_FIELD_TYPES = {'text', 'number', 'textarea', 'select', 'multiselect'}

# Descriptor attributes that configure rendering mode, not the field context
RENDER_MODE_KEYS = ('type', 'value')


class SelectOption(BaseModel):
    """One choice of a select or multiselect field."""

    model_config = ConfigDict(frozen=True)

    key: Union[str, int]
    description: str


class ValidatorSpec(BaseModel):
    """Structured validator spec, e.g. {'type': 'minLength', 'value': 4}."""

    type: str
    value: Any = None


class BaseField(BaseModel):
    """Attributes shared by every field type."""

    model_config = ConfigDict(extra='allow', frozen=True, arbitrary_types_allowed=True)

    type: str
    name: str = Field(min_length=1)
    label: str = ''
    placeholder: Optional[str] = None
    value: Any = None
    validators: List[Any] = Field(default_factory=list)

    def context_params(self) -> Dict[str, Any]:
        """
        Collect every attribute given for this field except type and value.

        Only attributes that were given (declared or extra) are returned,
        declared ones first in class order.
        """
        params: Dict[str, Any] = {}
        for key in type(self).model_fields:
            if key in RENDER_MODE_KEYS or key not in self.model_fields_set:
                continue
            params[key] = getattr(self, key)
        for key, value in (self.model_extra or {}).items():
            if key not in RENDER_MODE_KEYS:
                params[key] = value
        return params


class TextField(BaseField):
    type: Literal['text']
    value: Any = ''


class NumberField(BaseField):
    type: Literal['number']
    min: Optional[Union[int, float]] = None
    max: Optional[Union[int, float]] = None


class TextareaField(BaseField):
    type: Literal['textarea']
    value: Any = ''
    min: Optional[int] = None
    max: Optional[int] = None


class _OptionsField(BaseField):
    options: List[SelectOption] = Field(default_factory=list)

    @field_validator('options')
    @classmethod
    def option_keys_unique(cls, v: List[SelectOption]) -> List[SelectOption]:
        seen = set()
        for option in v:
            if option.key in seen:
                raise ValueError(f"Duplicate option key: {option.key!r}")
            seen.add(option.key)
        return v


class SelectField(_OptionsField):
    type: Literal['select']


class MultiSelectField(_OptionsField):
    type: Literal['multiselect']
    value: Any = Field(default_factory=list)


FieldDescriptor = Annotated[
    Union[TextField, NumberField, TextareaField, SelectField, MultiSelectField],
    Field(discriminator='type'),
]

_descriptor_adapter = TypeAdapter(FieldDescriptor)


def parse_field(raw: Union[BaseField, Dict[str, Any]]) -> BaseField:
    """
    Parse one raw field definition into its descriptor model.

    Args:
        raw: Descriptor model (returned as-is) or mapping with a 'type' key

    Returns:
        Descriptor model instance

    Raises:
        SchemaError: If the definition is not a mapping or fails validation
    """
    if isinstance(raw, BaseField):
        return raw
    if not isinstance(raw, dict):
        raise SchemaError(f"Field definition must be a mapping, got {type(raw).__name__}")

    try:
        return _descriptor_adapter.validate_python(raw)
    except ValidationError as e:
        name = raw.get('name', '<unnamed>')
        errors = [
            f"{' -> '.join(str(loc) for loc in error.get('loc', []))}: {error.get('msg')}"
            for error in e.errors()
        ]
        logger.error(f"Invalid field definition '{name}': {errors}")
        raise SchemaError(f"Invalid field definition '{name}'", {'field_name': name, 'errors': errors})


class FormStatus(BaseModel):
    """Snapshot of a form's submit-related state."""

    is_edit_mode: bool
    has_changes: bool
    is_valid: bool
    can_submit: bool
    entity_id: Optional[Any] = None
