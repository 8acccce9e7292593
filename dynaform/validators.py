"""
Validator DSL translator for dynamic forms.

Field descriptors list their validators as shorthand strings
('required', 'minLength:4', 'pattern:^[0-9]+$'), structured specs
({'type': 'max', 'value': 10}) or ready-made callables. map_validators()
turns such a list into callables that take a control and return either
None or an error map such as {'minlength': {'requiredLength': 4, 'actualLength': 2}}.
"""

import math
import re
import logging
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Union

from .descriptors import ValidatorSpec
from .exceptions import SchemaError

logger = logging.getLogger(__name__)

ValidationErrors = Dict[str, Any]
Validator = Callable[[Any], Optional[ValidationErrors]]

# Error names in the order their messages take precedence
ERROR_PRIORITY = ('required', 'minlength', 'maxlength', 'min', 'max', 'pattern', 'email')

EMAIL_REGEXP = re.compile(
    r"^(?=.{1,254}$)(?=.{1,64}@)"
    r"[a-zA-Z0-9!#$%&'*+/=?^_`{|}~-]+(?:\.[a-zA-Z0-9!#$%&'*+/=?^_`{|}~-]+)*"
    r"@[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?"
    r"(?:\.[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?)*$"
)


def _is_empty(value: Any) -> bool:
    """None and zero-length values count as 'not filled in'."""
    if value is None:
        return True
    try:
        return len(value) == 0
    except TypeError:
        return False


def _has_length(value: Any) -> bool:
    return value is not None and hasattr(value, '__len__')


def _tag(validator: Validator, error_key: str) -> Validator:
    validator.error_key = error_key  # type: ignore[attr-defined]
    return validator


def required(control: Any) -> Optional[ValidationErrors]:
    """Fail when the value is None, an empty string or an empty sequence."""
    return {'required': True} if _is_empty(control.value) else None


required.error_key = 'required'  # type: ignore[attr-defined]


def email(control: Any) -> Optional[ValidationErrors]:
    """Fail when a filled-in value is not a plausible email address."""
    value = control.value
    if _is_empty(value):
        return None
    return None if EMAIL_REGEXP.match(str(value)) else {'email': True}


email.error_key = 'email'  # type: ignore[attr-defined]


def min_length(required_length: int) -> Validator:
    """
    Create a validator that fails when the value is shorter than required_length.

    Values without a length (numbers, None) are not checked.
    """
    def validator(control: Any) -> Optional[ValidationErrors]:
        value = control.value
        if not _has_length(value):
            return None
        if len(value) < required_length:
            return {'minlength': {'requiredLength': required_length, 'actualLength': len(value)}}
        return None

    return _tag(validator, 'minlength')


def max_length(required_length: int) -> Validator:
    """Create a validator that fails when the value is longer than required_length."""
    def validator(control: Any) -> Optional[ValidationErrors]:
        value = control.value
        if not _has_length(value):
            return None
        if len(value) > required_length:
            return {'maxlength': {'requiredLength': required_length, 'actualLength': len(value)}}
        return None

    return _tag(validator, 'maxlength')


def _as_number(value: Any) -> Optional[float]:
    if _is_empty(value) or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def min_value(minimum: Union[int, float]) -> Validator:
    """Create a validator that fails when a numeric value is below minimum."""
    def validator(control: Any) -> Optional[ValidationErrors]:
        actual = _as_number(control.value)
        if actual is not None and actual < minimum:
            return {'min': {'min': minimum, 'actual': control.value}}
        return None

    return _tag(validator, 'min')


def max_value(maximum: Union[int, float]) -> Validator:
    """Create a validator that fails when a numeric value is above maximum."""
    def validator(control: Any) -> Optional[ValidationErrors]:
        actual = _as_number(control.value)
        if actual is not None and actual > maximum:
            return {'max': {'max': maximum, 'actual': control.value}}
        return None

    return _tag(validator, 'max')


def pattern(regex: Union[str, 're.Pattern[str]']) -> Validator:
    """
    Create a validator that requires the whole value to match regex.

    String patterns are anchored with ^ and $ unless they already are;
    compiled patterns are used as given.

    Raises:
        SchemaError: If a string pattern is not a valid regular expression
    """
    if isinstance(regex, str):
        source = regex
        if not source.startswith('^'):
            source = '^' + source
        if not source.endswith('$'):
            source = source + '$'
        try:
            compiled = re.compile(source)
        except re.error as e:
            raise SchemaError(f"Invalid regex pattern {regex!r}: {e}", {'pattern': regex})
        required_pattern = source
    else:
        compiled = regex
        required_pattern = regex.pattern

    def validator(control: Any) -> Optional[ValidationErrors]:
        value = control.value
        if _is_empty(value):
            return None
        if compiled.search(str(value)):
            return None
        return {'pattern': {'requiredPattern': required_pattern, 'actualValue': value}}

    return _tag(validator, 'pattern')


def _parse_number(argument: Any) -> Optional[Union[int, float]]:
    """Parse a numeric validator argument; None when it is not a number."""
    if isinstance(argument, bool):
        return None
    if isinstance(argument, (int, float)):
        return argument
    try:
        number = float(str(argument).strip())
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return int(number) if number.is_integer() else number


_NUMERIC_FACTORIES: Dict[str, Callable[[Any], Validator]] = {
    'minLength': lambda n: min_length(int(n)),
    'maxLength': lambda n: max_length(int(n)),
    'min': min_value,
    'max': max_value,
}


def _build(kind: str, argument: Any, spec: Any) -> Optional[Validator]:
    """Build a parameterised validator, or None when kind/argument are unusable."""
    if kind == 'pattern':
        if isinstance(argument, re.Pattern) or (isinstance(argument, str) and argument):
            return pattern(argument)
        logger.warning(f"Ignoring pattern validator without a pattern: {spec!r}")
        return None

    factory = _NUMERIC_FACTORIES.get(kind)
    if factory is None:
        logger.warning(f"Ignoring unrecognised validator spec: {spec!r}")
        return None

    number = _parse_number(argument)
    if number is None:
        logger.warning(f"Ignoring validator {kind!r} with non-numeric argument: {spec!r}")
        return None
    return factory(number)


def translate_validator(spec: Any) -> Optional[Validator]:
    """
    Translate one validator spec.

    Args:
        spec: Shorthand string, structured mapping/ValidatorSpec or callable

    Returns:
        Validator callable, or None when the spec is not recognised
    """
    if callable(spec):
        return spec

    if isinstance(spec, str):
        key, sep, argument = spec.partition(':')
        key = key.strip()
        if not sep:
            if key == 'required':
                return required
            if key == 'email':
                return email
            logger.warning(f"Ignoring unrecognised validator spec: {spec!r}")
            return None
        return _build(key, argument, spec)

    if isinstance(spec, ValidatorSpec):
        return _build(spec.type, spec.value, spec)

    if isinstance(spec, Mapping):
        kind = spec.get('type')
        if not isinstance(kind, str):
            logger.warning(f"Ignoring validator spec without a type: {spec!r}")
            return None
        return _build(kind, spec.get('value'), spec)

    logger.warning(f"Ignoring validator spec of type {type(spec).__name__}: {spec!r}")
    return None


def map_validators(specs: Optional[Iterable[Any]]) -> List[Validator]:
    """
    Translate a list of validator specs, keeping their order.

    Unrecognised specs are dropped.
    """
    if not specs:
        return []
    validators: List[Validator] = []
    for spec in specs:
        validator = translate_validator(spec)
        if validator is not None:
            validators.append(validator)
    return validators


def get_error_message(errors: Optional[Mapping[str, Any]],
                      messages: Optional[Mapping[str, str]] = None) -> str:
    """
    Pick the message for the highest-priority error in an error map.

    Args:
        errors: Error map of a control (None or empty means valid)
        messages: Message templates keyed by error name plus 'invalid'.
            Templates are formatted with the error details when those are a dict.

    Returns:
        Message string, '' when there are no errors
    """
    if not errors:
        return ''
    if messages is None:
        from .config_loader import load_config, get_default_config
        messages = load_config().get('messages') or get_default_config()['messages']

    for error_name in ERROR_PRIORITY:
        if error_name in errors:
            template = messages.get(error_name, messages.get('invalid', 'Invalid field'))
            details = errors[error_name]
            if isinstance(details, dict):
                try:
                    return template.format(**details)
                except (KeyError, IndexError, ValueError):
                    return template
            return template
    return messages.get('invalid', 'Invalid field')
