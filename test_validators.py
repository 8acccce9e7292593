"""
Unit tests for the validator DSL translator.
"""

import re

import pytest

from dynaform.controls import FormControl
from dynaform.descriptors import ValidatorSpec
from dynaform.exceptions import SchemaError
from dynaform.validators import (
    ERROR_PRIORITY, email, get_error_message, map_validators, pattern,
    required, translate_validator
)


def run(validator, value):
    """Run a single validator against a throwaway control."""
    return validator(FormControl(value))


class TestRequired:
    """Test cases for the required validator."""

    @pytest.mark.parametrize("value", [None, "", [], ()])
    def test_required_fails_on_empty(self, value):
        assert run(required, value) == {'required': True}

    @pytest.mark.parametrize("value", ["a", 0, [1], False])
    def test_required_passes_on_filled(self, value):
        assert run(required, value) is None


class TestTranslateValidator:
    """Test cases for translate_validator and map_validators."""

    def test_shorthand_min_length(self):
        """minLength:N fails when the length is below N."""
        validator = translate_validator("minLength:4")

        assert run(validator, "abc") == {'minlength': {'requiredLength': 4, 'actualLength': 3}}
        assert run(validator, "abcd") is None

    def test_min_length_on_empty_string(self):
        """An empty string has length 0, which is below any positive minimum."""
        validator = translate_validator("minLength:2")

        assert run(validator, "") == {'minlength': {'requiredLength': 2, 'actualLength': 0}}
        assert run(validator, None) is None

    def test_shorthand_max_length(self):
        validator = translate_validator("maxLength:3")

        assert run(validator, "abcd") == {'maxlength': {'requiredLength': 3, 'actualLength': 4}}
        assert run(validator, "abc") is None

    def test_max_length_on_lists(self):
        validator = translate_validator("maxLength:2")

        assert run(validator, [1, 2, 3])['maxlength']['actualLength'] == 3
        assert run(validator, [1, 2]) is None

    def test_shorthand_min_and_max(self):
        minimum = translate_validator("min:18")
        maximum = translate_validator("max:65")

        assert run(minimum, 17) == {'min': {'min': 18, 'actual': 17}}
        assert run(minimum, 18) is None
        assert run(maximum, 66) == {'max': {'max': 65, 'actual': 66}}
        assert run(maximum, 65) is None

    def test_min_max_skip_empty_values(self):
        minimum = translate_validator("min:1")

        assert run(minimum, None) is None
        assert run(minimum, "") is None

    def test_float_argument(self):
        validator = translate_validator("max:2.5")

        assert run(validator, 2.6) == {'max': {'max': 2.5, 'actual': 2.6}}
        assert run(validator, 2.5) is None

    def test_pattern_keeps_text_after_first_colon(self):
        """Only the first colon separates the kind from the argument."""
        validator = translate_validator("pattern:^\\d{2}:\\d{2}$")

        assert run(validator, "12:30") is None
        assert 'pattern' in run(validator, "1230")

    def test_pattern_is_anchored(self):
        validator = pattern("[a-z]+")

        assert run(validator, "abc") is None
        assert run(validator, "abc1") == {
            'pattern': {'requiredPattern': '^[a-z]+$', 'actualValue': 'abc1'}
        }

    def test_pattern_accepts_compiled_regex(self):
        validator = translate_validator({'type': 'pattern', 'value': re.compile(r"^x")})

        assert run(validator, "xyz") is None
        assert run(validator, "yz")['pattern']['requiredPattern'] == '^x'

    @pytest.mark.parametrize("spec", ["pattern:", {'type': 'pattern', 'value': ''}])
    def test_empty_pattern_adds_no_validator(self, spec):
        assert translate_validator(spec) is None
        assert FormControl("abc", map_validators([spec])).errors is None

    def test_invalid_pattern_raises_schema_error(self):
        with pytest.raises(SchemaError):
            translate_validator("pattern:[unclosed")

    def test_required_and_email_keywords(self):
        assert translate_validator("required") is required
        assert translate_validator("email") is email

    def test_email(self):
        assert run(email, "ana@example.com") is None
        assert run(email, "not-an-email") == {'email': True}
        assert run(email, "") is None

    def test_structured_specs(self):
        from_mapping = translate_validator({'type': 'minLength', 'value': 3})
        from_model = translate_validator(ValidatorSpec(type='max', value=10))

        assert 'minlength' in run(from_mapping, "ab")
        assert run(from_model, 11) == {'max': {'max': 10, 'actual': 11}}

    def test_callable_passes_through(self):
        def custom(control):
            return None if control.value == "ok" else {'custom': True}

        assert translate_validator(custom) is custom

    @pytest.mark.parametrize("spec", [
        "unknown",
        "minLength:abc",
        "min:",
        "max:inf",
        {'value': 3},
        42,
        None,
    ])
    def test_unrecognised_specs_are_ignored(self, spec):
        assert translate_validator(spec) is None

    def test_map_validators_keeps_order_and_drops_unknown(self):
        validators = map_validators(["required", "bogus", "minLength:2"])

        assert len(validators) == 2
        assert validators[0] is required
        assert validators[1].error_key == 'minlength'

    def test_map_validators_empty(self):
        assert map_validators(None) == []
        assert map_validators([]) == []


class TestGetErrorMessage:
    """Test cases for priority-ordered error messages."""

    messages = {
        'required': 'Required',
        'minlength': 'Min {requiredLength}',
        'max': 'At most {max}',
        'email': 'Bad email',
        'invalid': 'Invalid field',
    }

    def test_no_errors(self):
        assert get_error_message(None, self.messages) == ''
        assert get_error_message({}, self.messages) == ''

    def test_priority_order(self):
        errors = {'email': True, 'required': True, 'minlength': {'requiredLength': 3, 'actualLength': 0}}

        assert get_error_message(errors, self.messages) == 'Required'

    def test_template_formatting(self):
        errors = {'minlength': {'requiredLength': 3, 'actualLength': 1}}

        assert get_error_message(errors, self.messages) == 'Min 3'

    def test_missing_template_falls_back_to_invalid(self):
        errors = {'pattern': {'requiredPattern': '^a$', 'actualValue': 'b'}}

        assert get_error_message(errors, self.messages) == 'Invalid field'

    def test_unknown_error_name(self):
        assert get_error_message({'custom': True}, self.messages) == 'Invalid field'

    def test_default_messages_from_config(self):
        assert get_error_message({'required': True}) == 'This field is required'

    def test_priority_constant(self):
        assert ERROR_PRIORITY == ('required', 'minlength', 'maxlength', 'min', 'max', 'pattern', 'email')
