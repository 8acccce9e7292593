"""
Tests for dynamic form exception classes.
"""

from pathlib import Path

import pytest

from dynaform.exceptions import (
    ConfigurationLoadError, DuplicateFieldError, FormError, FormNotStartedError,
    SchemaError, SchemaLoadError, UnknownFieldError
)


class TestFormErrors:

    def test_full_details(self):
        error = SchemaError("bad row", {'row': 2})

        details = error.get_full_details()

        assert details['error_type'] == 'SchemaError'
        assert details['message'] == 'bad row'
        assert details['context'] == {'row': 2}
        assert details['recovery_suggestions']

    def test_duplicate_field_positions(self):
        error = DuplicateFieldError('email', [(0, 1), (2, 0)])

        assert isinstance(error, SchemaError)
        assert error.field_name == 'email'
        assert str(error) == "Duplicate field name 'email' in schema (at row 0 field 1, row 2 field 0)"

    def test_unknown_field_is_key_error(self):
        with pytest.raises(KeyError):
            raise UnknownFieldError('ghost')

        assert str(UnknownFieldError('ghost')) == "No control registered for field 'ghost'"

    def test_not_started(self):
        error = FormNotStartedError('submit')

        assert isinstance(error, FormError)
        assert 'Cannot submit' in str(error)

    def test_schema_load_error_context(self):
        error = SchemaLoadError(Path('schemas/x.yaml'), ValueError('boom'))

        assert error.context['original_error_type'] == 'ValueError'
        assert 'boom' in str(error)

    def test_schema_load_error_custom_message(self):
        error = SchemaLoadError(Path('x.yaml'), message='Schema file not found: x.yaml')

        assert str(error) == 'Schema file not found: x.yaml'
        assert 'original_error_type' not in error.context

    def test_configuration_load_error(self):
        error = ConfigurationLoadError(Path('config.yaml'), OSError('denied'))

        assert error.context['original_error_type'] == 'OSError'
        assert 'denied' in error.message
