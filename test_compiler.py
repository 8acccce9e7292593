"""
Unit tests for the schema compiler and descriptor parsing.
"""

import pytest

from dynaform.compiler import (
    compile_schema, generate_field_id, initial_value, iter_fields, parse_schema
)
from dynaform.descriptors import MultiSelectField, SelectField, TextField, parse_field
from dynaform.exceptions import DuplicateFieldError, SchemaError


@pytest.fixture
def schema():
    return [
        [
            {'type': 'text', 'name': 'name', 'label': 'Name', 'validators': ['required']},
            {'type': 'number', 'name': 'age', 'min': 0, 'validators': ['min:0']},
        ],
        [
            {'type': 'select', 'name': 'campus', 'value': 'north',
             'options': [{'key': 'north', 'description': 'North'}]},
            {'type': 'multiselect', 'name': 'courses',
             'options': [{'key': 1, 'description': 'Algebra'}, {'key': 2, 'description': 'Biology'}]},
        ],
        [
            {'type': 'textarea', 'name': 'notes'},
        ],
    ]


class TestParseField:
    """Test cases for descriptor parsing."""

    def test_type_selects_model(self):
        assert isinstance(parse_field({'type': 'text', 'name': 'a'}), TextField)
        assert isinstance(parse_field({'type': 'select', 'name': 'b'}), SelectField)
        assert isinstance(parse_field({'type': 'multiselect', 'name': 'c'}), MultiSelectField)

    def test_model_instances_pass_through(self):
        field = TextField(type='text', name='a')

        assert parse_field(field) is field

    def test_defaults(self):
        assert parse_field({'type': 'text', 'name': 'a'}).value == ''
        assert parse_field({'type': 'multiselect', 'name': 'b'}).value == []
        assert parse_field({'type': 'number', 'name': 'c'}).value is None

    @pytest.mark.parametrize("raw", [
        {'type': 'date', 'name': 'a'},
        {'type': 'text'},
        {'type': 'text', 'name': ''},
        {'name': 'a'},
        "text",
    ])
    def test_invalid_definitions(self, raw):
        with pytest.raises(SchemaError):
            parse_field(raw)

    def test_duplicate_option_keys(self):
        raw = {'type': 'select', 'name': 'a', 'options': [
            {'key': 1, 'description': 'One'}, {'key': 1, 'description': 'Uno'}]}

        with pytest.raises(SchemaError):
            parse_field(raw)

    def test_context_params_exclude_type_and_value(self):
        field = parse_field({'type': 'text', 'name': 'a', 'label': 'A', 'value': 'x', 'hint': 'extra'})

        params = field.context_params()

        assert params == {'name': 'a', 'label': 'A', 'hint': 'extra'}


class TestCompileSchema:
    """Test cases for compile_schema."""

    def test_one_control_per_field_in_row_major_order(self, schema):
        form = compile_schema(schema)

        assert list(form) == ['name', 'age', 'campus', 'courses', 'notes']

    def test_initial_values(self, schema):
        form = compile_schema(schema)

        assert form.value() == {
            'name': '',
            'age': None,
            'campus': 'north',
            'courses': [],
            'notes': '',
        }

    def test_validators_are_attached(self, schema):
        form = compile_schema(schema)

        assert form.errors_for('name') == {'required': True}
        assert not form.valid()

        form.control('name').set_value('Ana')
        assert form.valid()

    def test_multiselect_non_list_value_becomes_empty_list(self):
        form = compile_schema([[{'type': 'multiselect', 'name': 'tags', 'value': 'oops'}]])

        assert form.value() == {'tags': []}
        assert form.control('tags').multiple

    def test_multiselect_value_is_copied(self):
        declared = [1, 2]
        field = parse_field({'type': 'multiselect', 'name': 'tags', 'value': declared})

        value = initial_value(field)
        value.append(3)

        assert field.value == [1, 2]

    def test_duplicate_names_rejected(self):
        schema = [
            [{'type': 'text', 'name': 'a'}],
            [{'type': 'number', 'name': 'a'}],
        ]

        with pytest.raises(DuplicateFieldError) as exc_info:
            compile_schema(schema)

        assert exc_info.value.field_name == 'a'
        assert exc_info.value.positions == [(0, 0), (1, 0)]

    def test_invalid_field_builds_nothing(self):
        schema = [[{'type': 'text', 'name': 'ok'}, {'type': 'bogus', 'name': 'bad'}]]

        with pytest.raises(SchemaError):
            compile_schema(schema)

    @pytest.mark.parametrize("schema", ["rows", {'rows': []}, [{'type': 'text', 'name': 'a'}], None])
    def test_bad_schema_shape(self, schema):
        with pytest.raises(SchemaError):
            compile_schema(schema)

    def test_empty_schema(self):
        form = compile_schema([])

        assert len(form) == 0
        assert form.valid()

    def test_unknown_validator_is_ignored(self):
        form = compile_schema([[{'type': 'text', 'name': 'a', 'validators': ['bogus', 'required']}]])

        assert form.errors_for('a') == {'required': True}


class TestHelpers:
    """Test cases for compiler helpers."""

    def test_iter_fields(self, schema):
        positions = [(r, c, f.name) for r, c, f in iter_fields(schema)]

        assert positions[0] == (0, 0, 'name')
        assert positions[-1] == (2, 0, 'notes')

    def test_parse_schema_rows(self, schema):
        rows = parse_schema(schema)

        assert [len(row) for row in rows] == [2, 2, 1]

    def test_generate_field_id(self):
        assert generate_field_id('name', 'text', 0, 1) == 'text-name-row0-field1'
