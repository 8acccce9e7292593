"""
Unit tests for schema loading utilities.
"""

import json
import os

import pytest
import yaml

from dynaform import schema_loader
from dynaform.exceptions import DuplicateFieldError, SchemaError, SchemaLoadError
from dynaform.schema_loader import (
    extract_rows, get_configured_schema, get_schema_info, get_schema_mtime,
    list_available_schemas, load_active_schema, load_schema, validate_schema
)


ROWS = [
    [{'type': 'text', 'name': 'name', 'validators': ['required']}],
    [{'type': 'select', 'name': 'campus', 'options': [{'key': 'n', 'description': 'North'}]}],
]


@pytest.fixture
def schemas_dir(tmp_path, monkeypatch):
    """Point the configured schemas directory at a temporary folder."""
    monkeypatch.setattr(schema_loader, 'get_schemas_dir', lambda: tmp_path)
    return tmp_path


class TestExtractRows:
    """Test cases for extract_rows."""

    def test_top_level_list(self):
        assert extract_rows(ROWS) is ROWS

    def test_mapping_with_rows(self):
        assert extract_rows({'title': 'T', 'rows': ROWS}) is ROWS

    @pytest.mark.parametrize("document", [None, 'text', {'fields': {}}, {'rows': 'x'}])
    def test_invalid_documents(self, document):
        with pytest.raises(SchemaError):
            extract_rows(document)


class TestValidateSchema:
    """Test cases for validate_schema."""

    def test_valid_schema(self):
        parsed = validate_schema(ROWS)

        assert [[f.name for f in row] for row in parsed] == [['name'], ['campus']]

    def test_duplicate_names(self):
        with pytest.raises(DuplicateFieldError):
            validate_schema([[{'type': 'text', 'name': 'a'}], [{'type': 'text', 'name': 'a'}]])

    def test_invalid_field(self):
        with pytest.raises(SchemaError):
            validate_schema([[{'type': 'nope', 'name': 'a'}]])


class TestLoadSchema:
    """Test cases for load_schema."""

    def test_load_yaml(self, schemas_dir):
        (schemas_dir / 'form.yaml').write_text(yaml.safe_dump({'rows': ROWS}), encoding='utf-8')

        assert load_schema('form.yaml') == ROWS

    def test_load_json(self, schemas_dir):
        (schemas_dir / 'form.json').write_text(json.dumps(ROWS), encoding='utf-8')

        assert load_schema('form.json') == ROWS

    def test_load_by_full_path(self, tmp_path):
        path = tmp_path / 'direct.yaml'
        path.write_text(yaml.safe_dump(ROWS), encoding='utf-8')

        assert load_schema(path) == ROWS

    def test_missing_file(self, schemas_dir):
        with pytest.raises(SchemaLoadError) as exc_info:
            load_schema('missing.yaml')

        assert 'not found' in str(exc_info.value)

    def test_unsupported_extension(self, schemas_dir):
        (schemas_dir / 'form.txt').write_text('[]', encoding='utf-8')

        with pytest.raises(SchemaLoadError):
            load_schema('form.txt')

    def test_invalid_yaml(self, schemas_dir):
        (schemas_dir / 'bad.yaml').write_text('rows: [unclosed', encoding='utf-8')

        with pytest.raises(SchemaLoadError) as exc_info:
            load_schema('bad.yaml')

        assert exc_info.value.context['original_error_type']

    def test_invalid_json(self, schemas_dir):
        (schemas_dir / 'bad.json').write_text('{not json', encoding='utf-8')

        with pytest.raises(SchemaLoadError):
            load_schema('bad.json')

    def test_invalid_content(self, schemas_dir):
        (schemas_dir / 'dup.yaml').write_text(yaml.safe_dump([[
            {'type': 'text', 'name': 'a'}, {'type': 'text', 'name': 'a'}
        ]]), encoding='utf-8')

        with pytest.raises(DuplicateFieldError):
            load_schema('dup.yaml')


class TestSchemaDiscovery:
    """Test cases for listing and describing schemas."""

    def test_list_available_schemas(self, schemas_dir):
        for name in ['b.yaml', 'a.json', 'c.yml', 'notes.txt']:
            (schemas_dir / name).write_text('[]', encoding='utf-8')

        assert list_available_schemas() == ['a.json', 'b.yaml', 'c.yml']

    def test_list_missing_directory(self, tmp_path):
        assert list_available_schemas(tmp_path / 'nowhere') == []

    def test_get_schema_info(self, schemas_dir):
        document = {'title': 'Enrollment', 'description': 'Demo', 'rows': ROWS}
        (schemas_dir / 'form.yaml').write_text(yaml.safe_dump(document), encoding='utf-8')

        info = get_schema_info('form.yaml')

        assert info['title'] == 'Enrollment'
        assert info['row_count'] == 2
        assert info['field_count'] == 2
        assert info['field_types'] == {'name': 'text', 'campus': 'select'}

    def test_get_configured_schema(self, schemas_dir, monkeypatch):
        (schemas_dir / 'primary.yaml').write_text(yaml.safe_dump(ROWS), encoding='utf-8')
        monkeypatch.setattr(schema_loader, 'get_config_value',
                            lambda section, key, default=None: 'primary.yaml')

        assert get_configured_schema() == ROWS

    def test_bundled_schema_is_valid(self):
        rows = load_schema('schemas/enrollment_schema.yaml')

        assert sum(len(row) for row in rows) == 7

    def test_load_active_schema(self, schemas_dir):
        (schemas_dir / 'active.yaml').write_text(yaml.safe_dump(ROWS), encoding='utf-8')

        assert load_active_schema('active.yaml') == ROWS

    def test_load_active_schema_missing(self, schemas_dir):
        with pytest.raises(SchemaLoadError):
            load_active_schema('gone.yaml')

    def test_get_schema_mtime_tracks_edits(self, schemas_dir):
        path = schemas_dir / 'active.yaml'
        path.write_text(yaml.safe_dump(ROWS), encoding='utf-8')
        os.utime(path, (1000, 1000))
        first = get_schema_mtime('active.yaml')

        os.utime(path, (2000, 2000))

        assert first == 1000
        assert get_schema_mtime('active.yaml') == 2000

    def test_get_schema_mtime_missing(self, schemas_dir):
        with pytest.raises(SchemaLoadError):
            get_schema_mtime('gone.yaml')
