"""
Schema loading utilities for dynamic forms.
Reads form schemas from YAML or JSON files and checks them before they
reach the compiler.

A schema file holds either a list of rows directly, or a mapping with a
'rows' key (plus optional 'title' and 'description').
"""

import json
import yaml
from pathlib import Path
from typing import Dict, Any, Optional, List, Union
import logging
import os
import streamlit as st

from .compiler import check_unique_names, parse_schema
from .config_loader import get_config_value
from .descriptors import BaseField
from .exceptions import SchemaError, SchemaLoadError

logger = logging.getLogger(__name__)

SCHEMA_EXTENSIONS = ('.yaml', '.yml', '.json')


def get_schemas_dir() -> Path:
    return Path(get_config_value('schema', 'schemas_dir', 'schemas'))


def resolve_schema_path(schema_path: Union[str, Path]) -> Path:
    """Use schema_path as given if it exists, otherwise look in the schemas directory."""
    path = Path(schema_path)
    if path.exists() or path.is_absolute():
        return path
    return get_schemas_dir() / path


def extract_rows(document: Any) -> List[Any]:
    """
    Get the rows out of a parsed schema document.

    Raises:
        SchemaError: If the document is neither a list nor a mapping with 'rows'
    """
    if isinstance(document, list):
        return document
    if isinstance(document, dict) and 'rows' in document:
        rows = document['rows']
        if isinstance(rows, list):
            return rows
        raise SchemaError("Schema 'rows' must be a list", {'rows_type': type(rows).__name__})
    raise SchemaError("Schema must be a list of rows or a mapping with a 'rows' key",
                      {'document_type': type(document).__name__})


def validate_schema(rows: Any) -> List[List[BaseField]]:
    """
    Validate schema rows without building a form.

    Args:
        rows: Raw rows of field descriptors

    Returns:
        Parsed rows of descriptor models

    Raises:
        SchemaError: If a row or field is malformed
        DuplicateFieldError: If two fields share a name
    """
    parsed = parse_schema(rows)
    check_unique_names(parsed)
    return parsed


def read_schema_document(schema_path: Union[str, Path]) -> Any:
    """
    Read and parse a schema file.

    Raises:
        SchemaLoadError: If the file is missing, has an unsupported
            extension or cannot be parsed
    """
    full_path = resolve_schema_path(schema_path)

    if not full_path.exists():
        raise SchemaLoadError(full_path, message=f"Schema file not found: {full_path}")

    suffix = full_path.suffix.lower()
    if suffix not in SCHEMA_EXTENSIONS:
        raise SchemaLoadError(full_path, message=f"Unsupported schema file format: {suffix}")

    try:
        with open(full_path, 'r', encoding='utf-8') as f:
            if suffix == '.json':
                return json.load(f)
            return yaml.safe_load(f)
    except yaml.YAMLError as e:
        logger.error(f"YAML parsing error in {full_path}: {e}")
        raise SchemaLoadError(full_path, e) from e
    except json.JSONDecodeError as e:
        logger.error(f"JSON parsing error in {full_path}: {e}")
        raise SchemaLoadError(full_path, e) from e
    except OSError as e:
        logger.error(f"Error reading schema {full_path}: {e}")
        raise SchemaLoadError(full_path, e) from e


def load_schema(schema_path: Union[str, Path]) -> List[Any]:
    """
    Load a schema from a YAML or JSON file.

    Args:
        schema_path: Path to the schema file, or a name relative to the
            configured schemas directory

    Returns:
        Raw schema rows, already validated

    Raises:
        SchemaLoadError: If the file cannot be read or parsed
        SchemaError: If its content is not a valid schema
    """
    rows = extract_rows(read_schema_document(schema_path))
    validate_schema(rows)
    field_count = sum(len(row) for row in rows)
    logger.info(f"Successfully loaded schema: {schema_path} ({field_count} field(s))")
    return rows


def get_schema_info(schema_path: Union[str, Path]) -> Dict[str, Any]:
    """
    Get metadata about a schema file.

    Returns:
        Dictionary with title, description, field count and field types
    """
    document = read_schema_document(schema_path)
    parsed = validate_schema(extract_rows(document))
    meta = document if isinstance(document, dict) else {}
    fields = [field for row in parsed for field in row]
    return {
        "title": meta.get('title', 'Untitled Schema'),
        "description": meta.get('description', ''),
        "row_count": len(parsed),
        "field_count": len(fields),
        "field_types": {field.name: field.type for field in fields},
    }


def list_available_schemas(schemas_dir: Optional[Union[str, Path]] = None) -> List[str]:
    """
    List all available schema files in the schemas directory.

    Returns:
        Sorted list of schema filenames ([] if the directory does not exist)
    """
    directory = Path(schemas_dir) if schemas_dir is not None else get_schemas_dir()
    if not directory.is_dir():
        logger.warning(f"Schemas directory not found: {directory}")
        return []

    schema_files = []
    for pattern in ['*.yaml', '*.yml', '*.json']:
        schema_files.extend([f.name for f in directory.glob(pattern)])
    return sorted(schema_files)


def get_configured_schema() -> List[Any]:
    """Load the schema named by schema.primary_schema in config."""
    primary = get_config_value('schema', 'primary_schema', 'enrollment_schema.yaml')
    return load_schema(primary)


def get_schema_mtime(schema_path: Union[str, Path]) -> float:
    """
    Modification time of a schema file, used to detect edits.

    Raises:
        SchemaLoadError: If the file does not exist
    """
    full_path = resolve_schema_path(schema_path)
    if not full_path.exists():
        raise SchemaLoadError(full_path, message=f"Schema file not found: {full_path}")
    return os.path.getmtime(full_path)


@st.cache_data(show_spinner=False)
def _load_schema_with_mtime(path: str, mtime: float) -> List[Any]:
    """
    Load schema with mtime as cache key for hot-reload.

    Args:
        path: Resolved schema path
        mtime: Modification time of the file

    Returns:
        Raw schema rows
    """
    return load_schema(path)


def load_active_schema(schema_path: Union[str, Path]) -> List[Any]:
    """
    Load a schema, re-reading the file only when its modification time changes.

    Raises:
        SchemaLoadError: If the file does not exist or cannot be parsed
    """
    full_path = resolve_schema_path(schema_path)
    mtime = get_schema_mtime(full_path)
    rows = _load_schema_with_mtime(str(full_path), mtime)
    logger.debug(f"Active schema: {full_path} (mtime: {mtime})")
    return rows
