"""
Schema-to-form-model compiler.

A schema is a list of rows, each row a list of field descriptors. Every
descriptor becomes one FormControl registered under its name, in
row-major order.
"""

import logging
from typing import Any, Dict, Iterator, List, Sequence, Tuple

from .controls import FormControl, FormGroup
from .descriptors import BaseField, parse_field
from .exceptions import DuplicateFieldError, SchemaError
from .validators import map_validators

logger = logging.getLogger(__name__)


def parse_schema(schema: Sequence[Sequence[Any]]) -> List[List[BaseField]]:
    """
    Parse raw schema rows into descriptor models.

    Raises:
        SchemaError: If the schema is not a list of rows or a field is invalid
    """
    if isinstance(schema, (str, bytes, dict)) or not isinstance(schema, Sequence):
        raise SchemaError(f"Schema must be a list of rows, got {type(schema).__name__}")

    rows: List[List[BaseField]] = []
    for row_index, row in enumerate(schema):
        if isinstance(row, (str, bytes, dict)) or not isinstance(row, Sequence):
            raise SchemaError(f"Schema row {row_index} must be a list of fields",
                              {'row': row_index})
        rows.append([parse_field(field) for field in row])
    return rows


def iter_fields(schema: Sequence[Sequence[Any]]) -> Iterator[Tuple[int, int, BaseField]]:
    """Yield (row_index, field_index, descriptor) in row-major order."""
    for row_index, row in enumerate(parse_schema(schema)):
        for field_index, field in enumerate(row):
            yield row_index, field_index, field


def check_unique_names(rows: List[List[BaseField]]) -> None:
    """
    Check that no two parsed fields share a name.

    Raises:
        DuplicateFieldError: On the first name used by more than one field
    """
    positions: Dict[str, List[Tuple[int, int]]] = {}
    for row_index, row in enumerate(rows):
        for field_index, field in enumerate(row):
            positions.setdefault(field.name, []).append((row_index, field_index))
    for name, where in positions.items():
        if len(where) > 1:
            raise DuplicateFieldError(name, where)


def initial_value(field: BaseField) -> Any:
    """Declared value, except multiselect fields always start with a list."""
    if field.type == 'multiselect':
        if isinstance(field.value, list):
            return list(field.value)
        if field.value is not None:
            logger.warning(f"Multiselect field '{field.name}' has non-list value "
                           f"{field.value!r}; using []")
        return []
    return field.value


def build_control(field: BaseField) -> FormControl:
    return FormControl(
        initial_value(field),
        map_validators(field.validators),
        multiple=field.type == 'multiselect',
        name=field.name,
    )


def compile_schema(schema: Sequence[Sequence[Any]]) -> FormGroup:
    """
    Compile a schema into a form model.

    All fields are parsed and their names checked before any control is
    created, so a bad schema never yields a partially built model.

    Args:
        schema: Rows of field descriptors (dicts or descriptor models)

    Returns:
        FormGroup with one control per field

    Raises:
        SchemaError: If the schema shape or a field definition is invalid
        DuplicateFieldError: If two fields share a name
    """
    rows = parse_schema(schema)
    check_unique_names(rows)
    fields = [field for row in rows for field in row]

    controls = [(field.name, build_control(field)) for field in fields]
    form = FormGroup()
    for name, control in controls:
        form.add_control(name, control)

    logger.info(f"Compiled schema with {len(form)} field(s) in {len(rows)} row(s)")
    return form


def generate_field_id(field_name: str, field_type: str, row_index: int, field_index: int) -> str:
    return f"{field_type}-{field_name}-row{row_index}-field{field_index}"
