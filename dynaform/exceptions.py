"""
Custom exception classes for dynamic form errors.

Schema problems abort form construction; validation failures are never
raised (they live on the controls). Every error carries context and a list
of recovery suggestions so a caller can show something useful.
"""

import logging
from pathlib import Path
from typing import Optional, Dict, Any, List

logger = logging.getLogger(__name__)


class FormError(Exception):
    """
    Base exception for dynamic form errors.

    Attributes:
        message: Error message
        context: Additional context information
        recovery_suggestions: List of suggested recovery actions
    """

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None,
                 recovery_suggestions: Optional[List[str]] = None):
        self.message = message
        self.context = context or {}
        self.recovery_suggestions = recovery_suggestions or []
        super().__init__(self.message)

    def __str__(self) -> str:
        return self.message

    def get_full_details(self) -> Dict[str, Any]:
        """Get complete error details including context and suggestions."""
        return {
            'error_type': self.__class__.__name__,
            'message': self.message,
            'context': self.context,
            'recovery_suggestions': self.recovery_suggestions
        }


class SchemaError(FormError):
    """Raised when a schema cannot be compiled into a form model."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        recovery_suggestions = [
            "Check that the schema is a list of rows, each a list of fields",
            "Verify every field has a supported 'type' and a 'name'",
            "Ensure option keys are unique within each select field"
        ]
        super().__init__(message, context, recovery_suggestions)


class DuplicateFieldError(SchemaError):
    """
    Raised when two field descriptors in one schema share a name.

    Diffing and context caching are keyed by field name, so the whole
    schema is rejected instead of letting the later field win.
    """

    def __init__(self, field_name: str, positions: Optional[List[tuple]] = None):
        self.field_name = field_name
        self.positions = positions or []
        message = f"Duplicate field name '{field_name}' in schema"
        if self.positions:
            where = ", ".join(f"row {r} field {c}" for r, c in self.positions)
            message = f"{message} (at {where})"
        super().__init__(message, {'field_name': field_name, 'positions': self.positions})


class UnknownFieldError(FormError, KeyError):
    """Raised when a field name has no control in the form model."""

    def __init__(self, field_name: str):
        self.field_name = field_name
        super().__init__(
            f"No control registered for field '{field_name}'",
            {'field_name': field_name},
            ["Check the field name against the compiled schema"]
        )

    def __str__(self) -> str:
        return self.message


class FormNotStartedError(FormError):
    """Raised when a form operation runs before a schema was started."""

    def __init__(self, operation: str):
        super().__init__(
            f"Cannot {operation}: form has not been started with a schema",
            {'operation': operation},
            ["Call start(schema) before using the form"]
        )


class SchemaLoadError(FormError):
    """Raised when a schema file cannot be read or parsed."""

    def __init__(self, schema_path: Path, original_error: Optional[Exception] = None,
                 message: Optional[str] = None):
        self.schema_path = schema_path
        self.original_error = original_error

        if message is None:
            message = f"Failed to load schema from {schema_path}"
            if original_error is not None:
                message = f"{message}: {original_error}"

        context = {'schema_path': str(schema_path)}
        if original_error is not None:
            context['original_error_type'] = type(original_error).__name__
            context['original_error_message'] = str(original_error)

        recovery_suggestions = [
            "Check that the schema file exists",
            "Verify YAML/JSON syntax is correct",
            "Use a .yaml, .yml or .json extension"
        ]
        super().__init__(message, context, recovery_suggestions)


class ConfigurationLoadError(FormError):
    """
    Exception raised when configuration file loading fails.

    Only raised in strict mode; normal loading falls back to defaults.
    """

    def __init__(self, config_path: Path, original_error: Exception,
                 message: Optional[str] = None):
        self.config_path = config_path
        self.original_error = original_error

        if message is None:
            message = f"Failed to load configuration from {config_path}: {str(original_error)}"

        context = {
            'config_path': str(config_path),
            'original_error_type': type(original_error).__name__,
            'original_error_message': str(original_error)
        }

        recovery_suggestions = [
            "Check if config.yaml exists and is readable",
            "Verify YAML syntax is correct",
            "Application will use default configuration as fallback"
        ]

        super().__init__(message, context, recovery_suggestions)
