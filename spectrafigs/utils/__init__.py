"""Utility modules for spectrafigs."""

from spectrafigs.utils.errors import (
    DataNotFoundError,
    DataValidationError,
    ExportIOError,
    InsufficientDataWarning,
    ParameterError,
    ProjectionError,
    SchemaMismatchError,
    SpectraFigsError,
    format_parameter_error,
    format_schema_error,
    raise_parameter_error,
    raise_schema_error,
)

__all__ = [
    "SpectraFigsError",
    "DataNotFoundError",
    "DataValidationError",
    "SchemaMismatchError",
    "ProjectionError",
    "ExportIOError",
    "ParameterError",
    "InsufficientDataWarning",
    "format_schema_error",
    "format_parameter_error",
    "raise_schema_error",
    "raise_parameter_error",
]
