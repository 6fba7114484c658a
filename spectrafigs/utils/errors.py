"""Standardized errors for spectrafigs.

Every failure that aborts a figure derives from :class:`SpectraFigsError`
so the batch runner can isolate one broken figure from the rest. Sparse
bins are reported through :class:`InsufficientDataWarning` instead of an
exception.
"""

from typing import Any, Optional


class SpectraFigsError(Exception):
    """Base exception for spectrafigs errors."""

    def __init__(
        self,
        message: str,
        suggestion: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        """Initialize spectrafigs error.

        Args:
            message: Primary error message.
            suggestion: Optional suggestion for fixing the error.
            details: Optional dictionary with additional error details.
        """
        super().__init__(message)
        self.message = message
        self.suggestion = suggestion
        self.details = details or {}

    def __str__(self) -> str:
        """Format error message with suggestion if available."""
        if self.suggestion:
            return f"{self.message}\n\nSuggestion: {self.suggestion}"
        return self.message


class DataNotFoundError(SpectraFigsError):
    """Error raised when an input file or table is missing."""

    pass


class SchemaMismatchError(SpectraFigsError):
    """Error raised when a table lacks a column or a column has the wrong type."""

    pass


class DataValidationError(SpectraFigsError):
    """Error raised when input values violate a data condition (e.g. non-constant fit parameters)."""

    pass


class ProjectionError(SpectraFigsError):
    """Error raised when coordinates cannot be projected."""

    pass


class ExportIOError(SpectraFigsError):
    """Error raised when a figure cannot be written to disk."""

    pass


class ParameterError(SpectraFigsError):
    """Error raised when parameters are invalid."""

    pass


class InsufficientDataWarning(UserWarning):
    """A bin or group has too few observations to be drawn."""

    pass


def format_schema_error(
    dataset: str,
    missing: Optional[list[str]] = None,
    column: Optional[str] = None,
    expected: Optional[str] = None,
    received: Optional[str] = None,
) -> str:
    """Format a standardized schema error message.

    Args:
        dataset: Name of the dataset being validated.
        missing: Required columns that are absent (optional).
        column: Column whose type or values are wrong (optional).
        expected: What was expected (optional).
        received: What was received (optional).

    Returns:
        Formatted error message string.
    """
    parts = [f"Schema mismatch in dataset '{dataset}'"]
    if missing:
        parts.append(f"Missing columns: {', '.join(missing)}")
    if column:
        parts.append(f"Column: {column}")
    if expected and received:
        parts.append(f"Expected: {expected}, Received: {received}")
    elif expected:
        parts.append(f"Expected: {expected}")
    return "\n".join(parts)


def format_parameter_error(
    parameter_name: str,
    value: Any,
    valid_values: Optional[list[str]] = None,
    constraint: Optional[str] = None,
) -> str:
    """Format a standardized parameter error message.

    Args:
        parameter_name: Name of the invalid parameter.
        value: Invalid value that was provided.
        valid_values: List of valid values (optional).
        constraint: Constraint that was violated (optional).

    Returns:
        Formatted error message string.
    """
    parts = [f"Invalid value for parameter '{parameter_name}': {value}"]
    if valid_values:
        parts.append(f"Valid values: {', '.join(map(str, valid_values))}")
    if constraint:
        parts.append(f"Constraint: {constraint}")
    return "\n".join(parts)


def raise_schema_error(
    dataset: str,
    missing: Optional[list[str]] = None,
    column: Optional[str] = None,
    expected: Optional[str] = None,
    received: Optional[str] = None,
) -> None:
    """Raise a standardized schema error.

    Raises:
        SchemaMismatchError: Always raises this exception.
    """
    error_msg = format_schema_error(dataset, missing, column, expected, received)
    raise SchemaMismatchError(
        error_msg,
        suggestion="Check the input file header against the documented columns",
        details={"dataset": dataset, "missing": missing or [], "column": column},
    )


def raise_parameter_error(
    parameter_name: str,
    value: Any,
    valid_values: Optional[list[str]] = None,
    constraint: Optional[str] = None,
    suggestion: Optional[str] = None,
) -> None:
    """Raise a standardized parameter error.

    Raises:
        ParameterError: Always raises this exception.
    """
    error_msg = format_parameter_error(parameter_name, value, valid_values, constraint)
    raise ParameterError(error_msg, suggestion=suggestion)
