"""Directional rounding used to set colour-scale and axis bounds.

``floor_dec`` and ``ceiling_dec`` round to a number of decimals without ever
clipping the value they round, so limits derived from them always contain
the data.
"""

import logging
from typing import Tuple, Union

import numpy as np

from spectrafigs.utils.errors import DataValidationError

logger = logging.getLogger(__name__)

ArrayLike = Union[float, np.ndarray]


def _check_digits(digits: int) -> int:
    if int(digits) != digits or digits < 0:
        raise ValueError(f"digits must be a non-negative integer, got {digits}")
    return int(digits)


def floor_dec(x: ArrayLike, digits: int = 1) -> ArrayLike:
    """Round down to ``digits`` decimals.

    Guarantees ``floor_dec(x, d) <= x`` for every finite ``x``, also where
    ``x * 10**d`` or the final division picks up binary rounding error.

    Args:
        x: Scalar or array.
        digits: Number of decimals (>= 0).

    Returns:
        Rounded value(s), same shape as ``x``.

    Example:
        >>> floor_dec(-0.234, 1)
        -0.3
    """
    digits = _check_digits(digits)
    arr = np.asarray(x, dtype=float)
    scale = 10.0**digits
    steps = np.floor(arr * scale)
    out = steps / scale
    # Binary representation can leave the quotient a hair above x.
    out = np.where(out > arr, (steps - 1) / scale, out)
    return out.item() if out.ndim == 0 else out


def ceiling_dec(x: ArrayLike, digits: int = 1) -> ArrayLike:
    """Round up to ``digits`` decimals, guaranteeing ``ceiling_dec(x, d) >= x``.

    Example:
        >>> ceiling_dec(-0.234, 1)
        -0.2
    """
    digits = _check_digits(digits)
    arr = np.asarray(x, dtype=float)
    scale = 10.0**digits
    steps = np.ceil(arr * scale)
    out = steps / scale
    out = np.where(out < arr, (steps + 1) / scale, out)
    return out.item() if out.ndim == 0 else out


def summary_bounds(values, digits: int = 1) -> Tuple[float, float]:
    """Directionally rounded ``(min, max)`` of the finite values.

    Args:
        values: Numeric values; NaN is ignored.
        digits: Decimal precision of the bounds.

    Returns:
        ``(floor_dec(min), ceiling_dec(max))``. When all values are equal the
        upper bound is raised by one step so the range is never empty.

    Raises:
        DataValidationError: If there is no finite value.
    """
    arr = np.asarray(values, dtype=float)
    arr = arr[np.isfinite(arr)]
    if arr.size == 0:
        raise DataValidationError(
            "values must contain at least one finite number",
            suggestion="Check the input column for missing or non-numeric values",
        )

    low = floor_dec(float(arr.min()), digits)
    high = ceiling_dec(float(arr.max()), digits)
    if high <= low:
        high = low + 10.0**-digits
    logger.debug(f"Scale bounds [{low}, {high}] from {arr.size} values")
    return float(low), float(high)
