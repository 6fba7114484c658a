"""Tests for directional rounding and scale bounds."""

import numpy as np
import pytest

from spectrafigs.primitives.scales import ceiling_dec, floor_dec, summary_bounds
from spectrafigs.utils.errors import DataValidationError


class TestDirectionalRounding:
    """Tests for floor_dec and ceiling_dec."""

    @pytest.mark.parametrize(
        "x, digits, expected",
        [(-0.234, 1, -0.3), (0.234, 1, 0.2), (1.0, 1, 1.0), (-1.25, 2, -1.25), (7.89, 0, 7.0)],
    )
    def test_floor_dec(self, x, digits, expected):
        """Test rounding down to a fixed number of decimals."""
        assert floor_dec(x, digits) == pytest.approx(expected)

    @pytest.mark.parametrize(
        "x, digits, expected",
        [(-0.234, 1, -0.2), (0.234, 1, 0.3), (1.0, 1, 1.0), (-1.25, 2, -1.25), (7.01, 0, 8.0)],
    )
    def test_ceiling_dec(self, x, digits, expected):
        """Test rounding up to a fixed number of decimals."""
        assert ceiling_dec(x, digits) == pytest.approx(expected)

    def test_bounds_hold_for_random_values(self):
        """Test floor_dec(x) <= x <= ceiling_dec(x) for many values."""
        rng = np.random.default_rng(0)
        x = rng.uniform(-5, 5, 2000)
        for digits in (0, 1, 2, 3):
            assert np.all(floor_dec(x, digits) <= x)
            assert np.all(ceiling_dec(x, digits) >= x)

    def test_array_shape_preserved(self):
        """Test arrays keep their shape and scalars stay scalars."""
        assert floor_dec(np.array([[0.15, 0.25]]), 1).shape == (1, 2)
        assert isinstance(ceiling_dec(0.15, 1), float)

    def test_negative_digits_rejected(self):
        """Test digits must be a non-negative integer."""
        with pytest.raises(ValueError, match="digits"):
            floor_dec(1.0, -1)


class TestSummaryBounds:
    """Tests for summary_bounds."""

    def test_bounds_enclose_values(self):
        """Test the bounds are rounded outward."""
        low, high = summary_bounds([-1.87, -1.21, np.nan, -1.5])
        assert low == pytest.approx(-1.9)
        assert high == pytest.approx(-1.2)

    def test_equal_values_widened(self):
        """Test a constant column still gets a non-empty range."""
        low, high = summary_bounds([2.0, 2.0], digits=1)
        assert low == pytest.approx(2.0)
        assert high == pytest.approx(2.1)

    def test_empty_raises(self):
        """Test no finite values is an error."""
        with pytest.raises(DataValidationError, match="finite"):
            summary_bounds([np.nan])
