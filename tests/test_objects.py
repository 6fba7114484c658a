"""Tests for immutable objects: Table, records and encodings."""

import numpy as np
import pandas as pd
import pytest

from spectrafigs.objects import (
    Annotation,
    ColorScale,
    EncodingSpec,
    GeoFeature,
    ModelSummary,
    Rect,
    Table,
)
from spectrafigs.utils.errors import SchemaMismatchError


@pytest.fixture
def frame():
    return pd.DataFrame({
        "data_type": ["combined", "fish-only", "combined"],
        "mass": [1.0, 2.0, 4.0],
        "site": ["a", "b", "c"],
    })


class TestTable:
    """Tests for Table."""

    def test_explicit_level_order(self, frame):
        """Test that the declared level order wins over row order."""
        table = Table.from_frame(frame, levels={"data_type": ["fish-only", "combined"]})
        assert table.levels("data_type") == ["fish-only", "combined"]
        assert table.column_type("data_type") == "categorical"
        assert table.column_type("mass") == "numeric"
        assert table.column_type("site") == "string"

    def test_undeclared_order_is_sorted(self, frame):
        """Test that a categorical column without levels gets sorted levels."""
        table = Table.from_frame(frame, types={"data_type": "categorical"})
        assert table.levels("data_type") == ["combined", "fish-only"]

    def test_unlisted_level_raises(self, frame):
        """Test that values outside the level order are rejected."""
        with pytest.raises(SchemaMismatchError, match="unlisted values"):
            Table.from_frame(frame, levels={"data_type": ["fish-only"]})

    def test_missing_declared_column(self, frame):
        """Test that declared but absent columns raise."""
        with pytest.raises(SchemaMismatchError, match="Missing columns: slope"):
            Table.from_frame(frame, types={"slope": "numeric"})

    def test_categorical_without_order_rejected(self, frame):
        """Test that a plain object column cannot be declared categorical directly."""
        with pytest.raises(SchemaMismatchError, match="no level order"):
            Table(data=frame, types={"data_type": "categorical"})

    def test_relevel_returns_new_table(self, frame):
        """Test relevel leaves the original untouched."""
        table = Table.from_frame(frame, levels={"data_type": ["fish-only", "combined"]})
        flipped = table.relevel("data_type", ["combined", "fish-only"])
        assert flipped.levels("data_type") == ["combined", "fish-only"]
        assert table.levels("data_type") == ["fish-only", "combined"]

    def test_subset_keeps_levels(self, frame):
        """Test that filtering keeps absent levels in the declared order."""
        table = Table.from_frame(frame, levels={"data_type": ["fish-only", "combined"]})
        subset = table.subset((table["data_type"] == "combined").to_numpy())
        assert len(subset) == 2
        assert subset.levels("data_type") == ["fish-only", "combined"]

    def test_with_columns(self, frame):
        """Test adding a derived numeric column."""
        table = Table.from_frame(frame)
        out = table.with_columns(log_mass=np.log2(table["mass"]))
        assert out.column_type("log_mass") == "numeric"
        assert "log_mass" not in table.columns

    def test_require(self, frame):
        """Test require names the missing column."""
        with pytest.raises(SchemaMismatchError, match="latitude"):
            Table.from_frame(frame).require(["mass", "latitude"])


class TestRecords:
    """Tests for ModelSummary and GeoFeature."""

    def test_model_summary_predict(self):
        """Test the straight-line evaluation."""
        summary = ModelSummary("fish-only", slope=-1.5, intercept=10.0)
        np.testing.assert_allclose(summary.predict([0.0, 2.0]), [10.0, 7.0])

    def test_model_summary_rejects_nan(self):
        """Test that non-finite coefficients are rejected."""
        with pytest.raises(ValueError, match="slope must be finite"):
            ModelSummary("bad", slope=float("nan"), intercept=0.0)

    def test_geofeature_groups_in_order(self):
        """Test groups come back in first-appearance order."""
        points = np.array([[0, 0], [1, 0], [5, 5], [6, 5], [0, 1]], dtype=float)
        feature = GeoFeature(points, np.array(["b", "b", "a", "a", "b"]))
        assert [gid for gid, _ in feature.groups()] == ["b", "a"]
        assert feature.n_groups == 2

    def test_geofeature_copies_points(self):
        """Test that the caller's array stays writable and unshared."""
        points = np.zeros((3, 2))
        feature = GeoFeature(points, np.zeros(3))
        points[0, 0] = 9.0
        assert feature.points[0, 0] == 0.0
        assert not feature.points.flags.writeable

    def test_geofeature_shape_validation(self):
        """Test mismatched group ids are rejected."""
        with pytest.raises(ValueError, match="must match"):
            GeoFeature(np.zeros((3, 2)), np.zeros(2))


class TestEncodings:
    """Tests for Rect, ColorScale, EncodingSpec and Annotation."""

    def test_rect_bounds_and_within(self):
        """Test conversion to add_axes bounds and nesting."""
        rect = Rect(0.5, 1.0, 0.0, 0.5)
        assert rect.bounds() == (0.5, 0.0, 0.5, 0.5)
        nested = Rect(0.0, 0.5, 0.5, 1.0).within(rect)
        assert nested == Rect(0.5, 0.75, 0.25, 0.5)

    def test_rect_rejects_empty(self):
        """Test degenerate rectangles are rejected."""
        with pytest.raises(ValueError, match="xmin < xmax"):
            Rect(1.0, 1.0, 0.0, 1.0)

    def test_color_scale_limits(self):
        """Test limits are validated and stored as floats."""
        assert ColorScale(limits=(-2, -1)).limits == (-2.0, -1.0)
        with pytest.raises(ValueError, match="low < high"):
            ColorScale(limits=(1.0, 1.0))

    def test_encoding_rejects_unknown_transform(self):
        """Test only identity and log2 transforms are accepted."""
        with pytest.raises(ValueError, match="x_transform"):
            EncodingSpec(x="a", y="b", x_transform="log10")

    def test_encoding_hue_prefers_fill(self):
        """Test that fill takes precedence over color for the hue channel."""
        assert EncodingSpec(color="a", fill="b").hue == "b"
        assert EncodingSpec(color="a").hue == "a"

    def test_annotation_canvas_anchor_range(self):
        """Test canvas anchors must lie in the unit square."""
        with pytest.raises(ValueError, match="canvas anchors"):
            Annotation(kind="text", anchor=(1.2, 0.5), text="A")

    def test_annotation_data_frame_needs_host(self):
        """Test data-frame annotations need a host placement."""
        with pytest.raises(ValueError, match="host"):
            Annotation(kind="text", anchor=(5.0, 5.0), frame="data", text="A")

    def test_annotation_requirements(self):
        """Test per-kind required fields."""
        with pytest.raises(ValueError, match="image"):
            Annotation(kind="image", anchor=(0.1, 0.1))
        with pytest.raises(ValueError, match="end point"):
            Annotation(kind="arrow", anchor=(0.1, 0.1))
