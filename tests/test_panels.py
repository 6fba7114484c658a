"""Tests for the panel builder."""

import re

import numpy as np
import pandas as pd
import pytest
from matplotlib.backends.backend_agg import FigureCanvasAgg
from matplotlib.colors import to_rgba
from matplotlib.figure import Figure

from spectrafigs.objects import ColorScale, EncodingSpec, GeoFeature, ModelSummary, Table
from spectrafigs.utils.errors import ParameterError, SchemaMismatchError
from spectrafigs.workflows.plotting import (
    DEFAULT_PALETTE,
    build,
    build_facets,
    build_map,
    log2_tick_label,
    outline_pass,
    with_fitted_line,
)

LEVELS = {"data_type": ["fish-only", "combined"]}


def render(panel):
    """Draw a panel into a fresh Agg-backed axes."""
    fig = Figure(figsize=(4, 3))
    FigureCanvasAgg(fig)
    ax = fig.add_subplot()
    panel.draw(ax)
    fig.canvas.draw()
    return ax


@pytest.fixture
def nass(nass_frame):
    # 'combined' rows first, to check that row order never drives level order.
    return Table.from_frame(nass_frame.iloc[::-1].reset_index(drop=True), levels=LEVELS)


class TestLog2Axes:
    """Tests for log2 axis transforms and tick labels."""

    @pytest.mark.parametrize(
        "value, expected",
        [(8.0, "$2^{3}$"), (1.0, "$2^{0}$"), (0.5, "$2^{-1}$"), (3.0, ""), (0.0, ""), (-4.0, "")],
    )
    def test_tick_label(self, value, expected):
        """Test powers of two render as 2^n and other values stay blank."""
        assert log2_tick_label(value) == expected

    def test_rendered_ticks_are_powers_of_two(self, nass):
        """Test a log2 scatter shows 2^n tick labels, not raw numbers."""
        enc = EncodingSpec(x="mass", y="normalized_abundance", color="data_type",
                           x_transform="log2", y_transform="log2")
        ax = render(build(nass, enc, "scatter"))
        labels = [t.get_text() for t in ax.get_xticklabels() if t.get_text()]
        assert labels
        assert all(re.fullmatch(r"\$2\^\{-?\d+\}\$", label) for label in labels)
        assert ax.get_xscale() == "log"

    def test_fitted_line_in_log2_space(self, nass):
        """Test fitted lines are evaluated as log2(y) = a + b * log2(x)."""
        enc = EncodingSpec(x="mass", y="normalized_abundance", x_transform="log2", y_transform="log2")
        summary = ModelSummary("fish-only", slope=-1.5, intercept=10.0)
        panel = with_fitted_line(build(nass, enc, "scatter"), summary, (2.0, 32.0), label="fit")
        assert panel.layer_names() == ["scatter", "fit_fish-only"]
        assert panel.legend_labels() == ["fit"]

        ax = render(panel)
        x, y = ax.lines[0].get_xdata(), ax.lines[0].get_ydata()
        assert x[0] == pytest.approx(2.0)
        assert x[-1] == pytest.approx(32.0)
        np.testing.assert_allclose(np.log2(y), 10.0 - 1.5 * np.log2(x))


class TestCategoricalOrder:
    """Tests for explicit level order in legends and positions."""

    def test_legend_follows_declared_levels(self, nass):
        """Test the legend lists levels in declared, not row, order."""
        enc = EncodingSpec(x="mass", y="normalized_abundance", color="data_type")
        panel = build(nass, enc, "scatter")
        assert panel.legend_labels() == ["fish-only", "combined"]
        assert [e.color for e in panel.legend] == list(DEFAULT_PALETTE[:2])

    def test_absent_level_keeps_colour(self, nass):
        """Test a filtered-out level does not shift the remaining colours."""
        combined = nass.subset((nass["data_type"] == "combined").to_numpy())
        panel = build(combined, EncodingSpec(x="mass", y="normalized_abundance", color="data_type"), "line")
        assert panel.legend_labels() == ["combined"]
        assert panel.legend[0].color == DEFAULT_PALETTE[1]

    def test_categorical_axis(self, site_frame):
        """Test a categorical x axis is laid out in level order."""
        sites = Table.from_frame(site_frame.iloc[::-1], levels=LEVELS)
        panel = build(sites, EncodingSpec(x="data_type", y="slope", fill="data_type"), "violin_box")
        assert panel.categories == ("fish-only", "combined")
        ax = render(panel)
        assert [t.get_text() for t in ax.get_xticklabels()] == ["fish-only", "combined"]


class TestContinuousScale:
    """Tests for shared continuous colour scales."""

    def test_shared_limits_clip_consistently(self):
        """Test equal values get equal colours and out-of-range values clip."""
        scale = ColorScale(limits=(-2.0, -1.0))
        a = Table.from_frame(pd.DataFrame({"x": [0.0, 1.0], "y": [0.0, 1.0], "slope": [-1.5, -3.0]}))
        b = Table.from_frame(pd.DataFrame({"x": [0.0, 1.0, 2.0], "y": [0.0, 1.0, 2.0], "slope": [-1.5, -2.0, 0.0]}))
        enc = EncodingSpec(x="x", y="y", color="slope", color_scale=scale, show_legend=False)

        colors_a = render(build(a, enc, "scatter")).collections[0].get_facecolors()
        colors_b = render(build(b, enc, "scatter")).collections[0].get_facecolors()
        np.testing.assert_allclose(colors_a[0], colors_b[0])
        np.testing.assert_allclose(colors_a[1], colors_b[1])
        assert not np.allclose(colors_b[1], colors_b[2])

    def test_colorbar_reported(self):
        """Test a continuous hue exposes its scale as the panel colourbar."""
        scale = ColorScale(limits=(0.0, 1.0), label="v")
        table = Table.from_frame(pd.DataFrame({"x": [1.0], "y": [1.0], "v": [0.5]}))
        panel = build(table, EncodingSpec(x="x", y="y", color="v", color_scale=scale), "scatter")
        assert panel.colorbar is scale
        assert panel.legend == ()


class TestBars:
    """Tests for grouped, stacked and filtered bars."""

    @pytest.fixture
    def grouped(self):
        frame = pd.DataFrame({
            "bin": [1.0, 1.0, 2.0, 2.0],
            "value": [1.0, 2.0, 3.0, 4.0],
            "data_type": ["combined", "fish-only", "fish-only", "combined"],
        })
        return Table.from_frame(frame, levels=LEVELS)

    def test_stack_in_level_order(self, grouped):
        """Test the first level sits on the axis and the next stacks on it."""
        enc = EncodingSpec(x="bin", y="value", fill="data_type", position="stack")
        ax = render(build(grouped, enc, "bar"))
        bars = ax.patches
        assert len(bars) == 4
        # bin 1: fish-only (2.0) at the bottom, combined (1.0) on top.
        assert bars[0].get_y() == pytest.approx(0.0)
        assert bars[0].get_height() == pytest.approx(2.0)
        assert bars[1].get_y() == pytest.approx(2.0)
        assert bars[1].get_facecolor() == pytest.approx(to_rgba(DEFAULT_PALETTE[1]))

    def test_dodge_splits_slot(self, grouped):
        """Test side-by-side bars share the slot width."""
        enc = EncodingSpec(x="bin", y="value", fill="data_type", position="dodge")
        ax = render(build(grouped, enc, "bar"))
        widths = [p.get_width() for p in ax.patches]
        assert widths == pytest.approx([0.45] * 4)

    def test_insufficient_bins_draw_nothing(self):
        """Test bins flagged insufficient produce no bar and no error bar."""
        bins = Table.from_frame(pd.DataFrame({
            "bin_mid": [2.5, 7.5, 12.5],
            "mean": [-1.0, np.nan, -1.4],
            "ymin": [-1.2, np.nan, -1.5],
            "ymax": [-0.8, np.nan, -1.3],
            "sufficient": [True, False, True],
        }))
        enc = EncodingSpec(x="bin_mid", y="mean", ymin="ymin", ymax="ymax", include="sufficient")
        panel = build(bins, enc, "bar")
        assert panel.diagnostics["omitted"] == 1
        assert panel.layer_names() == ["bar", "errorbar"]
        ax = render(panel)
        assert len(ax.patches) == 2

    def test_horizontal(self, grouped):
        """Test horizontal bars put values on the x axis."""
        enc = EncodingSpec(x="bin", y="value", orientation="horizontal")
        ax = render(build(grouped, enc, "bar"))
        assert max(p.get_width() for p in ax.patches) == pytest.approx(4.0)


class TestDrawPasses:
    """Tests for predicate-gated draw passes."""

    @pytest.fixture
    def bins(self):
        return Table.from_frame(pd.DataFrame({"lat": [2.5, 7.5, 12.5], "mean": [-1.0, -2.0, -1.5]}))

    def test_pass_added_when_rows_qualify(self, bins):
        """Test an outline pass draws only the qualifying bars."""
        steeper = outline_pass(lambda rows: rows["mean"] < -1.4, name="steeper")
        panel = build(bins, EncodingSpec(x="lat", y="mean"), "bar", passes=[steeper])
        assert panel.layer_names() == ["bar", "steeper"]
        ax = render(panel)
        outlines = [p for p in ax.patches if not p.get_fill()]
        assert len(outlines) == 2

    def test_pass_skipped_when_no_row_qualifies(self, bins):
        """Test an unsatisfied predicate adds no layer and is counted."""
        steeper = outline_pass(lambda rows: rows["mean"] < -5.0, name="steeper")
        panel = build(bins, EncodingSpec(x="lat", y="mean"), "bar", passes=[steeper])
        assert panel.layer_names() == ["bar"]
        assert panel.diagnostics["passes_skipped"] == 1

    def test_predicate_evaluated_once(self, bins):
        """Test the predicate runs at build time only, not per render."""
        calls = []

        def predicate(rows):
            calls.append(len(rows))
            return True

        panel = build(bins, EncodingSpec(x="lat", y="mean"), "bar", passes=[outline_pass(predicate)])
        render(panel)
        render(panel)
        assert calls == [3]


class TestKinds:
    """Tests for the remaining kinds and validation."""

    def test_violin_needs_two_distinct_values(self):
        """Test a constant group gets a box but no violin, and is counted."""
        frame = pd.DataFrame({
            "data_type": ["fish-only"] * 3 + ["combined"] * 3,
            "slope": [1.0, 1.0, 1.0, 1.0, 2.0, 3.0],
        })
        panel = build(Table.from_frame(frame, levels=LEVELS), EncodingSpec(x="data_type", y="slope"), "violin_box")
        assert panel.diagnostics["insufficient"] == 1
        render(panel)

    def test_density_lines_per_level(self, body_mass_frame):
        """Test one density curve per level."""
        from spectrafigs.primitives import binned_density

        body = Table.from_frame(body_mass_frame, levels=LEVELS)
        dens = binned_density(body, key="data_type", value="mass", n_points=50)
        ax = render(build(dens, EncodingSpec(x="x", y="density", color="data_type"), "density"))
        assert len(ax.lines) == 2

    def test_polygons_need_group(self, land_frame):
        """Test polygon panels require a group column."""
        land = Table.from_frame(land_frame)
        with pytest.raises(ParameterError, match="group"):
            build(land, EncodingSpec(x="long", y="lat"), "polygon")
        panel = build(land, EncodingSpec(x="long", y="lat", group="group"), "polygon")
        assert len(render(panel).collections) == 1

    def test_unknown_kind(self, nass):
        """Test unknown panel kinds are rejected."""
        with pytest.raises(ParameterError, match="kind"):
            build(nass, EncodingSpec(x="mass", y="normalized_abundance"), "pie")

    def test_missing_column(self, nass):
        """Test encodings naming absent columns raise SchemaMismatchError."""
        with pytest.raises(SchemaMismatchError, match="slope"):
            build(nass, EncodingSpec(x="mass", y="slope"), "scatter")

    def test_facets(self, nass):
        """Test one titled panel per facet level."""
        enc = EncodingSpec(x="mass", y="normalized_abundance", facet="data_type")
        panels = build_facets(nass, enc, "scatter")
        assert [p.encoding.title for p in panels] == ["fish-only", "combined"]

    def test_map_panel(self):
        """Test map panels use equal aspect with hidden axes."""
        feature = GeoFeature(np.array([[0, 0], [1, 0], [1, 1]], dtype=float), np.zeros(3))
        panel = build_map([(feature, {"facecolor": "#CCCCCC"})])
        assert panel.kind == "map"
        ax = render(panel)
        assert not ax.axison
        assert ax.get_aspect() == 1.0


class TestMissingKeys:
    """Tests for rows without a colour or fill level."""

    @pytest.fixture
    def gappy(self, nass_frame):
        frame = nass_frame.copy()
        frame.loc[0, "data_type"] = np.nan
        return Table.from_frame(frame, levels=LEVELS)

    def test_scatter_omits_unlevelled_rows(self, gappy):
        """Test a missing colour value drops the row instead of failing."""
        panel = build(gappy, EncodingSpec(x="mass", y="normalized_abundance", color="data_type"), "scatter")
        assert panel.diagnostics["omitted"] == 1
        ax = render(panel)
        assert len(ax.collections[0].get_offsets()) == len(gappy) - 1

    def test_bar_omits_unlevelled_rows(self, gappy):
        """Test a missing fill value drops the bar instead of failing."""
        panel = build(
            gappy, EncodingSpec(x="mass", y="normalized_abundance", fill="data_type", position="dodge"), "bar"
        )
        assert panel.diagnostics["omitted"] == 1
        ax = render(panel)
        assert len(ax.patches) == len(gappy) - 1
        assert panel.legend_labels() == ["fish-only", "combined"]
