"""Panel Builder: one visual panel from a Table and an EncodingSpec.

A :class:`Panel` is an immutable list of draw layers. Nothing touches a
matplotlib Axes until the panel is composed and rendered, so the same
panel description can be drawn into any layout slot.

Layer 4: Workflows - Public entry points with plotting.
"""

import logging
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any, Callable, Mapping, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from matplotlib.axes import Axes
from matplotlib.cm import ScalarMappable
from matplotlib.collections import LineCollection, PolyCollection
from matplotlib.colors import to_hex
from matplotlib.lines import Line2D
from matplotlib.patches import Patch, Rectangle

from spectrafigs.objects.encoding import ColorScale, EncodingSpec, Rect
from spectrafigs.objects.records import GeoFeature, ModelSummary
from spectrafigs.objects.table import Table
from spectrafigs.primitives.scales import summary_bounds
from spectrafigs.utils.errors import raise_parameter_error
from spectrafigs.workflows.plotting._base import (
    MARKERS,
    apply_axis_transform,
    level_colors,
    scale_colors,
    scale_norm,
)

logger = logging.getLogger(__name__)

PANEL_KINDS = (
    "scatter",
    "line",
    "density",
    "polygon",
    "path",
    "bar",
    "violin_box",
    "errorbar",
)

DrawFn = Callable[[Axes, float], None]


@dataclass(frozen=True, eq=False)
class Layer:
    """One draw pass; ``draw(ax, zorder)`` adds artists to ``ax``."""

    name: str
    draw: DrawFn


@dataclass(frozen=True)
class LegendEntry:
    """A legend key, kept in categorical level order."""

    label: str
    color: str
    kind: str = "patch"
    marker: Optional[str] = None


@dataclass(frozen=True, eq=False)
class DrawPass:
    """An optional extra layer gated by a predicate on the layer geometry.

    The predicate is evaluated once when the panel is built. It receives the
    geometry DataFrame (data columns plus drawn positions) and returns either
    a boolean or a boolean mask. The pass is added only if at least one row
    qualifies, and ``draw(ax, rows, zorder)`` receives just those rows.
    """

    name: str
    predicate: Callable[[pd.DataFrame], Any]
    draw: Callable[[Axes, pd.DataFrame, float], None]


@dataclass(frozen=True, eq=False)
class Panel:
    """An immutable panel description.

    Attributes:
        kind: Panel kind (see PANEL_KINDS, plus 'map').
        encoding: Encoding the panel was built from.
        layers: Draw layers in drawing order; later layers draw on top.
        legend: Legend keys in level order.
        colorbar: Continuous scale shown as a colourbar, if any.
        diagnostics: Counters such as 'omitted' rows and 'insufficient' groups.
        aspect: Axes aspect ('equal' for maps).
        axis_off: Hide axes frame and ticks.
        categories: Tick labels for a categorical position axis.
    """

    kind: str
    encoding: EncodingSpec
    layers: Tuple[Layer, ...] = ()
    legend: Tuple[LegendEntry, ...] = ()
    colorbar: Optional[ColorScale] = None
    diagnostics: Mapping[str, int] = field(default_factory=dict)
    aspect: Optional[str] = None
    axis_off: bool = False
    categories: Optional[Tuple[str, ...]] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "layers", tuple(self.layers))
        object.__setattr__(self, "legend", tuple(self.legend))
        object.__setattr__(self, "diagnostics", MappingProxyType(dict(self.diagnostics)))

    def legend_labels(self) -> list[str]:
        return [entry.label for entry in self.legend]

    def layer_names(self) -> list[str]:
        return [layer.name for layer in self.layers]

    def draw(self, ax: Axes) -> Axes:
        """Render every layer onto ``ax`` and apply the encoding's axis settings."""
        enc = self.encoding
        apply_axis_transform(ax, "x", enc.x_transform)
        apply_axis_transform(ax, "y", enc.y_transform)

        for i, layer in enumerate(self.layers):
            layer.draw(ax, 2.0 + i)

        if self.categories is not None:
            ticks = np.arange(len(self.categories))
            if enc.orientation == "horizontal":
                ax.set_yticks(ticks, labels=list(self.categories))
            else:
                ax.set_xticks(ticks, labels=list(self.categories))

        if enc.xlim is not None:
            ax.set_xlim(*enc.xlim)
        if enc.ylim is not None:
            ax.set_ylim(*enc.ylim)
        if enc.xlabel is not None:
            ax.set_xlabel(enc.xlabel)
        if enc.ylabel is not None:
            ax.set_ylabel(enc.ylabel)
        if enc.title is not None:
            ax.set_title(enc.title)
        if self.aspect is not None:
            ax.set_aspect(self.aspect)
        if self.axis_off:
            ax.set_axis_off()

        if enc.show_legend and self.legend:
            ax.legend(
                handles=[_legend_handle(entry) for entry in self.legend],
                title=enc.legend_title or enc.hue,
                frameon=False,
            )
        if enc.show_legend and self.colorbar is not None:
            mappable = ScalarMappable(norm=scale_norm(self.colorbar), cmap=self.colorbar.cmap)
            ax.figure.colorbar(mappable, ax=ax, label=self.colorbar.label)
        return ax


def _legend_handle(entry: LegendEntry):
    if entry.kind == "patch":
        return Patch(facecolor=entry.color, edgecolor="none", label=entry.label)
    if entry.kind == "line":
        return Line2D([], [], color=entry.color, label=entry.label)
    return Line2D(
        [], [], color=entry.color, marker=entry.marker or "o", linestyle="none", label=entry.label
    )


# ---------------------------------------------------------------------------
# Data preparation
# ---------------------------------------------------------------------------


@dataclass(frozen=True, eq=False)
class _Hue:
    mode: str  # 'none', 'categorical' or 'continuous'
    column: Optional[str] = None
    levels: Tuple = ()
    colors: Mapping = field(default_factory=dict)
    scale: Optional[ColorScale] = None

    def of(self, df: pd.DataFrame, default: str = "#4D4D4D"):
        """Colour per row of ``df``."""
        if self.mode == "categorical":
            return [self.colors[v] for v in df[self.column]]
        if self.mode == "continuous":
            rgba = scale_colors(df[self.column].to_numpy(dtype=float), self.scale)
            return [to_hex(c, keep_alpha=True) for c in rgba]
        return [default] * len(df)


def _levels(table: Table, column: str, present: pd.Series) -> list:
    kind = table.column_type(column)
    if kind == "categorical":
        levels = table.levels(column)
    else:
        levels = sorted(present.dropna().unique())
    seen = set(present.dropna())
    return [level for level in levels if level in seen]


def _resolve_hue(table: Table, df: pd.DataFrame, enc: EncodingSpec) -> _Hue:
    column = enc.hue
    if column is None:
        return _Hue("none")
    if table.column_type(column) == "numeric":
        scale = enc.color_scale
        if scale is None:
            scale = ColorScale(limits=summary_bounds(df[column], digits=2), label=column)
        return _Hue("continuous", column=column, scale=scale)
    levels = _levels(table, column, df[column])
    # Colours follow the declared order so absent levels do not shift them.
    declared = table.levels(column) if table.column_type(column) == "categorical" else levels
    return _Hue(
        "categorical",
        column=column,
        levels=tuple(levels),
        colors=level_colors(declared, enc.palette),
    )


def _prepare(table: Table, enc: EncodingSpec, required: Sequence[str]) -> Tuple[pd.DataFrame, int]:
    """Rows with all ``required`` values present and ``include`` true."""
    columns = [c for c in required if c is not None]
    extra = [
        c for c in (enc.hue, enc.shape, enc.group, enc.include, enc.ymin, enc.ymax) if c is not None
    ]
    table.require(columns + extra)

    df = table.data
    mask = pd.Series(True, index=df.index)
    # Rows without a colour, shape or group value have no level to draw with.
    keyed = [c for c in (enc.hue, enc.shape, enc.group) if c is not None]
    for column in columns + keyed:
        mask &= df[column].notna()
    if enc.include is not None:
        mask &= df[enc.include].fillna(False).astype(bool)

    omitted = int((~mask).sum())
    if omitted:
        logger.info(f"Omitting {omitted} row(s) of '{table.name}' from the panel")
    return df.loc[mask].reset_index(drop=True), omitted


def _legend_for(hue: _Hue, kind: str, marker: Optional[str] = None) -> Tuple[LegendEntry, ...]:
    if hue.mode != "categorical":
        return ()
    return tuple(
        LegendEntry(label=str(level), color=hue.colors[level], kind=kind, marker=marker)
        for level in hue.levels
    )


def _style(enc: EncodingSpec, **defaults) -> dict:
    out = dict(defaults)
    out.update(enc.style)
    return out


def _apply_passes(
    geometry: pd.DataFrame, passes: Sequence[DrawPass], diagnostics: dict
) -> list[Layer]:
    layers = []
    for draw_pass in passes:
        result = draw_pass.predicate(geometry)
        if np.ndim(result) == 0:
            mask = np.full(len(geometry), bool(result))
        else:
            mask = np.asarray(result, dtype=bool)
        if not mask.any():
            diagnostics["passes_skipped"] = diagnostics.get("passes_skipped", 0) + 1
            logger.debug(f"Draw pass '{draw_pass.name}' skipped: no qualifying rows")
            continue
        rows = geometry.loc[mask].reset_index(drop=True)
        layers.append(
            Layer(draw_pass.name, lambda ax, z, p=draw_pass, r=rows: p.draw(ax, r, z))
        )
    return layers


# ---------------------------------------------------------------------------
# Kind builders. Each returns (layers, geometry, legend, colorbar, extras).
# ---------------------------------------------------------------------------


def _category_positions(table: Table, column: str, df: pd.DataFrame):
    if table.column_type(column) == "numeric":
        return df[column].to_numpy(dtype=float), None
    levels = _levels(table, column, df[column])
    lookup = {level: i for i, level in enumerate(levels)}
    return df[column].astype(object).map(lookup).to_numpy(dtype=float), tuple(str(v) for v in levels)


def _scatter(table, df, enc, hue):
    x, categories = _category_positions(table, enc.x, df)
    geometry = df.assign(_x=x, _y=df[enc.y].to_numpy(dtype=float))
    shapes = {}
    if enc.shape is not None:
        shapes = {lv: MARKERS[i % len(MARKERS)] for i, lv in enumerate(_levels(table, enc.shape, df[enc.shape]))}
    geometry["_color"] = list(hue.of(geometry))
    geometry["_marker"] = [shapes.get(v, "o") for v in df[enc.shape]] if shapes else "o"

    def draw(ax, z):
        for marker, rows in geometry.groupby("_marker", sort=False):
            ax.scatter(
                rows["_x"], rows["_y"], c=list(rows["_color"]), marker=marker,
                zorder=z, **_style(enc, s=18, linewidths=0),
            )

    legend = _legend_for(hue, "marker")
    if shapes:
        legend += tuple(LegendEntry(str(lv), "#4D4D4D", "marker", m) for lv, m in shapes.items())
    return [Layer("scatter", draw)], geometry, legend, categories


def _lines(table, df, enc, hue):
    group_cols = [c for c in (hue.column if hue.mode == "categorical" else None, enc.group) if c]
    geometry = df.assign(_x=df[enc.x].to_numpy(dtype=float), _y=df[enc.y].to_numpy(dtype=float))
    geometry["_color"] = list(hue.of(geometry))

    def draw(ax, z):
        groups = geometry.groupby(group_cols, observed=True, sort=True) if group_cols else [(None, geometry)]
        for _, rows in groups:
            rows = rows.sort_values("_x")
            ax.plot(rows["_x"], rows["_y"], color=rows["_color"].iloc[0], zorder=z, **_style(enc, linewidth=1.2))

    return [Layer("line", draw)], geometry, _legend_for(hue, "line"), None


def _bar_geometry(table, df, enc, hue):
    pos, categories = _category_positions(table, enc.x, df)
    heights = df[enc.y].to_numpy(dtype=float)
    if categories is not None:
        slot = 0.8
    else:
        unique = np.unique(pos)
        slot = 0.9 * (np.min(np.diff(unique)) if len(unique) > 1 else 1.0)
    slot = float(enc.style.get("width", slot))

    geometry = df.assign(_pos=pos, _height=heights, _bottom=0.0, _width=slot)
    if hue.mode == "categorical":
        index = {level: i for i, level in enumerate(hue.levels)}
        order = df[hue.column].astype(object).map(index).to_numpy(dtype=int)
        geometry["_level"] = order
        if enc.position == "dodge":
            n = max(len(hue.levels), 1)
            width = slot / n
            geometry["_width"] = width
            geometry["_pos"] = pos - slot / 2 + width * (order + 0.5)
        else:
            # Stack in level order: first level sits on the axis.
            geometry = geometry.sort_values(["_pos", "_level"], kind="stable").reset_index(drop=True)
            bottoms = []
            positive, negative = {}, {}
            for p, h in zip(geometry["_pos"], geometry["_height"]):
                store = positive if h >= 0 else negative
                bottoms.append(store.get(p, 0.0))
                store[p] = store.get(p, 0.0) + h
            geometry["_bottom"] = bottoms
    geometry["_color"] = list(hue.of(geometry))
    return geometry, categories


def _draw_bars(ax, rows, enc, z, **kwargs):
    if enc.orientation == "horizontal":
        return ax.barh(rows["_pos"], rows["_height"], height=rows["_width"], left=rows["_bottom"], zorder=z, **kwargs)
    return ax.bar(rows["_pos"], rows["_height"], width=rows["_width"], bottom=rows["_bottom"], zorder=z, **kwargs)


def _draw_errorbars(ax, rows, enc, z):
    centre = rows["_bottom"] + rows["_height"] if "_height" in rows else rows["_y"]
    lower = np.clip(centre - rows[enc.ymin], 0, None)
    upper = np.clip(rows[enc.ymax] - centre, 0, None)
    style = {"fmt": "none", "ecolor": "black", "capsize": 2, "elinewidth": 0.8, "zorder": z}
    if enc.orientation == "horizontal":
        ax.errorbar(centre, rows["_pos"], xerr=[lower, upper], **style)
    else:
        ax.errorbar(rows["_pos"], centre, yerr=[lower, upper], **style)


def _bars(table, df, enc, hue):
    geometry, categories = _bar_geometry(table, df, enc, hue)

    def draw(ax, z):
        style = {k: v for k, v in _style(enc, edgecolor="none").items() if k != "width"}
        _draw_bars(ax, geometry, enc, z, color=list(geometry["_color"]), **style)

    layers = [Layer("bar", draw)]
    if enc.ymin is not None and enc.ymax is not None:
        bars_with_interval = geometry.loc[geometry[enc.ymin].notna() & geometry[enc.ymax].notna()]
        layers.append(Layer("errorbar", lambda ax, z: _draw_errorbars(ax, bars_with_interval, enc, z)))
    return layers, geometry, _legend_for(hue, "patch"), categories


def _errorbars(table, df, enc, hue):
    pos, categories = _category_positions(table, enc.x, df)
    geometry = df.assign(_pos=pos)
    if enc.y is not None:
        geometry["_y"] = df[enc.y].to_numpy(dtype=float)
    else:
        geometry["_y"] = (df[enc.ymin] + df[enc.ymax]).to_numpy(dtype=float) / 2
    if hue.mode == "categorical":
        groups = [(hue.colors[lv], geometry.loc[geometry[hue.column] == lv]) for lv in hue.levels]
    else:
        groups = [("#4D4D4D", geometry)]

    def draw(ax, z):
        for color, rows in groups:
            lower = np.clip(rows["_y"] - rows[enc.ymin], 0, None)
            upper = np.clip(rows[enc.ymax] - rows["_y"], 0, None)
            ax.errorbar(
                rows["_pos"], rows["_y"], yerr=[lower, upper], color=color, zorder=z,
                **_style(enc, fmt="o", capsize=2, markersize=3, elinewidth=0.8),
            )

    return [Layer("errorbar", draw)], geometry, _legend_for(hue, "marker"), categories


def _violin_box(table, df, enc, hue, diagnostics):
    pos, categories = _category_positions(table, enc.x, df)
    geometry = df.assign(_pos=pos, _y=df[enc.y].to_numpy(dtype=float))
    x_levels = _levels(table, enc.x, df[enc.x])
    colors = hue.colors if hue.mode == "categorical" else level_colors(x_levels, enc.palette)
    groups = [
        (i, level, geometry.loc[geometry["_pos"] == i, "_y"].to_numpy())
        for i, level in enumerate(x_levels)
    ]

    # A kernel density needs at least two distinct values.
    violins = [(i, lv, v) for i, lv, v in groups if len(np.unique(v)) >= 2]
    n_insufficient = len(groups) - len(violins)
    if n_insufficient:
        diagnostics["insufficient"] = diagnostics.get("insufficient", 0) + n_insufficient
        logger.warning(f"{n_insufficient} group(s) have too few distinct values for a violin")

    orient = {} if enc.orientation == "vertical" else {"vert": False}

    def draw_violins(ax, z):
        if not violins:
            return
        parts = ax.violinplot(
            [v for _, _, v in violins], positions=[i for i, _, _ in violins],
            widths=0.8, showextrema=False, **orient,
        )
        for body, (_, level, _) in zip(parts["bodies"], violins):
            body.set_facecolor(colors.get(level, "#BDBDBD"))
            body.set_edgecolor("none")
            body.set_alpha(0.5)
            body.set_zorder(z)

    def draw_boxes(ax, z):
        ax.boxplot(
            [v for _, _, v in groups], positions=[i for i, _, _ in groups], widths=0.15,
            patch_artist=True, showfliers=False, manage_ticks=False, zorder=z,
            boxprops={"facecolor": "white", "linewidth": 0.8},
            medianprops={"color": "black", "linewidth": 1.0},
            **orient,
        )

    legend = _legend_for(hue, "patch")
    return [Layer("violin", draw_violins), Layer("box", draw_boxes)], geometry, legend, categories


def _polygons(table, df, enc, hue):
    group = enc.group
    geometry = df.assign(_x=df[enc.x].to_numpy(dtype=float), _y=df[enc.y].to_numpy(dtype=float))
    geometry["_color"] = list(hue.of(geometry, default="#D9D9D9"))

    def paths(rows):
        return [g[["_x", "_y"]].to_numpy() for _, g in rows.groupby(group, sort=False)]

    def first_colors(rows):
        return [g["_color"].iloc[0] for _, g in rows.groupby(group, sort=False)]

    def draw(ax, z):
        if enc.style.get("kind") == "path":
            ax.add_collection(LineCollection(paths(geometry), colors=first_colors(geometry), zorder=z,
                                             linewidths=enc.style.get("linewidth", 0.4)))
        else:
            ax.add_collection(PolyCollection(paths(geometry), facecolors=first_colors(geometry), zorder=z,
                                             edgecolors=enc.style.get("edgecolor", "none"),
                                             linewidths=enc.style.get("linewidth", 0.3)))
        ax.autoscale_view()

    return [Layer("polygon", draw)], geometry, _legend_for(hue, "patch"), None


def outline_pass(
    predicate: Callable[[pd.DataFrame], Any],
    edgecolor: str = "black",
    linewidth: float = 1.0,
    name: str = "outline",
) -> DrawPass:
    """Outline the bars (or polygon groups) whose geometry rows satisfy ``predicate``."""

    def draw(ax, rows, z):
        if "_height" in rows:
            for _, row in rows.iterrows():
                if row.get("_orientation", "vertical") == "horizontal":
                    xy, w, h = (row["_bottom"], row["_pos"] - row["_width"] / 2), row["_height"], row["_width"]
                else:
                    xy, w, h = (row["_pos"] - row["_width"] / 2, row["_bottom"]), row["_width"], row["_height"]
                ax.add_patch(Rectangle(xy, w, h, fill=False, edgecolor=edgecolor, linewidth=linewidth, zorder=z))
        else:
            verts = [g[["_x", "_y"]].to_numpy() for _, g in rows.groupby("_group", sort=False)]
            ax.add_collection(PolyCollection(verts, facecolors="none", edgecolors=edgecolor,
                                             linewidths=linewidth, zorder=z))

    return DrawPass(name=name, predicate=predicate, draw=draw)


def build(
    table: Table,
    encoding: EncodingSpec,
    kind: str,
    passes: Sequence[DrawPass] = (),
) -> Panel:
    """Build a panel of ``kind`` from ``table`` and ``encoding``.

    Args:
        table: Prepared data. Not modified.
        encoding: Channel mapping, axis transforms and legend rules.
        kind: One of 'scatter', 'line', 'density', 'polygon', 'path', 'bar',
            'violin_box', 'errorbar'.
        passes: Optional predicate-gated extra draw passes.

    Returns:
        Immutable Panel. ``panel.diagnostics['omitted']`` counts rows that were
        excluded by ``encoding.include`` or had missing values.

    Example:
        >>> enc = EncodingSpec(x="mass", y="normalized_abundance", color="data_type",
        ...                    x_transform="log2", y_transform="log2")
        >>> panel = build(nass, enc, "scatter")
    """
    if kind not in PANEL_KINDS:
        raise_parameter_error("kind", kind, valid_values=list(PANEL_KINDS))

    if kind == "errorbar":
        required = [encoding.x, encoding.ymin, encoding.ymax]
    else:
        required = [encoding.x, encoding.y]
    if encoding.x is None or (kind != "errorbar" and encoding.y is None):
        raise_parameter_error("encoding", encoding, constraint=f"'{kind}' needs x and y")
    if kind in ("polygon", "path") and encoding.group is None:
        raise_parameter_error("encoding.group", None, constraint=f"'{kind}' needs a group column")

    df, omitted = _prepare(table, encoding, required)
    hue = _resolve_hue(table, df, encoding)
    diagnostics = {"omitted": omitted}
    categories = None

    if kind == "scatter":
        layers, geometry, legend, categories = _scatter(table, df, encoding, hue)
    elif kind in ("line", "density"):
        layers, geometry, legend, _ = _lines(table, df, encoding, hue)
    elif kind == "bar":
        layers, geometry, legend, categories = _bars(table, df, encoding, hue)
        geometry["_orientation"] = encoding.orientation
    elif kind == "errorbar":
        layers, geometry, legend, categories = _errorbars(table, df, encoding, hue)
    elif kind == "violin_box":
        layers, geometry, legend, categories = _violin_box(table, df, encoding, hue, diagnostics)
    else:
        if kind == "path":
            encoding = replace(encoding, style={**encoding.style, "kind": "path"})
        layers, geometry, legend, _ = _polygons(table, df, encoding, hue)
        geometry["_group"] = geometry[encoding.group]

    layers = list(layers) + _apply_passes(geometry, passes, diagnostics)
    return Panel(
        kind=kind,
        encoding=encoding,
        layers=tuple(layers),
        legend=legend,
        colorbar=hue.scale if hue.mode == "continuous" else None,
        diagnostics=diagnostics,
        categories=categories,
    )


def build_facets(
    table: Table,
    encoding: EncodingSpec,
    kind: str,
    passes: Sequence[DrawPass] = (),
) -> list[Panel]:
    """One panel per level of ``encoding.facet``, in level order."""
    if encoding.facet is None:
        raise_parameter_error("encoding.facet", None, constraint="a facet column is required")
    table.require([encoding.facet])
    inner = replace(encoding, facet=None)
    panels = []
    for level in _levels(table, encoding.facet, table[encoding.facet]):
        subset = table.subset((table[encoding.facet] == level).to_numpy())
        panels.append(build(subset, replace(inner, title=str(level)), kind, passes))
    return panels


def build_map(
    features: Sequence[Tuple[GeoFeature, Mapping[str, Any]]],
    bounds: Optional[Rect] = None,
    encoding: Optional[EncodingSpec] = None,
) -> Panel:
    """A map panel from projected features.

    Args:
        features: ``(feature, style)`` pairs drawn in order; polygon styles
            accept ``facecolor``, ``edgecolor``, ``linewidth``; line styles
            accept ``color``, ``linewidth``.
        bounds: Projected extent; sets the axis limits.
        encoding: Optional encoding for titles and legend rules.

    Returns:
        Panel of kind 'map' with equal aspect and hidden axes.
    """
    encoding = encoding or EncodingSpec(show_legend=False)
    if bounds is not None:
        encoding = replace(encoding, xlim=(bounds.xmin, bounds.xmax), ylim=(bounds.ymin, bounds.ymax))

    layers = []
    for feature, style in features:
        verts = [pts for _, pts in feature.groups()]
        logger.debug(f"Map layer: {feature.n_groups} {feature.kind} path(s)")
        style = dict(style)
        if feature.kind == "polygon":
            def draw(ax, z, v=verts, s=style):
                ax.add_collection(PolyCollection(
                    v, facecolors=s.get("facecolor", "#D9D9D9"), edgecolors=s.get("edgecolor", "none"),
                    linewidths=s.get("linewidth", 0.3), zorder=z,
                ))
                ax.autoscale_view()
        else:
            def draw(ax, z, v=verts, s=style):
                ax.add_collection(LineCollection(
                    v, colors=s.get("color", "#BDBDBD"), linewidths=s.get("linewidth", 0.3), zorder=z,
                ))
                ax.autoscale_view()
        layers.append(Layer(f"map_{feature.kind}", draw))

    return Panel(kind="map", encoding=encoding, layers=tuple(layers), aspect="equal", axis_off=True)


def overlay(base: Panel, *others: Panel) -> Panel:
    """Stack the layers of ``others`` on top of ``base``.

    The base keeps its encoding, aspect and axis settings; legends,
    colourbars and diagnostics are merged.
    """
    layers = list(base.layers)
    legend = list(base.legend)
    colorbar = base.colorbar
    diagnostics = dict(base.diagnostics)
    for other in others:
        layers.extend(other.layers)
        legend.extend(e for e in other.legend if e not in legend)
        colorbar = colorbar or other.colorbar
        for key, value in other.diagnostics.items():
            diagnostics[key] = diagnostics.get(key, 0) + value
    return replace(base, layers=tuple(layers), legend=tuple(legend), colorbar=colorbar, diagnostics=diagnostics)


def with_layer(panel: Panel, layer: Layer, legend: Sequence[LegendEntry] = ()) -> Panel:
    """Return a copy of ``panel`` with ``layer`` drawn last."""
    return replace(panel, layers=panel.layers + (layer,), legend=panel.legend + tuple(legend))


def with_diagnostics(panel: Panel, **counters: int) -> Panel:
    """Return a copy of ``panel`` with ``counters`` added to its diagnostics."""
    diagnostics = dict(panel.diagnostics)
    for key, value in counters.items():
        diagnostics[key] = diagnostics.get(key, 0) + int(value)
    return replace(panel, diagnostics=diagnostics)


def fitted_line(
    summary: ModelSummary,
    x_range: Tuple[float, float],
    encoding: EncodingSpec,
    color: str = "black",
    n_points: int = 200,
    **style,
) -> Layer:
    """A straight-line layer from precomputed coefficients.

    The line is evaluated in transformed space: on log2 axes the model is
    read as ``log2(y) = intercept + slope * log2(x)``, then back-transformed.
    """
    lo, hi = x_range
    if encoding.x_transform == "log2":
        if lo <= 0:
            raise ValueError(f"x_range must be positive on a log2 axis, got {x_range}")
        x = np.geomspace(lo, hi, n_points)
        fx = np.log2(x)
    else:
        x = np.linspace(lo, hi, n_points)
        fx = x
    fy = summary.predict(fx)
    y = np.exp2(fy) if encoding.y_transform == "log2" else fy

    style = {"linewidth": 1.2, **style}

    def draw(ax, z):
        ax.plot(x, y, color=color, zorder=z, **style)

    return Layer(f"fit_{summary.name}", draw)


def with_fitted_line(
    panel: Panel,
    summary: ModelSummary,
    x_range: Tuple[float, float],
    color: str = "black",
    label: Optional[str] = None,
    **style,
) -> Panel:
    """Add a :func:`fitted_line` layer (and an optional legend key) to ``panel``."""
    layer = fitted_line(summary, x_range, panel.encoding, color=color, **style)
    legend = [LegendEntry(label, color, "line")] if label else []
    return with_layer(panel, layer, legend)
