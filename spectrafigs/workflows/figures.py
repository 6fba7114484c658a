"""The named composite figures.

Each builder takes a data directory and a :class:`FigureConfig` and returns
a fully assembled :class:`CompositeFigure`; nothing is written to disk here.
Builders share no state beyond the read-only config.

Layer 4: Workflows - Public entry points with plotting.
"""

import logging
from pathlib import Path
from typing import Mapping, Union

import numpy as np

from spectrafigs.config import FigureConfig
from spectrafigs.objects.encoding import Annotation, ColorScale, EncodingSpec, Rect
from spectrafigs.objects.records import GeoFeature, ModelSummary
from spectrafigs.objects.table import Table
from spectrafigs.primitives.binning import binned_density, count_insufficient, latitude_bins
from spectrafigs.primitives.projection import (
    Projection,
    bounding_rect,
    graticule,
    project_feature,
    project_frame,
)
from spectrafigs.primitives.scales import summary_bounds
from spectrafigs.utils.errors import DataNotFoundError
from spectrafigs.workflows.io import (
    DATA_TYPE_LEVELS,
    find_input,
    load_dataset,
    load_geofeature,
    load_image,
    load_model_summaries,
)
from spectrafigs.workflows.plotting._base import level_colors
from spectrafigs.workflows.plotting.layout import (
    CompositeFigure,
    annotate,
    label,
    layout,
    panel_rects,
    place,
)
from spectrafigs.workflows.plotting.panels import (
    Layer,
    LegendEntry,
    build,
    build_map,
    outline_pass,
    overlay,
    with_diagnostics,
    with_fitted_line,
    with_layer,
)

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

BOUNDARY_SUFFIXES = (".geojson", ".json", ".csv")
SUMMARY_SUFFIXES = (".yaml", ".yml", ".json", ".csv")

# Community shown on the map and used as the global reference slope.
MAP_COMMUNITY = "combined"
LATITUDE_MODEL = "latitude"

ICONS = {"fish-only": "fish.png", "combined": "invertebrate.png"}

SLOPE_LABEL = "Size spectrum slope"


def _summary(summaries: Mapping[str, ModelSummary], name: str) -> ModelSummary:
    if name not in summaries:
        raise DataNotFoundError(
            f"Model summary '{name}' is missing",
            suggestion=f"Available summaries: {', '.join(sorted(summaries)) or 'none'}",
            details={"summary": name},
        )
    return summaries[name]


def _present_levels(table: Table, column: str) -> list:
    present = set(table[column].dropna())
    return [level for level in table.levels(column) if level in present]


def _community(sites: Table, level: str) -> Table:
    subset = sites.subset((sites["data_type"] == level).to_numpy())
    if len(subset) == 0:
        raise DataNotFoundError(
            f"No '{level}' rows in {sites.name}",
            details={"data_type": level},
        )
    return subset


def _tag_rect(rect: Rect) -> Rect:
    """Explicit label box just above and left of a panel rect."""
    return Rect(max(rect.xmin - 0.05, 0.0), rect.xmin, rect.ymax, min(rect.ymax + 0.04, 1.0))


def _load_land(data_dir: PathLike) -> GeoFeature:
    return load_geofeature(find_input(data_dir, "land", BOUNDARY_SUFFIXES), kind="polygon")


def _load_graticule(data_dir: PathLike) -> GeoFeature:
    try:
        path = find_input(data_dir, "graticule", BOUNDARY_SUFFIXES)
    except DataNotFoundError:
        logger.info("No graticule input; generating a 30 degree graticule")
        return graticule()
    return load_geofeature(path, kind="line")


def site_map(data_dir: PathLike, config: FigureConfig) -> CompositeFigure:
    """Figure 1: world map of site slopes with a latitude-band inset.

    The map points and the inset bars share one ColorScale, so equal slopes
    get equal colours in both panels.
    """
    projection = Projection(config.projection)
    sites = _community(load_dataset("site_slopes", data_dir), MAP_COMMUNITY)

    projected, n_dropped = project_frame(sites.data, projection)
    if n_dropped:
        logger.info(f"site_map: {n_dropped} site(s) without coordinates are not mapped")
    sites_xy = Table.from_frame(projected, types=sites.types, name=sites.name)

    scale = ColorScale(limits=summary_bounds(sites["slope"], digits=1), label=SLOPE_LABEL)
    # Corner rectangle of the globe; anchors the inset in map coordinates.
    extent = bounding_rect(projection)

    base = build_map(
        [
            (project_feature(_load_graticule(data_dir), projection), {"color": "#D0D0D0", "linewidth": 0.3}),
            (
                project_feature(_load_land(data_dir), projection),
                {"facecolor": "#E5E5E5", "edgecolor": "#A0A0A0", "linewidth": 0.2},
            ),
        ],
        encoding=EncodingSpec(show_legend=True),
    )
    points = build(
        sites_xy,
        EncodingSpec(
            x="x", y="y", color="slope", color_scale=scale,
            style={"s": 14, "edgecolors": "black", "linewidths": 0.2},
        ),
        "scatter",
    )
    world = overlay(base, points)

    bins = latitude_bins(sites, "slope", width=config.bin_width, min_count=config.min_bin_count)
    inset = build(
        bins,
        EncodingSpec(
            x="bin_mid", y="n", fill="mean", color_scale=scale, include="sufficient",
            orientation="horizontal", show_legend=False, xlabel="Sites", ylabel="Latitude",
            ylim=(-90.0, 90.0), style={"width": 0.9 * config.bin_width},
        ),
        "bar",
    )
    inset = with_diagnostics(inset, insufficient=count_insufficient(bins))

    map_rect = Rect(0.04, 0.98, 0.04, 0.94)
    inset_rect = Rect(
        extent.xmin + 0.08 * extent.width,
        extent.xmin + 0.24 * extent.width,
        extent.ymin + 0.06 * extent.height,
        extent.ymin + 0.46 * extent.height,
    )

    figure = CompositeFigure("fig1_site_map")
    place(figure, world, map_rect)
    place(figure, inset, inset_rect, frame="data", host=0)
    label(figure, "A", _tag_rect(map_rect))
    label(
        figure, "B",
        Rect(inset_rect.xmin - 0.06 * extent.width, inset_rect.xmin,
             inset_rect.ymax, inset_rect.ymax + 0.08 * extent.height),
        frame="data", host=0,
    )
    return figure


def size_spectra(data_dir: PathLike, config: FigureConfig) -> CompositeFigure:
    """Figure 2: NASS size spectra with fitted lines and body-mass densities."""
    nass = load_dataset("nass_bins", data_dir)
    body = load_dataset("body_mass", data_dir)
    summaries = load_model_summaries(find_input(data_dir, "model_summaries", SUMMARY_SUFFIXES))
    icons = {level: load_image(Path(data_dir) / "icons" / name) for level, name in ICONS.items()}
    colors = level_colors(DATA_TYPE_LEVELS, config.palette)

    spectra = build(
        nass,
        EncodingSpec(
            x="mass", y="normalized_abundance", color="data_type",
            x_transform="log2", y_transform="log2", palette=config.palette,
            xlabel="Body mass (mg)", ylabel="Normalized abundance", legend_title="Community",
        ),
        "scatter",
    )
    mass = nass["mass"].to_numpy(dtype=float)
    mass = mass[np.isfinite(mass) & (mass > 0)]
    if mass.size:
        x_range = (float(mass.min()), float(mass.max()))
        for level in _present_levels(nass, "data_type"):
            spectra = with_fitted_line(spectra, _summary(summaries, level), x_range, color=colors[level])

    density = build(
        binned_density(body, key="data_type", value="mass"),
        EncodingSpec(
            x="x", y="density", color="data_type", palette=config.palette,
            xlabel="Body mass (mg)", ylabel="Density", show_legend=False,
        ),
        "density",
    )

    figure = layout([spectra, density], grid=(1, 2), name="fig2_size_spectra")
    rects = panel_rects(figure)
    for tag, rect in zip("AB", rects):
        label(figure, tag, _tag_rect(rect))

    right = rects[1]
    for i, level in enumerate(DATA_TYPE_LEVELS):
        y = right.ymax - 0.12 - 0.11 * i
        annotate(figure, Annotation(kind="image", anchor=(right.xmax - 0.09, y), image=icons[level], size=(0.07, 0.08)))
        annotate(
            figure,
            Annotation(
                kind="text", anchor=(right.xmax - 0.1, y + 0.04), text=level,
                style={"ha": "right", "color": colors[level]},
            ),
        )
    return figure


def latitude_slopes(data_dir: PathLike, config: FigureConfig) -> CompositeFigure:
    """Figure 3: slopes by latitude band, by community, and against |latitude|.

    Bands whose mean slope is steeper than the global model slope get an
    outline; bands below ``config.min_bin_count`` sites get no bar at all.
    """
    sites = load_dataset("site_slopes", data_dir)
    summaries = load_model_summaries(find_input(data_dir, "model_summaries", SUMMARY_SUFFIXES))
    global_slope = _summary(summaries, MAP_COMMUNITY).slope

    bins = latitude_bins(
        _community(sites, MAP_COMMUNITY), "slope",
        width=config.bin_width, min_count=config.min_bin_count,
    )
    bars = build(
        bins,
        EncodingSpec(
            x="bin_mid", y="mean", ymin="ymin", ymax="ymax", include="sufficient",
            orientation="horizontal", xlabel="Mean slope", ylabel="Latitude",
            style={"width": 0.9 * config.bin_width},
        ),
        "bar",
        passes=[outline_pass(lambda rows: rows["mean"] < global_slope, name="steeper_than_global")],
    )
    bars = with_diagnostics(bars, insufficient=count_insufficient(bins))
    bars = with_layer(
        bars,
        Layer(
            "global_slope",
            lambda ax, z: ax.axvline(global_slope, color="black", linestyle="--", linewidth=0.8, zorder=z),
        ),
        [LegendEntry("Global slope", "black", "line")],
    )

    violins = build(
        sites,
        EncodingSpec(
            x="data_type", y="slope", fill="data_type", palette=config.palette,
            ylabel=SLOPE_LABEL, show_legend=False,
        ),
        "violin_box",
    )

    with_abs = sites.with_columns(abs_latitude=sites["latitude"].abs())
    trend = build(
        with_abs,
        EncodingSpec(
            x="abs_latitude", y="slope", color="data_type", palette=config.palette,
            xlabel="Absolute latitude", ylabel=SLOPE_LABEL, legend_title="Community",
        ),
        "scatter",
    )
    abs_lat = with_abs["abs_latitude"].to_numpy(dtype=float)
    abs_lat = abs_lat[np.isfinite(abs_lat)]
    if abs_lat.size:
        trend = with_fitted_line(
            trend, _summary(summaries, LATITUDE_MODEL), (0.0, float(abs_lat.max())),
            label="Latitude model",
        )

    figure = layout([bars, violins, trend], grid=(1, 3), spacing=(0.07, 0.1), name="fig3_latitude_slopes")
    for tag, rect in zip("ABC", panel_rects(figure)):
        label(figure, tag, _tag_rect(rect))
    return figure


__all__ = ["latitude_slopes", "site_map", "size_spectra"]
