"""Plotting workflows: panels, composite layouts and export.

All drawing goes through matplotlib's object-oriented ``Figure`` API; no
pyplot global state is touched, so building figures has no side effects.
"""

from spectrafigs.workflows.plotting._base import (
    DEFAULT_PALETTE,
    apply_axis_transform,
    level_colors,
    log2_tick_label,
    rc_params,
    scale_colors,
)
from spectrafigs.workflows.plotting.export import (
    FORMAT_PATHS,
    ExportResult,
    export,
    output_path,
)
from spectrafigs.workflows.plotting.layout import (
    CompositeFigure,
    Placement,
    annotate,
    label,
    layout,
    panel_rects,
    place,
)
from spectrafigs.workflows.plotting.panels import (
    PANEL_KINDS,
    DrawPass,
    Layer,
    LegendEntry,
    Panel,
    build,
    build_facets,
    build_map,
    fitted_line,
    outline_pass,
    overlay,
    with_fitted_line,
    with_diagnostics,
    with_layer,
)

__all__ = [
    "DEFAULT_PALETTE",
    "FORMAT_PATHS",
    "PANEL_KINDS",
    "CompositeFigure",
    "DrawPass",
    "ExportResult",
    "Layer",
    "LegendEntry",
    "Panel",
    "Placement",
    "annotate",
    "apply_axis_transform",
    "build",
    "build_facets",
    "build_map",
    "export",
    "fitted_line",
    "label",
    "layout",
    "level_colors",
    "log2_tick_label",
    "outline_pass",
    "output_path",
    "overlay",
    "panel_rects",
    "place",
    "rc_params",
    "scale_colors",
    "with_fitted_line",
    "with_diagnostics",
    "with_layer",
]
