"""Layer 4: Workflows - Public entry points.

Workflows provide the public entry points users call. Workflows can import
I/O libraries and plotting libraries. File loading, figure assembly, export
and the batch runner live here.
"""

from spectrafigs.workflows.io import (
    DATA_TYPE_LEVELS,
    DATASETS,
    TableSchema,
    find_input,
    load_dataset,
    load_geofeature,
    load_image,
    load_model_summaries,
    load_table,
)
from spectrafigs.workflows.orchestrator import (
    FIGURE_REGISTRY,
    BatchReport,
    FigureRunner,
    register_figure,
    run_figures,
)
from spectrafigs.workflows.plotting import (
    CompositeFigure,
    ExportResult,
    Panel,
    annotate,
    build,
    build_facets,
    build_map,
    export,
    fitted_line,
    label,
    layout,
    outline_pass,
    place,
    with_layer,
)

__all__ = [
    "DATASETS",
    "DATA_TYPE_LEVELS",
    "FIGURE_REGISTRY",
    "BatchReport",
    "CompositeFigure",
    "ExportResult",
    "FigureRunner",
    "Panel",
    "TableSchema",
    "annotate",
    "build",
    "build_facets",
    "build_map",
    "export",
    "find_input",
    "fitted_line",
    "label",
    "layout",
    "load_dataset",
    "load_geofeature",
    "load_image",
    "load_model_summaries",
    "load_table",
    "outline_pass",
    "place",
    "register_figure",
    "run_figures",
    "with_layer",
]
