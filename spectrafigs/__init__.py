"""spectrafigs: composite figures for size-spectrum analyses.

Layered like the rest of the package:

- objects: immutable tables, records and encodings
- primitives: projection, rounding and binning
- workflows: loading, panels, layouts, export and the figure runner
"""

from spectrafigs.config import FigureConfig, load_config
from spectrafigs.objects import (
    Annotation,
    ColorScale,
    EncodingSpec,
    GeoFeature,
    ModelSummary,
    Rect,
    Table,
)
from spectrafigs.utils.errors import (
    DataNotFoundError,
    DataValidationError,
    ExportIOError,
    InsufficientDataWarning,
    ParameterError,
    ProjectionError,
    SchemaMismatchError,
    SpectraFigsError,
)
from spectrafigs.workflows import FigureRunner, run_figures

__version__ = "0.1.0"

__all__ = [
    "Annotation",
    "ColorScale",
    "DataNotFoundError",
    "DataValidationError",
    "EncodingSpec",
    "ExportIOError",
    "FigureConfig",
    "FigureRunner",
    "GeoFeature",
    "InsufficientDataWarning",
    "ModelSummary",
    "ParameterError",
    "ProjectionError",
    "Rect",
    "SchemaMismatchError",
    "SpectraFigsError",
    "Table",
    "load_config",
    "run_figures",
]
