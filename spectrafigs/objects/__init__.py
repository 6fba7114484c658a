"""Layer 1: Objects - Immutable data representations.

This layer contains only data structures. No I/O, no pyproj, no matplotlib.
Only standard library + numpy + pandas.
"""

from spectrafigs.objects.encoding import (
    Annotation,
    ColorScale,
    EncodingSpec,
    Rect,
)
from spectrafigs.objects.records import GeoFeature, ModelSummary
from spectrafigs.objects.table import Table

__all__ = [
    "Annotation",
    "ColorScale",
    "EncodingSpec",
    "GeoFeature",
    "ModelSummary",
    "Rect",
    "Table",
]
