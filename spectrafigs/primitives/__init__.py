"""Layer 2: Primitives - projection, rounding and binning.

Pure computations on objects. No file I/O and no plotting.
"""

from spectrafigs.primitives.binning import (
    DISTRIBUTIONS,
    binned_density,
    count_insufficient,
    fixed_width_bins,
    latitude_bins,
)
from spectrafigs.primitives.projection import (
    ROBINSON,
    Projection,
    bounding_rect,
    drop_missing_coordinates,
    graticule,
    project,
    project_feature,
    project_frame,
)
from spectrafigs.primitives.scales import ceiling_dec, floor_dec, summary_bounds

__all__ = [
    "DISTRIBUTIONS",
    "ROBINSON",
    "Projection",
    "binned_density",
    "bounding_rect",
    "ceiling_dec",
    "count_insufficient",
    "drop_missing_coordinates",
    "fixed_width_bins",
    "floor_dec",
    "graticule",
    "latitude_bins",
    "project",
    "project_feature",
    "project_frame",
    "summary_bounds",
]
