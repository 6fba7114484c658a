"""Immutable records for model summaries and geographic features."""

from dataclasses import dataclass
from typing import Iterator, Optional, Tuple

import numpy as np


@dataclass(frozen=True)
class ModelSummary:
    """Precomputed coefficients of one fitted relationship.

    The values come from an upstream model fit and are never recomputed here.

    Attributes:
        name: Relationship identifier (e.g. 'fish-only', 'latitude').
        slope: Fitted slope.
        intercept: Fitted intercept.
        slope_se: Optional standard error of the slope.
        intercept_se: Optional standard error of the intercept.
    """

    name: str
    slope: float
    intercept: float
    slope_se: Optional[float] = None
    intercept_se: Optional[float] = None

    def __post_init__(self) -> None:
        """Validate ModelSummary parameters."""
        for attr in ("slope", "intercept"):
            value = getattr(self, attr)
            if not np.isfinite(value):
                raise ValueError(f"{attr} must be finite, got {value}")
            object.__setattr__(self, attr, float(value))

    def predict(self, x):
        """Evaluate ``intercept + slope * x``."""
        return self.intercept + self.slope * np.asarray(x, dtype=float)


@dataclass(frozen=True, eq=False)
class GeoFeature:
    """A collection of polygons or lines stored as grouped vertices.

    Consecutive vertices sharing a group id form one ring or path.

    Attributes:
        points: Vertex array of shape (N, 2), lon/lat or projected x/y.
        group_ids: Group id per vertex, shape (N,).
        kind: 'polygon' or 'line'.
        crs: 'lonlat' for geographic input, otherwise the projection definition.
    """

    points: np.ndarray
    group_ids: np.ndarray
    kind: str = "polygon"
    crs: str = "lonlat"

    def __post_init__(self) -> None:
        """Validate GeoFeature parameters."""
        points = np.array(self.points, dtype=float)
        group_ids = np.asarray(self.group_ids)

        if points.ndim != 2 or points.shape[1] != 2:
            raise ValueError(f"points must have shape (N, 2), got {points.shape}")
        if len(group_ids) != len(points):
            raise ValueError(
                f"group_ids length ({len(group_ids)}) must match "
                f"points length ({len(points)})"
            )
        if self.kind not in ("polygon", "line"):
            raise ValueError(f"kind must be 'polygon' or 'line', got {self.kind}")

        points.setflags(write=False)
        object.__setattr__(self, "points", points)
        object.__setattr__(self, "group_ids", group_ids)

    @property
    def n_groups(self) -> int:
        return len(unique_in_order(self.group_ids))

    def groups(self) -> Iterator[Tuple[object, np.ndarray]]:
        """Yield ``(group_id, vertices)`` in first-appearance order."""
        for gid in unique_in_order(self.group_ids):
            yield gid, self.points[self.group_ids == gid]

    def with_points(self, points: np.ndarray, crs: str) -> "GeoFeature":
        """Return a feature with the same topology and new vertex coordinates."""
        return GeoFeature(points=points, group_ids=self.group_ids, kind=self.kind, crs=crs)

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"GeoFeature(kind='{self.kind}', n_points={len(self.points)}, "
            f"n_groups={self.n_groups}, crs='{self.crs}')"
        )


def unique_in_order(values: np.ndarray) -> np.ndarray:
    """Unique values in order of first appearance."""
    _, index = np.unique(values, return_index=True)
    return values[np.sort(index)]
