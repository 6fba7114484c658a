"""Forward map projection of lon/lat points and features.

Provides standardized projection handling using pyproj. Projection is
applied per vertex, so polygon and line topology is never altered.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import lru_cache

import numpy as np
import pandas as pd
from pyproj import CRS, Transformer
from pyproj.exceptions import CRSError

from spectrafigs.objects.encoding import Rect
from spectrafigs.objects.records import GeoFeature
from spectrafigs.utils.errors import ProjectionError

logger = logging.getLogger(__name__)

ROBINSON = "+proj=robin +lon_0=0 +x_0=0 +y_0=0 +ellps=WGS84 +datum=WGS84 +units=m +no_defs"
GEOGRAPHIC = "EPSG:4326"


@lru_cache(maxsize=16)
def _transformer(definition: str) -> Transformer:
    try:
        target = CRS.from_user_input(definition)
    except CRSError as e:
        raise ProjectionError(
            f"Invalid projection definition: {definition}",
            suggestion="Use a PROJ string such as '+proj=robin' or an EPSG code",
        ) from e
    return Transformer.from_crs(CRS.from_user_input(GEOGRAPHIC), target, always_xy=True)


@dataclass(frozen=True)
class Projection:
    """A stateless forward projection ``(lon, lat) -> (x, y)``.

    Attributes:
        definition: PROJ string or any input accepted by ``CRS.from_user_input``.
    """

    definition: str = ROBINSON

    def __post_init__(self) -> None:
        """Validate the definition eagerly."""
        _transformer(self.definition)

    @classmethod
    def robinson(cls) -> "Projection":
        return cls(ROBINSON)

    def __call__(self, lon, lat) -> tuple[np.ndarray, np.ndarray]:
        """Project coordinate arrays without validation."""
        return _transformer(self.definition).transform(
            np.asarray(lon, dtype=float), np.asarray(lat, dtype=float)
        )

    def __repr__(self) -> str:
        """String representation."""
        return f"Projection('{self.definition}')"


def _validate_points(points) -> np.ndarray:
    try:
        arr = np.asarray(points, dtype=float)
    except (TypeError, ValueError) as e:
        raise ProjectionError(f"Coordinates are not numeric: {e}") from e

    if arr.ndim == 1 and arr.size == 2:
        arr = arr.reshape(1, 2)
    if arr.ndim != 2 or arr.shape[1] != 2:
        raise ProjectionError(
            f"Coordinates must have shape (N, 2), got {arr.shape}",
            suggestion="Pass a sequence of (lon, lat) pairs",
        )
    if not np.all(np.isfinite(arr)):
        n_bad = int((~np.isfinite(arr)).any(axis=1).sum())
        raise ProjectionError(
            f"{n_bad} coordinate pair(s) are missing or non-finite",
            suggestion="Filter rows with drop_missing_coordinates() before projecting",
            details={"n_invalid": n_bad},
        )
    lon, lat = arr[:, 0], arr[:, 1]
    if np.any(np.abs(lon) > 180) or np.any(np.abs(lat) > 90):
        raise ProjectionError(
            "Coordinates outside lon [-180, 180] / lat [-90, 90]",
            details={
                "lon_range": (float(lon.min()), float(lon.max())),
                "lat_range": (float(lat.min()), float(lat.max())),
            },
        )
    return arr


def project(points, projection: Projection) -> np.ndarray:
    """Project a sequence of (lon, lat) pairs.

    Args:
        points: Sequence or array of (lon, lat) pairs, shape (N, 2).
        projection: Target projection.

    Returns:
        Array of projected (x, y) pairs, shape (N, 2).

    Raises:
        ProjectionError: If the coordinates are malformed, missing or out of range.

    Example:
        >>> xy = project([(0, 0), (180, 90)], Projection.robinson())
    """
    arr = _validate_points(points)
    if len(arr) == 0:
        return np.empty((0, 2))
    x, y = projection(arr[:, 0], arr[:, 1])
    out = np.column_stack([x, y])
    if not np.all(np.isfinite(out)):
        raise ProjectionError(f"Projection {projection.definition} produced non-finite values")
    return out


def project_feature(feature: GeoFeature, projection: Projection) -> GeoFeature:
    """Project every vertex of a feature; group ids are carried over unchanged."""
    if feature.crs != "lonlat":
        raise ProjectionError(
            f"Feature is already projected ({feature.crs})",
            suggestion="Project features from lon/lat only once",
        )
    return feature.with_points(project(feature.points, projection), crs=projection.definition)


def drop_missing_coordinates(
    df: pd.DataFrame, lon: str = "longitude", lat: str = "latitude"
) -> tuple[pd.DataFrame, int]:
    """Drop rows whose lon or lat is missing.

    Args:
        df: Input rows.
        lon: Longitude column name.
        lat: Latitude column name.

    Returns:
        Tuple of (kept rows, number of dropped rows).
    """
    mask = df[lon].notna() & df[lat].notna()
    n_dropped = int((~mask).sum())
    if n_dropped:
        logger.warning(f"Dropped {n_dropped} row(s) with missing coordinates")
    return df.loc[mask].reset_index(drop=True), n_dropped


def project_frame(
    df: pd.DataFrame,
    projection: Projection,
    lon: str = "longitude",
    lat: str = "latitude",
) -> tuple[pd.DataFrame, int]:
    """Filter missing coordinates, then add projected ``x`` and ``y`` columns.

    Returns:
        Tuple of (projected rows, number of dropped rows).
    """
    kept, n_dropped = drop_missing_coordinates(df, lon, lat)
    xy = project(kept[[lon, lat]].to_numpy(dtype=float), projection)
    kept = kept.assign(x=xy[:, 0], y=xy[:, 1])
    return kept, n_dropped


def bounding_rect(
    projection: Projection,
    lon_range: tuple[float, float] = (-180.0, 180.0),
    lat_range: tuple[float, float] = (-90.0, 90.0),
) -> Rect:
    """Projected bounding rectangle of the four extreme lon/lat corners.

    Used to place insets relative to the projected extent of a map.
    """
    corners = [(lo, la) for lo in lon_range for la in lat_range]
    xy = project(corners, projection)
    return Rect(
        float(xy[:, 0].min()),
        float(xy[:, 0].max()),
        float(xy[:, 1].min()),
        float(xy[:, 1].max()),
    )


def graticule(
    lon_step: float = 30.0,
    lat_step: float = 30.0,
    resolution: float = 1.0,
) -> GeoFeature:
    """Generate meridians and parallels as a lon/lat line feature.

    Args:
        lon_step: Spacing between meridians in degrees.
        lat_step: Spacing between parallels in degrees.
        resolution: Vertex spacing along each line in degrees.

    Returns:
        Line GeoFeature including the outer frame meridians at +/-180.
    """
    if lon_step <= 0 or lat_step <= 0 or resolution <= 0:
        raise ValueError("lon_step, lat_step and resolution must be positive")

    points = []
    groups = []
    lats = np.arange(-90.0, 90.0 + resolution / 2, resolution)
    lons = np.arange(-180.0, 180.0 + resolution / 2, resolution)

    meridians = np.arange(-180.0, 180.0 + lon_step / 2, lon_step)
    for i, lon in enumerate(meridians):
        points.append(np.column_stack([np.full_like(lats, lon), lats]))
        groups.append(np.full(len(lats), f"meridian_{i}"))

    parallels = np.arange(-90.0 + lat_step, 90.0, lat_step)
    for i, lat in enumerate(parallels):
        points.append(np.column_stack([lons, np.full_like(lons, lat)]))
        groups.append(np.full(len(lons), f"parallel_{i}"))

    return GeoFeature(
        points=np.vstack(points), group_ids=np.concatenate(groups), kind="line"
    )
