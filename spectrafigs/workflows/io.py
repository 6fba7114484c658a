"""Data Loader: tables, model summaries, boundaries and icon images.

Layer 4: Workflows - file loading lives here.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional, Sequence, Union

import numpy as np
import pandas as pd
import yaml
from matplotlib import image as mpimg

from spectrafigs.objects.records import GeoFeature, ModelSummary
from spectrafigs.objects.table import Table
from spectrafigs.utils.errors import (
    DataNotFoundError,
    SchemaMismatchError,
    raise_schema_error,
)

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

# Display order of the two community definitions; fixes legend and stacking order.
DATA_TYPE_LEVELS = ("fish-only", "combined")


@dataclass(frozen=True)
class TableSchema:
    """Required columns of a named dataset.

    Attributes:
        name: Dataset name; also the CSV file stem.
        columns: Required column -> semantic type.
        levels: Explicit level order per categorical column.
        description: What one row represents.
    """

    name: str
    columns: Mapping[str, str]
    levels: Mapping[str, Sequence] = field(default_factory=dict)
    description: str = ""


DATASETS = {
    "site_slopes": TableSchema(
        name="site_slopes",
        columns={
            "site": "string",
            "ecoregion": "string",
            "latitude": "numeric",
            "longitude": "numeric",
            "data_type": "categorical",
            "slope": "numeric",
        },
        levels={"data_type": DATA_TYPE_LEVELS},
        description="One fitted size-spectrum slope per site and data type",
    ),
    "nass_bins": TableSchema(
        name="nass_bins",
        columns={
            "data_type": "categorical",
            "mass": "numeric",
            "normalized_abundance": "numeric",
        },
        levels={"data_type": DATA_TYPE_LEVELS},
        description="Normalized abundance per log2 body-mass bin midpoint",
    ),
    "body_mass": TableSchema(
        name="body_mass",
        columns={
            "data_type": "categorical",
            "mass": "numeric",
            "meanlog": "numeric",
            "sdlog": "numeric",
        },
        levels={"data_type": DATA_TYPE_LEVELS},
        description="Individual body masses with the fitted lognormal parameters",
    ),
}


def _require_file(path: Path) -> Path:
    if not path.exists():
        raise DataNotFoundError(
            f"Input not found: {path}",
            suggestion="Check the data directory passed to the figure runner",
            details={"path": str(path)},
        )
    return path


def _coerce(df: pd.DataFrame, schema: TableSchema) -> pd.DataFrame:
    df = df.copy()
    for column, kind in schema.columns.items():
        if kind == "numeric":
            try:
                df[column] = pd.to_numeric(df[column])
            except (TypeError, ValueError):
                raise_schema_error(
                    schema.name,
                    column=column,
                    expected="numeric",
                    received=str(df[column].dtype),
                )
        elif kind == "string":
            df[column] = df[column].where(df[column].isna(), df[column].astype(str))
    return df


def load_table(path: PathLike, schema: TableSchema) -> Table:
    """Read a delimited table and validate it against ``schema``.

    Categorical columns are re-leveled with the schema's explicit order at load
    time, so downstream legends and stacks do not depend on row order.

    Args:
        path: CSV file.
        schema: Required columns, types and level orders.

    Returns:
        Typed Table.

    Raises:
        DataNotFoundError: If the file does not exist.
        SchemaMismatchError: If a required column is missing, cannot be
            coerced, or holds an unlisted categorical level.
    """
    path = _require_file(Path(path))
    try:
        df = pd.read_csv(path)
    except (pd.errors.EmptyDataError, pd.errors.ParserError) as e:
        raise SchemaMismatchError(f"Cannot parse {path}: {e}") from e

    missing = [c for c in schema.columns if c not in df.columns]
    if missing:
        raise_schema_error(schema.name, missing=missing)

    table = Table.from_frame(
        _coerce(df, schema),
        types=schema.columns,
        levels=schema.levels,
        name=schema.name,
    )
    logger.info(f"Loaded {schema.name}: {len(table)} rows from {path}")
    return table


def load_dataset(name: str, data_dir: PathLike) -> Table:
    """Load ``<data_dir>/<name>.csv`` with the registered schema."""
    if name not in DATASETS:
        raise DataNotFoundError(
            f"Unknown dataset: {name}",
            suggestion=f"Available: {', '.join(DATASETS)}",
        )
    return load_table(Path(data_dir) / f"{name}.csv", DATASETS[name])


def _summary_from_record(name: str, record: Mapping) -> ModelSummary:
    missing = [k for k in ("slope", "intercept") if k not in record]
    if missing:
        raise_schema_error(f"model summary '{name}'", missing=missing)
    try:
        return ModelSummary(
            name=str(name),
            slope=float(record["slope"]),
            intercept=float(record["intercept"]),
            slope_se=_optional_float(record.get("slope_se")),
            intercept_se=_optional_float(record.get("intercept_se")),
        )
    except (TypeError, ValueError) as e:
        raise SchemaMismatchError(f"Invalid model summary '{name}': {e}") from e


def _optional_float(value) -> Optional[float]:
    if value is None or (isinstance(value, float) and np.isnan(value)):
        return None
    return float(value)


def load_model_summaries(path: PathLike) -> dict[str, ModelSummary]:
    """Read precomputed ``{slope, intercept}`` records keyed by relationship name.

    Accepts CSV (columns ``name, slope, intercept`` plus optional standard
    errors) or YAML/JSON (a mapping ``name -> {slope, intercept}`` or a list of
    records with a ``name`` key).
    """
    path = _require_file(Path(path))
    suffix = path.suffix.lower()

    if suffix == ".csv":
        df = pd.read_csv(path)
        if "name" not in df.columns:
            raise_schema_error("model_summaries", missing=["name"])
        records = {row["name"]: row for row in df.to_dict(orient="records")}
    elif suffix in (".yaml", ".yml", ".json"):
        with open(path) as f:
            raw = yaml.safe_load(f) if suffix != ".json" else json.load(f)
        if isinstance(raw, list):
            records = {r["name"]: r for r in raw}
        elif isinstance(raw, dict):
            records = raw
        else:
            raise SchemaMismatchError(f"Model summaries in {path} must be a mapping or list")
    else:
        raise SchemaMismatchError(
            f"Unsupported model summary format: {suffix}",
            suggestion="Use .csv, .yaml, .yml or .json",
        )

    summaries = {str(name): _summary_from_record(name, rec) for name, rec in records.items()}
    logger.info(f"Loaded {len(summaries)} model summaries from {path}")
    return summaries


def _first_column(df: pd.DataFrame, candidates: Sequence[str], dataset: str) -> str:
    for column in candidates:
        if column in df.columns:
            return column
    raise_schema_error(dataset, missing=[candidates[0]])


def _geojson_parts(geometry: Mapping, prefix: str):
    gtype = geometry.get("type")
    coords = geometry.get("coordinates", [])
    if gtype == "Polygon":
        for k, ring in enumerate(coords):
            yield "polygon", f"{prefix}_r{k}", ring
    elif gtype == "MultiPolygon":
        for j, polygon in enumerate(coords):
            for k, ring in enumerate(polygon):
                yield "polygon", f"{prefix}_p{j}_r{k}", ring
    elif gtype == "LineString":
        yield "line", prefix, coords
    elif gtype == "MultiLineString":
        for j, line in enumerate(coords):
            yield "line", f"{prefix}_l{j}", line
    else:
        raise SchemaMismatchError(f"Unsupported GeoJSON geometry type: {gtype}")


def load_geofeature(path: PathLike, kind: Optional[str] = None) -> GeoFeature:
    """Read a polygon or line collection in lon/lat.

    Supports long-format CSV (``long``/``lon``, ``lat``, ``group`` columns, one
    row per vertex) and GeoJSON feature collections.

    Args:
        path: CSV or GeoJSON file.
        kind: 'polygon' or 'line'; inferred from GeoJSON geometry when omitted,
            defaults to 'polygon' for CSV.

    Returns:
        GeoFeature in lon/lat.
    """
    path = _require_file(Path(path))
    suffix = path.suffix.lower()

    if suffix == ".csv":
        df = pd.read_csv(path)
        lon = _first_column(df, ("long", "lon", "longitude"), path.stem)
        lat = _first_column(df, ("lat", "latitude"), path.stem)
        if "group" not in df.columns:
            raise_schema_error(path.stem, missing=["group"])
        df = df.dropna(subset=[lon, lat])
        try:
            points = df[[lon, lat]].to_numpy(dtype=float)
        except ValueError as e:
            raise SchemaMismatchError(f"Non-numeric coordinates in {path}: {e}") from e
        feature = GeoFeature(
            points=points,
            group_ids=df["group"].astype(str).to_numpy(),
            kind=kind or "polygon",
        )
    elif suffix in (".geojson", ".json"):
        with open(path) as f:
            raw = json.load(f)
        features = raw.get("features", [raw]) if raw.get("type") == "FeatureCollection" else [raw]
        points, groups, kinds = [], [], set()
        for i, feat in enumerate(features):
            geometry = feat.get("geometry", feat)
            for part_kind, gid, ring in _geojson_parts(geometry, f"f{i}"):
                ring = np.asarray(ring, dtype=float)[:, :2]
                points.append(ring)
                groups.append(np.full(len(ring), gid))
                kinds.add(part_kind)
        if not points:
            raise SchemaMismatchError(f"No geometries in {path}")
        if kind is None:
            if len(kinds) > 1:
                raise SchemaMismatchError(f"{path} mixes polygons and lines; pass kind=")
            kind = kinds.pop()
        feature = GeoFeature(
            points=np.vstack(points), group_ids=np.concatenate(groups), kind=kind
        )
    else:
        raise SchemaMismatchError(
            f"Unsupported boundary format: {suffix}",
            suggestion="Use .csv or .geojson",
        )

    logger.info(f"Loaded {feature!r} from {path}")
    return feature


def load_image(path: PathLike) -> np.ndarray:
    """Read a raster icon (PNG) as an array."""
    path = _require_file(Path(path))
    return mpimg.imread(path)


def find_input(data_dir: PathLike, stem: str, suffixes: Sequence[str]) -> Path:
    """Return the first existing ``<data_dir>/<stem><suffix>``.

    Raises:
        DataNotFoundError: If none of the candidates exists.
    """
    for suffix in suffixes:
        candidate = Path(data_dir) / f"{stem}{suffix}"
        if candidate.exists():
            return candidate
    raise DataNotFoundError(
        f"No {stem} input in {data_dir} (tried {', '.join(suffixes)})",
        details={"stem": stem},
    )
