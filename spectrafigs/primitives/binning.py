"""Binned aggregates and parametric densities for plotting.

Layer 2: Primitives - pure computations on Tables, no plotting.
"""

import logging
import warnings
from typing import Optional, Sequence

import numpy as np
import pandas as pd
from scipy import stats

from spectrafigs.objects.table import Table
from spectrafigs.utils.errors import (
    DataValidationError,
    InsufficientDataWarning,
    raise_parameter_error,
)

logger = logging.getLogger(__name__)

# name -> (default parameter columns, frozen scipy distribution factory)
DISTRIBUTIONS = {
    "lognormal": (("meanlog", "sdlog"), lambda m, s: stats.lognorm(s=s, scale=np.exp(m))),
    "normal": (("mean", "sd"), lambda m, s: stats.norm(loc=m, scale=s)),
    "gamma": (("shape", "rate"), lambda a, r: stats.gamma(a=a, scale=1.0 / r)),
}


def _key_levels(table: Table, key: str) -> list:
    if table.column_type(key) == "categorical":
        return table.levels(key)
    return sorted(table[key].dropna().unique())


def _group_parameter(rows: pd.DataFrame, column: str, level) -> float:
    values = rows[column].dropna().unique()
    if len(values) != 1:
        raise DataValidationError(
            f"Parameter '{column}' must have exactly one value in group '{level}', "
            f"got {len(values)}",
            suggestion="Fit parameters are per group; check the input for mixed fits",
            details={"column": column, "group": str(level), "n_values": int(len(values))},
        )
    return float(values[0])


def binned_density(
    table: Table,
    key: str,
    value: str,
    params: Optional[Sequence[str]] = None,
    distribution: str = "lognormal",
    n_points: int = 1000,
    expand: float = 1.5,
) -> Table:
    """Evaluate a fitted density per group on an evenly spaced support grid.

    For each level of ``key`` the grid runs from 0 to ``expand`` times the
    largest observed ``value`` in that group, and the density is evaluated
    with the group's fitted parameters.

    Args:
        table: Observations with one row per individual.
        key: Categorical grouping column.
        value: Observed value column (e.g. body mass).
        params: Parameter columns, constant within a group. Defaults to the
            distribution's conventional names (``meanlog``, ``sdlog`` for
            lognormal).
        distribution: 'lognormal', 'normal' or 'gamma'.
        n_points: Grid size per group.
        expand: Grid maximum as a multiple of the group maximum.

    Returns:
        Long-form Table with columns ``key``, ``x``, ``density``; ``key`` keeps
        the input level order.

    Example:
        >>> dens = binned_density(body_mass, key="data_type", value="mass")
    """
    if distribution not in DISTRIBUTIONS:
        raise_parameter_error("distribution", distribution, list(DISTRIBUTIONS))
    if n_points < 2:
        raise_parameter_error("n_points", n_points, constraint="n_points >= 2")
    if expand <= 0:
        raise_parameter_error("expand", expand, constraint="expand > 0")

    default_params, factory = DISTRIBUTIONS[distribution]
    params = tuple(params or default_params)
    if len(params) != len(default_params):
        raise_parameter_error(
            "params", params, constraint=f"{distribution} takes {len(default_params)} parameters"
        )
    table.require([key, value, *params])

    levels = _key_levels(table, key)
    frames = []
    for level in levels:
        rows = table.data.loc[table[key] == level]
        observed = rows[value].to_numpy(dtype=float)
        observed = observed[np.isfinite(observed)]
        if observed.size == 0 or observed.max() <= 0:
            message = f"No positive '{value}' observations for group '{level}'"
            warnings.warn(message, InsufficientDataWarning, stacklevel=2)
            logger.warning(message)
            continue

        dist = factory(*(_group_parameter(rows, p, level) for p in params))
        grid = np.linspace(0.0, expand * observed.max(), n_points)
        density = dist.pdf(grid)
        if np.isnan(density).any():
            raise DataValidationError(
                f"Parameters {params} of group '{level}' do not define a valid {distribution} density",
                details={"group": str(level), "distribution": distribution},
            )
        frames.append(pd.DataFrame({key: level, "x": grid, "density": density}))

    if frames:
        out = pd.concat(frames, ignore_index=True)
    else:
        out = pd.DataFrame({key: [], "x": [], "density": []})
    return Table.from_frame(
        out,
        types={"x": "numeric", "density": "numeric"},
        levels={key: levels},
        name=f"{table.name}_density",
    )


def fixed_width_bins(
    table: Table,
    column: str,
    value: str,
    width: float,
    min_count: int = 3,
    origin: Optional[float] = None,
    by: Optional[str] = None,
    upper: Optional[float] = None,
) -> Table:
    """Aggregate ``value`` into fixed-width bins of ``column``.

    Bins holding fewer than ``min_count`` observations are kept as rows with
    ``sufficient == False`` and NaN statistics, so they are never confused
    with a computed zero. Each such bin is reported through
    :class:`InsufficientDataWarning`.

    Args:
        table: Point-level observations.
        column: Binning coordinate (e.g. latitude).
        value: Statistic to aggregate (e.g. slope).
        width: Bin width in ``column`` units.
        min_count: Minimum observations for a bin to carry statistics.
        origin: Left edge of the bin grid; defaults to the data minimum
            floored to a multiple of ``width``.
        by: Optional categorical column binned separately per level.
        upper: Closed upper edge of the grid. Values equal to ``upper`` fall
            in the last bin instead of opening a bin beyond it.

    Returns:
        Table with ``[by], bin_start, bin_end, bin_mid, n, mean, sd, ymin,
        ymax, sufficient`` sorted by ``by`` level then ``bin_start``.
    """
    if width <= 0:
        raise_parameter_error("width", width, constraint="width > 0")
    if int(min_count) != min_count or min_count < 1:
        raise_parameter_error("min_count", min_count, constraint="integer >= 1")
    table.require([column, value] + ([by] if by else []))

    df = table.data
    df = df.loc[np.isfinite(df[column].astype(float)) & np.isfinite(df[value].astype(float))]
    if origin is None:
        origin = float(np.floor(df[column].min() / width) * width) if len(df) else 0.0

    index = np.floor((df[column].to_numpy(dtype=float) - origin) / width)
    if upper is not None:
        last = np.ceil((upper - origin) / width) - 1
        index = np.minimum(index, last)
    df = df.assign(bin_start=origin + index * width)

    keys = [by, "bin_start"] if by else ["bin_start"]
    grouped = df.groupby(keys, observed=True, sort=True)[value]
    out = grouped.agg(n="count", mean="mean", sd="std").reset_index()

    out["n"] = out["n"].astype(int)
    out["bin_end"] = out["bin_start"] + width
    out["bin_mid"] = out["bin_start"] + width / 2
    out["sufficient"] = out["n"] >= min_count
    out.loc[~out["sufficient"], ["mean", "sd"]] = np.nan
    out["ymin"] = out["mean"] - out["sd"]
    out["ymax"] = out["mean"] + out["sd"]

    n_insufficient = int((~out["sufficient"]).sum())
    if n_insufficient:
        message = (
            f"{n_insufficient} of {len(out)} bins of '{column}' have fewer than "
            f"{min_count} observations and will not be drawn"
        )
        warnings.warn(message, InsufficientDataWarning, stacklevel=2)
        logger.warning(message)

    columns = keys + ["bin_end", "bin_mid", "n", "mean", "sd", "ymin", "ymax", "sufficient"]
    levels = {by: _key_levels(table, by)} if by else None
    return Table.from_frame(
        out[columns],
        types={"bin_start": "numeric", "n": "numeric", "mean": "numeric", "sd": "numeric"},
        levels=levels,
        name=f"{table.name}_bins",
    )


def latitude_bins(
    table: Table,
    value: str,
    latitude: str = "latitude",
    width: float = 5.0,
    min_count: int = 3,
    by: Optional[str] = None,
) -> Table:
    """Bin a statistic into latitude bands from -90 to 90 degrees.

    Both poles belong to the outermost bands: a site at exactly 90 degrees is
    counted in the last band rather than in a band above the pole.
    """
    return fixed_width_bins(
        table, latitude, value, width=width, min_count=min_count,
        origin=-90.0, by=by, upper=90.0,
    )


def count_insufficient(bins: Table) -> int:
    """Number of bins flagged as insufficient by :func:`fixed_width_bins`."""
    return int((~bins["sufficient"].astype(bool)).sum())
