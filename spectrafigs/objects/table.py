"""Typed tables with explicit categorical level order.

A Table is a pandas DataFrame plus a declared semantic type for each column.
Categorical columns are stored as ordered ``pandas.Categorical`` so the level
order set at load time survives filtering, grouping and concatenation.
"""

from dataclasses import dataclass, field
from typing import Iterable, Mapping, Optional, Sequence

import numpy as np
import pandas as pd

from spectrafigs.utils.errors import SchemaMismatchError, raise_schema_error

COLUMN_TYPES = ("numeric", "categorical", "string")


def _infer_type(series: pd.Series) -> str:
    if isinstance(series.dtype, pd.CategoricalDtype):
        return "categorical"
    if pd.api.types.is_numeric_dtype(series) and not pd.api.types.is_bool_dtype(series):
        return "numeric"
    return "string"


def _as_categorical(values: pd.Series, order: Sequence, column: str, name: str) -> pd.Series:
    """Re-level ``values`` with ``order``; values outside the order are an error."""
    order = list(order)
    present = pd.Series(values.dropna().unique())
    unknown = [v for v in present if v not in order]
    if unknown:
        raise_schema_error(
            name,
            column=column,
            expected=f"levels {order}",
            received=f"unlisted values {sorted(map(str, unknown))}",
        )
    return pd.Series(
        pd.Categorical(values, categories=order, ordered=True),
        index=values.index,
        name=values.name,
    )


@dataclass(frozen=True, eq=False)
class Table:
    """An ordered collection of named, typed columns.

    Attributes:
        data: Underlying DataFrame. Column lengths are equal by construction.
        types: Semantic type per column ('numeric', 'categorical', 'string').
        name: Dataset name used in error messages and logs.
    """

    data: pd.DataFrame
    types: Mapping[str, str] = field(default_factory=dict)
    name: str = "table"

    def __post_init__(self) -> None:
        """Validate Table parameters."""
        if not isinstance(self.data, pd.DataFrame):
            raise ValueError(f"data must be pandas DataFrame, got {type(self.data)}")

        types = dict(self.types)
        for column in self.data.columns:
            types.setdefault(column, _infer_type(self.data[column]))

        for column, kind in types.items():
            if column not in self.data.columns:
                raise_schema_error(self.name, missing=[column])
            if kind not in COLUMN_TYPES:
                raise ValueError(
                    f"Column type for '{column}' must be one of {COLUMN_TYPES}, got {kind}"
                )
            if kind == "categorical" and not isinstance(
                self.data[column].dtype, pd.CategoricalDtype
            ):
                raise SchemaMismatchError(
                    f"Categorical column '{column}' in '{self.name}' has no level order",
                    suggestion="Use Table.from_frame(..., levels={column: [...]})",
                )
        object.__setattr__(self, "types", types)

    @classmethod
    def from_frame(
        cls,
        data: pd.DataFrame,
        types: Optional[Mapping[str, str]] = None,
        levels: Optional[Mapping[str, Sequence]] = None,
        name: str = "table",
    ) -> "Table":
        """Build a Table, converting categorical columns with explicit orders.

        Args:
            data: Source DataFrame (not modified).
            types: Declared semantic types; undeclared columns are inferred.
            levels: Level order per categorical column. Columns listed here are
                categorical even if ``types`` does not say so.
            name: Dataset name.

        Returns:
            New Table.

        Raises:
            SchemaMismatchError: If a declared column is missing or a categorical
                column holds values outside its level order.
        """
        types = dict(types or {})
        levels = dict(levels or {})
        missing = [c for c in list(types) + list(levels) if c not in data.columns]
        if missing:
            raise_schema_error(name, missing=sorted(set(missing)))

        df = data.copy()
        for column, order in levels.items():
            df[column] = _as_categorical(df[column], order, column, name)
            types[column] = "categorical"

        for column, kind in types.items():
            if kind == "categorical" and column not in levels:
                if isinstance(df[column].dtype, pd.CategoricalDtype):
                    df[column] = df[column].cat.as_ordered()
                else:
                    # Undeclared order: sorted unique values keep the result
                    # independent of row order.
                    order = sorted(df[column].dropna().unique())
                    df[column] = _as_categorical(df[column], order, column, name)
        return cls(data=df, types=types, name=name)

    @property
    def columns(self) -> list[str]:
        return list(self.data.columns)

    def __len__(self) -> int:
        return len(self.data)

    def __getitem__(self, column: str) -> pd.Series:
        return self.data[column]

    def column_type(self, column: str) -> str:
        """Return the semantic type of ``column``."""
        if column not in self.types:
            raise_schema_error(self.name, missing=[column])
        return self.types[column]

    def levels(self, column: str) -> list:
        """Return the declared level order of a categorical column."""
        if self.column_type(column) != "categorical":
            raise SchemaMismatchError(
                f"Column '{column}' in '{self.name}' is not categorical"
            )
        return list(self.data[column].cat.categories)

    def relevel(self, column: str, order: Sequence) -> "Table":
        """Return a copy with ``column`` re-leveled to ``order``."""
        if column not in self.data.columns:
            raise_schema_error(self.name, missing=[column])
        df = self.data.copy()
        values = df[column].astype(object).where(df[column].notna(), None)
        df[column] = _as_categorical(values, order, column, self.name)
        types = dict(self.types)
        types[column] = "categorical"
        return Table(data=df, types=types, name=self.name)

    def require(self, columns: Iterable[str]) -> None:
        """Raise SchemaMismatchError unless all ``columns`` are present."""
        missing = [c for c in columns if c not in self.data.columns]
        if missing:
            raise_schema_error(self.name, missing=missing)

    def subset(self, mask) -> "Table":
        """Return the rows selected by a boolean mask; level orders are kept."""
        mask = np.asarray(mask, dtype=bool)
        return Table(
            data=self.data.loc[mask].reset_index(drop=True),
            types=self.types,
            name=self.name,
        )

    def with_columns(self, **columns) -> "Table":
        """Return a copy with extra or replaced numeric/string columns."""
        df = self.data.copy()
        types = dict(self.types)
        for column, values in columns.items():
            df[column] = values
            types[column] = _infer_type(df[column])
        return Table(data=df, types=types, name=self.name)

    def __repr__(self) -> str:
        """String representation."""
        n_rows, n_cols = self.data.shape
        return f"Table(name='{self.name}', n_rows={n_rows}, n_cols={n_cols})"
