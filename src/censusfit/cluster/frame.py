"""
Frame handles.

A Frame is an opaque reference to a table resident in a cluster session.
It holds only a key; every property and operation is a request against
the session's store. Type coercion and renaming update the stored frame
in place, while derived columns (runif, cut, cbind, subsets) are stored
under new keys.
"""

from collections.abc import Sequence
from typing import TYPE_CHECKING

import numpy as np
import pandas as pd
from pandas.api.types import is_float_dtype

from censusfit.cluster.store import ColumnType, column_type
from censusfit.errors import ColumnNotFoundError, ConfigurationError, SchemaError
from censusfit.utils.hashing import frame_checksum
from censusfit.utils.logging import get_logger

if TYPE_CHECKING:
    from censusfit.cluster.session import ClusterSession

log = get_logger(__name__)


def bucket_breaks(width: float) -> np.ndarray:
    """
    Breakpoints partitioning the unit interval into fixed-width buckets.

    Args:
        width: Bucket width; must divide 1 evenly (0.01 gives 100 buckets).

    Returns:
        Array [0, width, 2*width, ..., 1].

    Raises:
        ConfigurationError: If width is outside (0, 1] or does not divide 1.
    """
    if not 0 < width <= 1:
        msg = f"Bucket width must be in (0, 1], got {width}"
        raise ConfigurationError(msg)

    n_buckets = round(1 / width)
    if abs(n_buckets * width - 1) > 1e-9:
        msg = f"Bucket width {width} does not divide the unit interval"
        raise ConfigurationError(msg)

    return np.round(np.linspace(0.0, 1.0, n_buckets + 1), 12)


def _interval_labels(breaks: np.ndarray) -> list[str]:
    """Labels for right-closed intervals, the lowest one closed on both ends."""
    labels = []
    for i, (lo, hi) in enumerate(zip(breaks[:-1], breaks[1:], strict=True)):
        left = "[" if i == 0 else "("
        labels.append(f"{left}{lo:.6g},{hi:.6g}]")
    return labels


class Frame:
    """Handle to a frame stored in a cluster session."""

    def __init__(self, session: "ClusterSession", key: str) -> None:
        """
        Initialize a handle.

        Args:
            session: Owning cluster session.
            key: Key of the frame in the session's store.
        """
        self.session = session
        self.key = key

    def __repr__(self) -> str:
        """Handle representation (does not contact the session)."""
        return f"Frame(key={self.key!r})"

    def __len__(self) -> int:
        """Number of rows."""
        return self.nrow

    def __getitem__(self, columns: str | Sequence[str]) -> "Frame":
        """Subset columns into a new frame."""
        cols = [columns] if isinstance(columns, str) else list(columns)
        self._require_columns(cols)
        return self.session.new_frame(self._data[cols].copy(), prefix=f"{self.key}_cols")

    @property
    def _data(self) -> pd.DataFrame:
        return self.session.frame_data(self.key)

    @property
    def columns(self) -> list[str]:
        """Column names."""
        return [str(c) for c in self._data.columns]

    @property
    def types(self) -> dict[str, ColumnType]:
        """Column name -> type tag."""
        df = self._data
        return {str(col): column_type(df[col]) for col in df.columns}

    @property
    def nrow(self) -> int:
        """Number of rows."""
        return len(self._data)

    @property
    def ncol(self) -> int:
        """Number of columns."""
        return self._data.shape[1]

    @property
    def shape(self) -> tuple[int, int]:
        """(rows, columns)."""
        return self._data.shape

    def _require_columns(self, columns: Sequence[str]) -> None:
        """Raise ColumnNotFoundError for columns missing from the frame."""
        present = set(self.columns)
        missing = [c for c in columns if c not in present]
        if missing:
            raise ColumnNotFoundError(self.key, missing)

    def levels(self, column: str) -> list[str]:
        """
        Levels of a categorical column.

        Raises:
            ColumnNotFoundError: If the column does not exist.
            SchemaError: If the column is not categorical.
        """
        self._require_columns([column])
        series = self._data[column]
        if column_type(series) != ColumnType.CATEGORICAL:
            msg = f"Column '{column}' of frame '{self.key}' is not categorical"
            raise SchemaError(msg)
        return [str(c) for c in series.cat.categories]

    def asfactor(self, columns: str | Sequence[str]) -> "Frame":
        """
        Reinterpret columns as categorical.

        Integer-valued float columns (integers with missing values) are
        converted to nullable integers first, so levels read "1" not "1.0".
        All other columns are left unchanged.

        Args:
            columns: Column name or names.

        Returns:
            This handle (the stored frame is updated in place).

        Raises:
            ColumnNotFoundError: If any column does not exist.
        """
        cols = [columns] if isinstance(columns, str) else list(columns)
        self._require_columns(cols)

        df = self._data.copy()
        for col in cols:
            series = df[col]
            if isinstance(series.dtype, pd.CategoricalDtype):
                continue
            if is_float_dtype(series.dtype):
                observed = series.dropna()
                if (observed % 1 == 0).all():
                    series = series.astype("Int64")
            df[col] = series.astype("category")

        self.session.replace_frame_data(self.key, df)
        log.debug("Converted columns to categorical", frame=self.key, columns=cols)
        return self

    def asnumeric(self, columns: str | Sequence[str]) -> "Frame":
        """
        Reinterpret columns as numeric.

        Raises:
            ColumnNotFoundError: If any column does not exist.
            SchemaError: If a value cannot be parsed as a number.
        """
        cols = [columns] if isinstance(columns, str) else list(columns)
        self._require_columns(cols)

        df = self._data.copy()
        for col in cols:
            series = df[col]
            if isinstance(series.dtype, pd.CategoricalDtype):
                series = series.astype(object)
            try:
                df[col] = pd.to_numeric(series, errors="raise")
            except (TypeError, ValueError) as e:
                msg = f"Column '{col}' of frame '{self.key}' is not numeric: {e}"
                raise SchemaError(msg) from e

        self.session.replace_frame_data(self.key, df)
        log.debug("Converted columns to numeric", frame=self.key, columns=cols)
        return self

    def rename(self, mapping: dict[str, str]) -> "Frame":
        """
        Rename columns in place.

        Raises:
            ColumnNotFoundError: If a source column does not exist.
            SchemaError: If the result would contain duplicate names.
        """
        self._require_columns(list(mapping))
        renamed = self._data.rename(columns=mapping)
        if renamed.columns.duplicated().any():
            msg = f"Renaming would duplicate columns in frame '{self.key}'"
            raise SchemaError(msg)

        self.session.replace_frame_data(self.key, renamed)
        return self

    def runif(self, seed: int | None = None, column: str = "rnd") -> "Frame":
        """
        Draw one uniform [0, 1) value per row.

        Args:
            seed: Random seed. The same seed on a frame with the same row
                count gives identical values; None draws fresh entropy.
            column: Name of the generated column.

        Returns:
            New single-column frame.
        """
        rng = np.random.default_rng(seed)
        values = rng.random(self.nrow)
        log.debug("Generated uniform column", frame=self.key, seed=seed, rows=len(values))
        return self.session.new_frame(pd.DataFrame({column: values}), prefix="runif")

    def cut(
        self,
        breaks: Sequence[float] | np.ndarray,
        labels: Sequence[str] | None = None,
    ) -> "Frame":
        """
        Bucket a single numeric column into intervals.

        Intervals are right-closed; the lowest one also includes its left
        edge. Values outside all intervals become missing.

        Args:
            breaks: Strictly increasing breakpoints (at least two).
            labels: Optional bucket labels, one per interval.

        Returns:
            New single-column frame with a categorical column.

        Raises:
            SchemaError: If the frame is not a single numeric column.
            ConfigurationError: If breaks or labels are invalid.
        """
        if self.ncol != 1:
            msg = f"cut requires a single-column frame, '{self.key}' has {self.ncol}"
            raise SchemaError(msg)

        name = self.columns[0]
        series = self._data[name]
        if column_type(series) != ColumnType.NUMERIC:
            msg = f"cut requires a numeric column, '{name}' is {column_type(series).value}"
            raise SchemaError(msg)

        edges = np.asarray(breaks, dtype=float)
        if edges.ndim != 1 or len(edges) < 2 or np.any(np.diff(edges) <= 0):
            msg = "Breaks must be at least two strictly increasing values"
            raise ConfigurationError(msg)

        bucket_labels = list(labels) if labels is not None else _interval_labels(edges)
        if len(bucket_labels) != len(edges) - 1:
            msg = f"Expected {len(edges) - 1} labels, got {len(bucket_labels)}"
            raise ConfigurationError(msg)

        binned = pd.cut(
            series,
            bins=edges,
            labels=bucket_labels,
            right=True,
            include_lowest=True,
        )
        return self.session.new_frame(pd.DataFrame({name: binned}), prefix="cut")

    def cbind(self, other: "Frame") -> "Frame":
        """
        Append the columns of another frame.

        Returns:
            New frame with this frame's columns followed by the other's.

        Raises:
            SchemaError: If the frames differ in session or row count, or
                share a column name.
        """
        if other.session is not self.session:
            msg = "Cannot combine frames from different sessions"
            raise SchemaError(msg)

        left = self._data
        right = other._data
        if len(left) != len(right):
            msg = (
                f"Row count mismatch: '{self.key}' has {len(left)} rows, "
                f"'{other.key}' has {len(right)}"
            )
            raise SchemaError(msg)

        shared = sorted(set(left.columns) & set(right.columns))
        if shared:
            msg = f"Duplicate column(s) {', '.join(map(str, shared))} in cbind"
            raise SchemaError(msg)

        combined = pd.concat(
            [left.reset_index(drop=True), right.reset_index(drop=True)], axis=1
        )
        return self.session.new_frame(combined, prefix="cbind")

    def head(self, n: int = 10) -> pd.DataFrame:
        """Pull the first n rows to the client."""
        return self._data.head(n).copy()

    def as_data_frame(self) -> pd.DataFrame:
        """Pull all rows to the client."""
        return self._data.copy()

    def describe(self) -> pd.DataFrame:
        """
        Per-column summary.

        Returns:
            DataFrame with type, missing count, min/mean/max for numeric
            columns and cardinality for categorical columns.
        """
        df = self._data
        rows = []
        for col in df.columns:
            series = df[col]
            kind = column_type(series)
            row: dict[str, object] = {
                "column": str(col),
                "type": kind.value,
                "missing": int(series.isna().sum()),
                "min": None,
                "mean": None,
                "max": None,
                "cardinality": None,
            }
            if kind == ColumnType.NUMERIC:
                row["min"] = float(series.min())
                row["mean"] = float(series.mean())
                row["max"] = float(series.max())
            elif kind == ColumnType.CATEGORICAL:
                row["cardinality"] = len(series.cat.categories)
            rows.append(row)
        return pd.DataFrame(rows)

    def checksum(self) -> str:
        """Content hash of the stored frame."""
        return frame_checksum(self._data)
