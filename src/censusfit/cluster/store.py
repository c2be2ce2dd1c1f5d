"""
Keyed frame and model store.

Holds every frame and model of a session in one namespace keyed by
caller-chosen identifiers. Frames are pandas DataFrames whose dtypes
carry the column type tags: `category` is categorical, numeric dtypes
are numeric, everything else is a string column.
"""

from enum import Enum
from pathlib import Path
from typing import Any

import pandas as pd
from pandas.api.types import is_numeric_dtype

from censusfit.errors import ConfigurationError, SchemaError
from censusfit.utils.logging import get_logger

log = get_logger(__name__)

# Delimiters checked when a header does not split on the requested one
COMMON_DELIMITERS = (",", ";", "\t", "|")


class ColumnType(str, Enum):
    """Type tag of a frame column."""

    NUMERIC = "numeric"
    CATEGORICAL = "categorical"
    STRING = "string"


def column_type(series: pd.Series) -> ColumnType:
    """Derive the type tag of a column from its dtype."""
    if isinstance(series.dtype, pd.CategoricalDtype):
        return ColumnType.CATEGORICAL
    if is_numeric_dtype(series.dtype) and not pd.api.types.is_bool_dtype(series.dtype):
        return ColumnType.NUMERIC
    return ColumnType.STRING


def read_frame(path: Path, sep: str = ",") -> pd.DataFrame:
    """
    Read a delimited file into a DataFrame.

    Compressed files (.gz, .zip, .bz2, .xz) are decompressed by pandas.

    Args:
        path: File to read.
        sep: Single-character field delimiter.

    Returns:
        DataFrame with one row per record and one column per field.

    Raises:
        ConfigurationError: If the delimiter is not a single character.
        SchemaError: If the file is missing, empty, unparsable, or the
            delimiter does not split the header.
    """
    if not isinstance(sep, str) or len(sep) != 1:
        msg = f"Delimiter must be a single character, got {sep!r}"
        raise ConfigurationError(msg)

    if not path.is_file():
        msg = f"Cannot import '{path}': file not found"
        raise SchemaError(msg)

    try:
        df = pd.read_csv(path, sep=sep)
    except pd.errors.EmptyDataError as e:
        msg = f"Cannot import '{path}': file is empty"
        raise SchemaError(msg) from e
    except (pd.errors.ParserError, UnicodeDecodeError) as e:
        msg = f"Cannot import '{path}': {e}"
        raise SchemaError(msg) from e

    if df.shape[1] == 1:
        header = str(df.columns[0])
        others = [d for d in COMMON_DELIMITERS if d != sep and d in header]
        if others:
            msg = (
                f"Delimiter {sep!r} does not split the header of '{path}' "
                f"(header contains {others[0]!r})"
            )
            raise SchemaError(msg)

    return df


class FrameStore:
    """
    Shared namespace of frames and models.

    The store is the only owner of row data; handles reference entries by
    key. Writing an existing key replaces its entry.
    """

    def __init__(self) -> None:
        """Initialize an empty store."""
        self._frames: dict[str, pd.DataFrame] = {}
        self._models: dict[str, Any] = {}

    def put_frame(self, key: str, df: pd.DataFrame) -> None:
        """Store a frame under a key."""
        if key in self._models:
            msg = f"Key '{key}' is already used by a model"
            raise SchemaError(msg)
        self._frames[key] = df.reset_index(drop=True)

    def get_frame(self, key: str) -> pd.DataFrame:
        """
        Get frame data by key.

        Raises:
            SchemaError: If no frame is stored under the key.
        """
        if key not in self._frames:
            msg = f"Frame '{key}' not found"
            raise SchemaError(msg)
        return self._frames[key]

    def has_frame(self, key: str) -> bool:
        """Check whether a frame is stored under the key."""
        return key in self._frames

    def has_model(self, model_id: str) -> bool:
        """Check whether a model is stored under the id."""
        return model_id in self._models

    def put_model(self, model_id: str, model: Any) -> None:
        """Store a model, superseding any model with the same id."""
        if model_id in self._frames:
            msg = f"Key '{model_id}' is already used by a frame"
            raise SchemaError(msg)
        if model_id in self._models:
            log.info("Superseding model", model_id=model_id)
        self._models[model_id] = model

    def get_model(self, model_id: str) -> Any:
        """
        Get a model by id.

        Raises:
            SchemaError: If no model is stored under the id.
        """
        if model_id not in self._models:
            msg = f"Model '{model_id}' not found"
            raise SchemaError(msg)
        return self._models[model_id]

    def remove(self, key: str) -> None:
        """Remove a frame or model by key."""
        if key in self._frames:
            del self._frames[key]
        elif key in self._models:
            del self._models[key]
        else:
            msg = f"Key '{key}' not found"
            raise SchemaError(msg)

    def frame_keys(self) -> list[str]:
        """List all frame keys."""
        return list(self._frames.keys())

    def model_ids(self) -> list[str]:
        """List all model ids."""
        return list(self._models.keys())

    def clear(self) -> None:
        """Drop all frames and models."""
        self._frames.clear()
        self._models.clear()
