"""Content checksums of frames and configurations."""

import hashlib
import json
from typing import Any

import pandas as pd


def frame_checksum(df: pd.DataFrame) -> str:
    """
    SHA-256 over the layout and row values of a frame.

    Column names and dtypes are part of the digest, so a column cast to
    categorical no longer matches its numeric original. Row order matters;
    the index does not.
    """
    digest = hashlib.sha256()
    layout = [[str(col), str(dtype)] for col, dtype in df.dtypes.items()]
    digest.update(json.dumps({"rows": len(df), "columns": layout}).encode())
    digest.update(pd.util.hash_pandas_object(df, index=False).to_numpy().tobytes())
    return digest.hexdigest()


def config_checksum(config: Any, length: int = 12) -> str:
    """Short, key-order independent checksum of a pydantic model or mapping."""
    data = config.model_dump(mode="json") if hasattr(config, "model_dump") else config
    payload = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(payload.encode()).hexdigest()[:length]
