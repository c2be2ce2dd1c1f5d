"""
Cluster session management.

A ClusterSession is the process-wide context that owns every frame and
model handle. The in-process backend keeps all state in a FrameStore and
delegates model fitting to scikit-learn, using `nthreads` as the
estimators' parallelism.
"""

import itertools
import os
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

import pandas as pd

from censusfit.cluster.frame import Frame
from censusfit.cluster.store import FrameStore, read_frame
from censusfit.errors import ClusterConnectionError, ConfigurationError
from censusfit.utils.logging import get_logger

log = get_logger(__name__)

DEFAULT_CLUSTER_NAME = "censusfit"


def _default_frame_key(path: Path) -> str:
    """Frame key derived from a file name without its suffixes."""
    name = path.name
    for suffix in reversed(path.suffixes):
        name = name.removesuffix(suffix)
    return name or path.stem


class ClusterSession:
    """
    Session to an in-process analytics cluster.

    All requests are blocking and executed in call order. After
    `shutdown()` every request raises ClusterConnectionError.
    """

    def __init__(self, name: str = DEFAULT_CLUSTER_NAME, nthreads: int = -1) -> None:
        """
        Start a session.

        Args:
            name: Cluster name (used in logs and status).
            nthreads: Number of execution threads, -1 for all available.

        Raises:
            ClusterConnectionError: If nthreads is 0 or below -1.
        """
        if nthreads == 0 or nthreads < -1:
            msg = f"Cannot start cluster '{name}' with nthreads={nthreads}"
            raise ClusterConnectionError(msg)

        self.name = name
        self.nthreads = nthreads
        self.store = FrameStore()
        self._key_counter = itertools.count(1)
        self._scratch: list[set[str]] = []
        self._running = True

        log.info(
            "Cluster session started",
            cluster=name,
            nthreads=nthreads,
            available_threads=os.cpu_count(),
        )

    def __repr__(self) -> str:
        """Session representation."""
        state = "running" if self._running else "stopped"
        return f"ClusterSession(name={self.name!r}, nthreads={self.nthreads}, {state})"

    def __enter__(self) -> "ClusterSession":
        """Use the session as a context manager."""
        return self

    def __exit__(self, *exc_info: Any) -> None:
        """Shut the session down on exit."""
        if self._running:
            self.shutdown()

    @property
    def is_running(self) -> bool:
        """Whether the session accepts requests."""
        return self._running

    @property
    def n_jobs(self) -> int:
        """Parallelism passed to estimators."""
        return self.nthreads

    def _ensure_running(self) -> None:
        if not self._running:
            msg = f"Cluster '{self.name}' is not running"
            raise ClusterConnectionError(msg)

    def generate_key(self, prefix: str) -> str:
        """Generate an unused key with the given prefix."""
        while True:
            key = f"{prefix}_{next(self._key_counter)}"
            if not self.store.has_frame(key) and not self.store.has_model(key):
                return key

    # Frames

    def import_file(
        self,
        path: Path | str,
        sep: str = ",",
        destination_frame: str | None = None,
        col_types: dict[str, str] | None = None,
    ) -> Frame:
        """
        Import a delimited file into the store.

        Args:
            path: File to import.
            sep: Single-character field delimiter.
            destination_frame: Frame key (default: file name without suffixes).
            col_types: Optional column -> "categorical" | "numeric" overrides.

        Returns:
            Handle to the imported frame.

        Raises:
            ClusterConnectionError: If the session is not running.
            SchemaError: If the file cannot be read or parsed.
            ConfigurationError: If the delimiter or a column type is invalid.
        """
        self._ensure_running()
        path = Path(path)
        key = destination_frame or _default_frame_key(path)

        df = read_frame(path, sep=sep)
        self.store.put_frame(key, df)
        frame = Frame(self, key)

        if col_types:
            self._apply_col_types(frame, col_types)

        log.info(
            "Imported file",
            path=str(path),
            frame=key,
            rows=len(df),
            columns=df.shape[1],
        )
        return frame

    def _apply_col_types(self, frame: Frame, col_types: dict[str, str]) -> None:
        categorical = [col for col, kind in col_types.items() if kind == "categorical"]
        numeric = [col for col, kind in col_types.items() if kind == "numeric"]
        unknown = {kind for kind in col_types.values()} - {"categorical", "numeric"}
        if unknown:
            msg = f"Unknown column type(s): {', '.join(sorted(unknown))}"
            raise ConfigurationError(msg)
        if categorical:
            frame.asfactor(categorical)
        if numeric:
            frame.asnumeric(numeric)

    def upload_frame(self, df: pd.DataFrame, destination_frame: str | None = None) -> Frame:
        """
        Upload a client-side DataFrame into the store.

        Args:
            df: Data to upload (copied).
            destination_frame: Frame key (default: generated).

        Returns:
            Handle to the uploaded frame.
        """
        self._ensure_running()
        key = destination_frame or self.generate_key("upload")
        self.store.put_frame(key, df.copy())
        log.debug("Uploaded frame", frame=key, rows=len(df), columns=df.shape[1])
        return Frame(self, key)

    def new_frame(self, df: pd.DataFrame, prefix: str = "frame") -> Frame:
        """Store a derived frame under a generated key."""
        self._ensure_running()
        key = self.generate_key(prefix)
        self.store.put_frame(key, df)
        if self._scratch:
            self._scratch[-1].add(key)
        return Frame(self, key)

    @contextmanager
    def scratch(self) -> Iterator[None]:
        """
        Remove the derived frames created inside the block on exit.

        Covers frames stored under generated keys (subsets, predictions,
        runif, cut, cbind). Frames bound to a stable key with `assign` are
        kept. Blocks may nest; each removes only its own frames.
        """
        self._scratch.append(set())
        try:
            yield
        finally:
            created = self._scratch.pop()
            if self._running:
                for key in created:
                    if self.store.has_frame(key):
                        self.store.remove(key)
                log.debug("Removed scratch frames", count=len(created))

    def frame_data(self, key: str) -> pd.DataFrame:
        """Stored data of a frame (internal; handles call this)."""
        self._ensure_running()
        return self.store.get_frame(key)

    def replace_frame_data(self, key: str, df: pd.DataFrame) -> None:
        """Replace the stored data of an existing frame."""
        self._ensure_running()
        self.store.get_frame(key)
        self.store.put_frame(key, df)

    def get_frame(self, key: str) -> Frame:
        """
        Get a handle to an existing frame.

        Raises:
            SchemaError: If no frame has this key.
        """
        self._ensure_running()
        self.store.get_frame(key)
        return Frame(self, key)

    def assign(self, frame: Frame, key: str) -> Frame:
        """
        Bind a frame's contents to a stable key.

        An existing frame under `key` is replaced; the source frame is
        kept unless it is the same key.

        Returns:
            Handle to the frame under its new key.
        """
        self._ensure_running()
        if frame.key == key:
            return frame
        self.store.put_frame(key, self.store.get_frame(frame.key).copy())
        log.debug("Assigned frame", source=frame.key, key=key)
        return Frame(self, key)

    def remove(self, key: str) -> None:
        """Remove a frame or model."""
        self._ensure_running()
        self.store.remove(key)

    # Models

    def register_model(self, model: Any) -> None:
        """Store a trained model under its model id."""
        self._ensure_running()
        self.store.put_model(model.model_id, model)

    def get_model(self, model_id: str) -> Any:
        """
        Get a trained model by id.

        Raises:
            SchemaError: If no model has this id.
        """
        self._ensure_running()
        return self.store.get_model(model_id)

    # Introspection

    def ls(self) -> pd.DataFrame:
        """List stored keys with their kind and shape."""
        self._ensure_running()
        rows: list[dict[str, Any]] = []
        for key in self.store.frame_keys():
            df = self.store.get_frame(key)
            rows.append({"key": key, "kind": "frame", "rows": len(df), "columns": df.shape[1]})
        for model_id in self.store.model_ids():
            model = self.store.get_model(model_id)
            rows.append(
                {"key": model_id, "kind": f"model:{model.algo}", "rows": None, "columns": None}
            )
        return pd.DataFrame(rows, columns=["key", "kind", "rows", "columns"])

    def status(self) -> dict[str, Any]:
        """Session status summary."""
        return {
            "name": self.name,
            "running": self._running,
            "nthreads": self.nthreads,
            "n_frames": len(self.store.frame_keys()) if self._running else 0,
            "n_models": len(self.store.model_ids()) if self._running else 0,
        }

    def shutdown(self) -> None:
        """Stop the session and drop all frames and models."""
        self._ensure_running()
        self.store.clear()
        self._running = False
        log.info("Cluster session stopped", cluster=self.name)


def init_cluster(nthreads: int = -1, name: str | None = None) -> ClusterSession:
    """
    Open a session to a locally started cluster.

    Args:
        nthreads: Execution threads, -1 for all available.
        name: Optional cluster name.

    Returns:
        Running ClusterSession.

    Raises:
        ClusterConnectionError: If the cluster cannot be started.
    """
    return ClusterSession(name=name or DEFAULT_CLUSTER_NAME, nthreads=nthreads)
