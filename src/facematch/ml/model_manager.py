"""Model manager: resolve, load, and own the recognition InferenceSession.

The session is created lazily on the first call to ``get_session`` and then
kept for the life of the process. Loading is serialized behind a lock so
concurrent first callers wait for one load and all receive the same session.
"""

from __future__ import annotations

import logging
import threading
from enum import StrEnum
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

import numpy as np
from huggingface_hub import hf_hub_download
from onnxruntime import GraphOptimizationLevel, InferenceSession, SessionOptions
from onnxruntime.capi.onnxruntime_pybind11_state import ExecutionMode

from facematch.errors import InferenceFailed, ModelLoadFailed

if TYPE_CHECKING:
    from numpy.typing import NDArray

    from facematch.config import Settings
    from facematch.ml.preprocessing import ImageTensor

logger = logging.getLogger(__name__)

PROVIDERS: list[str] = ["CPUExecutionProvider"]


# ---------------------------------------------------------------------------
# Protocol (kept for test mocking)
# ---------------------------------------------------------------------------


class ModelManager(Protocol):
    """Protocol for the recognition model lifecycle."""

    @property
    def state(self) -> SessionState:
        """Return the current lifecycle state."""
        ...

    def get_session(self) -> InferenceSession:
        """Return the process-wide session, loading it on first use."""
        ...

    def run(self, session: InferenceSession, tensor: ImageTensor) -> NDArray[np.float32]:
        """Execute a forward pass and return the flat raw embedding."""
        ...

    def model_info(self) -> dict[str, list[str]]:
        """Return tensor names of the loaded model."""
        ...


class SessionState(StrEnum):
    UNLOADED = "unloaded"
    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"


# ---------------------------------------------------------------------------
# Concrete implementation
# ---------------------------------------------------------------------------


class OnnxModelManager:
    """Loads the recognition model once and runs forward passes against it."""

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._model_path = Path(settings.model_path)
        self._models_dir = Path(settings.models_dir)

        self._lock = threading.Lock()
        self._state = SessionState.UNLOADED
        self._session: InferenceSession | None = None
        self._failure: ModelLoadFailed | None = None

        self._session_options = self._build_session_options()

    # -- Public API ---------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    def get_session(self) -> InferenceSession:
        """Return the cached InferenceSession, loading it exactly once.

        Raises:
            ModelLoadFailed: If the artifact cannot be resolved or loaded. The
                manager then stays FAILED and later calls re-raise without
                attempting another load.
        """
        session = self._session
        if session is not None:
            return session

        with self._lock:
            if self._session is not None:
                return self._session
            if self._failure is not None:
                raise ModelLoadFailed(str(self._failure), cause=self._failure.cause) from self._failure

            self._state = SessionState.LOADING
            try:
                self._session = self._load()
            except ModelLoadFailed as exc:
                self._fail(exc)
                raise
            except Exception as exc:  # onnxruntime raises its own exception types
                failure = ModelLoadFailed(f"Failed to load model: {exc}", cause=exc)
                self._fail(failure)
                raise failure from exc

            self._state = SessionState.READY
            return self._session

    def run(self, session: InferenceSession, tensor: ImageTensor) -> NDArray[np.float32]:
        """Bind ``tensor`` to the first model input and return the first output, flattened.

        Raises:
            InferenceFailed: If the backend fails or the output is empty.
        """
        try:
            input_name = session.get_inputs()[0].name
            outputs = session.run(None, {input_name: tensor.data})
        except Exception as exc:
            raise InferenceFailed(f"Model inference failed: {exc}", cause=exc) from exc

        if not outputs:
            raise InferenceFailed("Model returned no outputs")
        embedding = np.asarray(outputs[0], dtype=np.float32).reshape(-1)
        if embedding.size == 0:
            raise InferenceFailed("Model returned an empty embedding")
        return embedding

    def model_info(self) -> dict[str, list[str]]:
        """Return input and output names of the loaded model, or empty lists."""
        session = self._session
        if session is None:
            return {"inputs": [], "outputs": []}
        return {
            "inputs": [node.name for node in session.get_inputs()],
            "outputs": [node.name for node in session.get_outputs()],
        }

    # -- Internal -----------------------------------------------------------

    def _fail(self, failure: ModelLoadFailed) -> None:
        self._failure = failure
        self._state = SessionState.FAILED
        logger.error("Model load failed: %s", failure)

    def _load(self) -> InferenceSession:
        model_path = self._resolve_model_path()
        logger.info("Loading model from %s", model_path)
        session = InferenceSession(
            str(model_path),
            sess_options=self._session_options,
            providers=PROVIDERS,
        )
        logger.info("Model loaded (input=%s, output=%s)", session.get_inputs()[0].name, session.get_outputs()[0].name)
        return session

    def _resolve_model_path(self) -> Path:
        if self._model_path.exists():
            return self._model_path

        repo_id = self._settings.model_repo_id
        if repo_id is None:
            raise ModelLoadFailed(f"Model artifact not found at {self._model_path}")

        self._models_dir.mkdir(parents=True, exist_ok=True)
        try:
            downloaded = Path(
                hf_hub_download(
                    repo_id=repo_id,
                    filename=self._settings.model_filename,
                    local_dir=str(self._models_dir),
                )
            )
        except Exception as exc:
            raise ModelLoadFailed(f"Failed to download model from {repo_id}: {exc}", cause=exc) from exc
        logger.info("Downloaded %s to %s", self._settings.model_filename, downloaded)
        return downloaded

    def _build_session_options(self) -> SessionOptions:
        opts = SessionOptions()
        opts.intra_op_num_threads = self._settings.intra_op_threads
        opts.inter_op_num_threads = self._settings.inter_op_threads
        opts.execution_mode = ExecutionMode.ORT_SEQUENTIAL
        opts.graph_optimization_level = GraphOptimizationLevel.ORT_ENABLE_BASIC
        opts.enable_mem_pattern = True
        opts.enable_mem_reuse = True
        return opts
