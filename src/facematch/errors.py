"""Typed failures raised by the embedding and matching core.

Each failure belongs to exactly one :class:`ErrorKind`, and every kind carries
the HTTP status the API layer reports for it. The core only raises these; it
is up to the boundary to turn them into responses.
"""

from __future__ import annotations

from enum import StrEnum
from typing import ClassVar


class ErrorKind(StrEnum):
    PREPROCESSING_FAILED = "preprocessing_failed"
    MODEL_LOAD_FAILED = "model_load_failed"
    INFERENCE_FAILED = "inference_failed"
    DIMENSION_MISMATCH = "dimension_mismatch"
    SERVICE_BUSY = "service_busy"


STATUS_CODES: dict[ErrorKind, int] = {
    ErrorKind.PREPROCESSING_FAILED: 400,
    ErrorKind.MODEL_LOAD_FAILED: 503,
    ErrorKind.INFERENCE_FAILED: 500,
    ErrorKind.DIMENSION_MISMATCH: 500,
    ErrorKind.SERVICE_BUSY: 503,
}


class FaceMatchError(Exception):
    """Base class for all core failures."""

    kind: ClassVar[ErrorKind]

    def __init__(self, message: str, cause: BaseException | None = None) -> None:
        super().__init__(message)
        self.cause = cause

    @property
    def status_code(self) -> int:
        return STATUS_CODES[self.kind]


class PreprocessingFailed(FaceMatchError):
    """The image could not be decoded, resized, or has the wrong raster shape."""

    kind = ErrorKind.PREPROCESSING_FAILED


class ModelLoadFailed(FaceMatchError):
    """The model artifact could not be found or loaded."""

    kind = ErrorKind.MODEL_LOAD_FAILED


class InferenceFailed(FaceMatchError):
    """The forward pass failed or produced no output."""

    kind = ErrorKind.INFERENCE_FAILED


class DimensionMismatch(FaceMatchError):
    """Two embeddings of different length were compared."""

    kind = ErrorKind.DIMENSION_MISMATCH

    def __init__(self, left: int, right: int) -> None:
        super().__init__(f"Embedding dimensions differ: {left} != {right}")
        self.left = left
        self.right = right


class PoolSaturated(FaceMatchError):
    """No inference slot became free within the queue timeout."""

    kind = ErrorKind.SERVICE_BUSY

    def __init__(self, operation: str, timeout: float) -> None:
        super().__init__(f"No inference slot for {operation} within {timeout:g}s, retry later")
        self.operation = operation
