"""Vector math for embeddings: L2 normalization and cosine similarity.

Both functions treat zero-norm and non-finite inputs as degenerate rather than
erroneous: normalization yields a zero vector and similarity yields 0.0.
Results are clamped to [-1, 1] to absorb floating-point overshoot.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING

import numpy as np

from facematch.errors import DimensionMismatch

if TYPE_CHECKING:
    from numpy.typing import NDArray

Vector = Sequence[float] | np.ndarray


def _as_array(vec: Vector) -> NDArray[np.float64]:
    return np.asarray(vec, dtype=np.float64).reshape(-1)


def normalize(vec: Vector) -> list[float]:
    """Scale ``vec`` to unit length, clamping each component to [-1, 1].

    Returns a zero vector of the same length if the norm is zero or not finite.
    """
    arr = _as_array(vec)
    norm = float(np.linalg.norm(arr))
    if norm == 0.0 or not np.isfinite(norm):
        return [0.0] * arr.size
    return np.clip(arr / norm, -1.0, 1.0).tolist()


def cosine_similarity(a: Vector, b: Vector) -> float:
    """Return the cosine of the angle between ``a`` and ``b``, in [-1, 1].

    Raises:
        DimensionMismatch: If the vectors differ in length.
    """
    left = _as_array(a)
    right = _as_array(b)
    if left.size != right.size:
        raise DimensionMismatch(left.size, right.size)

    norm_a = float(np.linalg.norm(left))
    norm_b = float(np.linalg.norm(right))
    if norm_a == 0.0 or norm_b == 0.0 or not np.isfinite(norm_a) or not np.isfinite(norm_b):
        return 0.0

    cos = float(np.dot(left, right)) / (norm_a * norm_b)
    if not np.isfinite(cos):
        return 0.0
    return max(-1.0, min(1.0, cos))
