"""Threshold policy turning a similarity score into a match decision."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from facematch.similarity import Vector, cosine_similarity, normalize

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLD: float = 0.6


def decide(similarity: float, threshold: float = DEFAULT_THRESHOLD) -> bool:
    """Return True when ``similarity`` reaches ``threshold`` (inclusive)."""
    return similarity >= threshold


@dataclass(frozen=True)
class MatchResult:
    similarity: float
    threshold: float
    is_match: bool


class Matcher:
    """Compares two embeddings against a fixed threshold.

    Both sides are re-normalized right before comparison, so a stored vector
    that was persisted before normalization still compares correctly.
    """

    def __init__(self, threshold: float = DEFAULT_THRESHOLD) -> None:
        self._threshold = threshold

    @property
    def threshold(self) -> float:
        return self._threshold

    def compare(self, stored: Vector, candidate: Vector) -> MatchResult:
        similarity = cosine_similarity(normalize(stored), normalize(candidate))
        is_match = decide(similarity, self._threshold)
        logger.info("Compared embeddings: similarity=%.4f threshold=%.4f match=%s", similarity, self._threshold, is_match)
        return MatchResult(similarity=similarity, threshold=self._threshold, is_match=is_match)
