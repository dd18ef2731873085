"""Enrollment and verification orchestration.

Enrollment:   image -> embedding -> normalize -> store.save
Verification: (stored embedding, image) -> embedding -> normalize both -> cosine -> threshold
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from facematch.similarity import normalize

if TYPE_CHECKING:
    from facematch.matching import Matcher, MatchResult
    from facematch.ml.embedding import Embedder
    from facematch.store.base import EmbeddingStore, IdentityRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VerificationResult:
    identity: IdentityRecord
    match: MatchResult


class FaceService:
    def __init__(self, embedder: Embedder, store: EmbeddingStore, matcher: Matcher) -> None:
        self._embedder = embedder
        self._store = store
        self._matcher = matcher

    @property
    def threshold(self) -> float:
        return self._matcher.threshold

    def embed(self, image_bytes: bytes) -> list[float]:
        """Generate and L2-normalize the embedding for an image."""
        return normalize(self._embedder.generate_embedding(image_bytes))

    def enroll(self, name: str, image_bytes: bytes) -> IdentityRecord:
        embedding = self.embed(image_bytes)
        record = self._store.save(name, embedding)
        logger.info("Enrolled identity %s (key=%s, dim=%d)", record.id, record.key, len(embedding))
        return record

    def get_identity(self, identity_id: int) -> IdentityRecord | None:
        return self._store.fetch_by_id(identity_id)

    def verify(self, identity_id: int, image_bytes: bytes) -> VerificationResult | None:
        """Compare an image against a stored identity.

        Returns None if the identity does not exist. Raises DimensionMismatch
        if the stored embedding and the fresh one differ in length.
        """
        identity = self._store.fetch_by_id(identity_id)
        if identity is None:
            return None
        candidate = self.embed(image_bytes)
        result = self._matcher.compare(identity.embedding, candidate)
        logger.info("Verified identity %s: match=%s", identity.id, result.is_match)
        return VerificationResult(identity=identity, match=result)

    def compare(self, image_a: bytes, image_b: bytes) -> MatchResult:
        return self._matcher.compare(self.embed(image_a), self.embed(image_b))
