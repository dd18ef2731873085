"""Tests for enrollment and verification orchestration."""

from __future__ import annotations

import numpy as np
import pytest

from facematch.errors import DimensionMismatch, InferenceFailed, PreprocessingFailed
from facematch.matching import Matcher
from facematch.service import FaceService
from facematch.store.memory import InMemoryEmbeddingStore


class FakeEmbedder:
    """Maps image bytes to fixed raw embeddings."""

    def __init__(self, vectors: dict[bytes, list[float]]) -> None:
        self._vectors = vectors

    def generate_embedding(self, image_bytes: bytes) -> np.ndarray:
        if image_bytes == b"broken":
            raise PreprocessingFailed("cannot decode")
        if image_bytes == b"crash":
            raise InferenceFailed("backend fault")
        return np.asarray(self._vectors[image_bytes], dtype=np.float32)


@pytest.fixture()
def service() -> FaceService:
    embedder = FakeEmbedder(
        {
            b"ada": [3.0, 4.0],
            b"ada-again": [6.0, 8.0],
            b"x-axis": [1.0, 0.0],
            b"y-axis": [0.0, 1.0],
            b"zero": [0.0, 0.0],
            b"long": [1.0] * 512,
            b"short": [1.0] * 511,
        }
    )
    return FaceService(embedder, InMemoryEmbeddingStore(), Matcher(threshold=0.6))


class TestEnroll:
    def test_stores_normalized_embedding(self, service: FaceService) -> None:
        record = service.enroll("Ada", b"ada")
        assert record.embedding == pytest.approx([0.6, 0.8])

    def test_zero_embedding_is_stored_as_zeros(self, service: FaceService) -> None:
        record = service.enroll("Nobody", b"zero")
        assert record.embedding == [0.0, 0.0]

    def test_re_enroll_keeps_id(self, service: FaceService) -> None:
        first = service.enroll("Ada", b"ada")
        second = service.enroll("ADA", b"x-axis")
        assert first.id == second.id
        identity = service.get_identity(first.id)
        assert identity is not None
        assert identity.embedding == pytest.approx([1.0, 0.0])

    def test_preprocessing_failure_stores_nothing(self, service: FaceService) -> None:
        with pytest.raises(PreprocessingFailed):
            service.enroll("Ada", b"broken")
        assert service.get_identity(1) is None


class TestVerify:
    def test_same_face_matches(self, service: FaceService) -> None:
        record = service.enroll("Ada", b"ada")

        result = service.verify(record.id, b"ada-again")

        assert result is not None
        assert result.identity.id == record.id
        assert result.match.similarity == pytest.approx(1.0)
        assert result.match.is_match is True
        assert result.match.threshold == 0.6

    def test_orthogonal_face_does_not_match(self, service: FaceService) -> None:
        record = service.enroll("X", b"x-axis")

        result = service.verify(record.id, b"y-axis")

        assert result is not None
        assert result.match.similarity == pytest.approx(0.0)
        assert result.match.is_match is False

    def test_unknown_identity_is_none(self, service: FaceService) -> None:
        assert service.verify(42, b"ada") is None

    def test_dimension_mismatch_raises(self, service: FaceService) -> None:
        record = service.enroll("Long", b"long")
        with pytest.raises(DimensionMismatch):
            service.verify(record.id, b"short")

    def test_inference_failure_is_not_a_non_match(self, service: FaceService) -> None:
        record = service.enroll("Ada", b"ada")
        with pytest.raises(InferenceFailed):
            service.verify(record.id, b"crash")


class TestCompare:
    def test_compare_two_images(self, service: FaceService) -> None:
        result = service.compare(b"ada", b"ada-again")
        assert result.is_match is True

    def test_compare_mismatched_lengths(self, service: FaceService) -> None:
        with pytest.raises(DimensionMismatch):
            service.compare(b"long", b"short")

    def test_threshold_exposed(self, service: FaceService) -> None:
        assert service.threshold == 0.6
