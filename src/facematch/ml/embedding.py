"""Embedding service: image bytes -> raw (un-normalized) face embedding."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    import numpy as np
    from numpy.typing import NDArray

    from facematch.ml.model_manager import ModelManager
    from facematch.ml.preprocessing import ImagePreprocessor

logger = logging.getLogger(__name__)


class Embedder(Protocol):
    """Protocol for anything that can embed an encoded image."""

    def generate_embedding(self, image_bytes: bytes) -> NDArray[np.float32]:
        """Return the raw embedding for an encoded image.

        Args:
            image_bytes: Raw file bytes (any format Pillow can decode).

        Returns:
            Flat float32 vector of the model's embedding dimension.

        Raises:
            PreprocessingFailed: If the image cannot be turned into a tensor.
            ModelLoadFailed: If the model is unavailable.
            InferenceFailed: If the forward pass fails.
        """
        ...


class EmbeddingService:
    """Composes the preprocessor and the model manager. Holds no state of its own."""

    def __init__(self, preprocessor: ImagePreprocessor, model_manager: ModelManager) -> None:
        self._preprocessor = preprocessor
        self._model_manager = model_manager

    def generate_embedding(self, image_bytes: bytes) -> NDArray[np.float32]:
        session = self._model_manager.get_session()
        tensor = self._preprocessor.preprocess(image_bytes)
        embedding = self._model_manager.run(session, tensor)
        logger.debug("Generated embedding of dimension %d", embedding.size)
        return embedding
