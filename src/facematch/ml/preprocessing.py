"""Image preprocessing: decode, cover-fit, and scale pixels into a model tensor.

Every image that reaches the recognition model goes through the same steps,
so enrollment and verification see identically scaled inputs:

1. Decode the bytes with Pillow and apply EXIF orientation.
2. Convert to RGB (drops alpha, expands grayscale/palette, converts CMYK).
3. Resize with a center-aligned "cover" fit to ``input_size`` x ``input_size``.
4. Scale uint8 pixels into the configured range and add a batch axis.

The resulting tensor is laid out NHWC: ``[1, H, W, 3]``.
"""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Literal

import numpy as np
from PIL import Image, ImageOps, UnidentifiedImageError

from facematch.errors import PreprocessingFailed

if TYPE_CHECKING:
    from numpy.typing import NDArray

    from facematch.config import Settings

logger = logging.getLogger(__name__)

CHANNELS: int = 3

PixelRange = Literal["symmetric", "unit"]


@dataclass(frozen=True)
class ImageTensor:
    """A float32 NHWC batch of one image."""

    data: NDArray[np.float32]
    layout: str = "NHWC"

    @property
    def shape(self) -> tuple[int, ...]:
        return tuple(self.data.shape)


def scale_pixels(pixels: NDArray[np.uint8], pixel_range: PixelRange) -> NDArray[np.float32]:
    """Map uint8 pixels into [0, 1] ("unit") or [-1, 1] ("symmetric")."""
    scaled = pixels.astype(np.float32) / np.float32(255.0)
    if pixel_range == "symmetric":
        scaled = (scaled - np.float32(0.5)) / np.float32(0.5)
    return scaled


class ImagePreprocessor:
    """Turns arbitrary encoded image bytes into a fixed-shape model tensor."""

    def __init__(
        self,
        input_size: int = 112,
        pixel_range: PixelRange = "symmetric",
        max_image_pixels: int | None = None,
    ) -> None:
        self._size = input_size
        self._pixel_range = pixel_range
        self._max_image_pixels = max_image_pixels

    @classmethod
    def from_settings(cls, settings: Settings) -> ImagePreprocessor:
        return cls(
            input_size=settings.input_size,
            pixel_range=settings.pixel_range,
            max_image_pixels=settings.max_image_pixels,
        )

    @property
    def input_shape(self) -> tuple[int, int, int, int]:
        """NHWC shape of the tensors this preprocessor produces."""
        return (1, self._size, self._size, CHANNELS)

    def preprocess(self, image_bytes: bytes) -> ImageTensor:
        """Decode and normalize an image.

        Raises:
            PreprocessingFailed: If decoding or resizing fails, or the raster
                does not come out as ``input_size`` x ``input_size`` x 3.
        """
        try:
            pixels = self._decode_and_fit(image_bytes)
        except PreprocessingFailed:
            raise
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as exc:
            raise PreprocessingFailed(f"Failed to preprocess image: {exc}", cause=exc) from exc

        if pixels.shape != self.input_shape[1:]:
            height, width = pixels.shape[:2]
            channels = pixels.shape[2] if pixels.ndim == 3 else 1
            raise PreprocessingFailed(f"Invalid image dimensions: {width}x{height}x{channels}")

        data = scale_pixels(pixels, self._pixel_range)[np.newaxis, ...]
        logger.debug("Preprocessed image: shape=%s range=%s", data.shape, self._pixel_range)
        return ImageTensor(data=np.ascontiguousarray(data, dtype=np.float32))

    def _decode_and_fit(self, image_bytes: bytes) -> NDArray[np.uint8]:
        with Image.open(io.BytesIO(image_bytes)) as img:
            if self._max_image_pixels is not None and img.width * img.height > self._max_image_pixels:
                raise PreprocessingFailed(
                    f"Image too large: {img.width}x{img.height} exceeds {self._max_image_pixels} pixels"
                )
            img.load()
            oriented = ImageOps.exif_transpose(img)
            rgb = oriented.convert("RGB")
            fitted = ImageOps.fit(
                rgb,
                (self._size, self._size),
                method=Image.Resampling.LANCZOS,
                centering=(0.5, 0.5),
            )
            return np.asarray(fitted, dtype=np.uint8)
