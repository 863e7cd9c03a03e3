from __future__ import annotations
from io import BytesIO
from pathlib import Path
from typing import Union
import logging

import cv2
import numpy as np
from PIL import Image as PILImage

from ..errors import DecodeFailure
from ..models.image import Image

logger = logging.getLogger(__name__)

Source = Union[str, Path, bytes, bytearray]


class ImageRepository:
    """
    Handles decoding, encoding and file I/O for Image entities.
    Everything leaving this class is 8-bit RGBA.
    """

    @staticmethod
    def create_image(pixels: np.ndarray, path: Union[str, Path] = None) -> Image:
        if path is None:
            return Image(pixels)
        return Image(pixels=pixels, path=Path(path))

    @staticmethod
    def _to_rgba(arr: np.ndarray) -> np.ndarray:
        """OpenCV channel layouts (gray / BGR / BGRA, 8 or 16 bit) → RGBA uint8."""
        if arr.dtype == np.uint16:
            arr = (arr >> 8).astype(np.uint8)
        elif arr.dtype != np.uint8:
            arr = cv2.normalize(arr, None, 0, 255, cv2.NORM_MINMAX).astype(np.uint8)

        if arr.ndim == 2:
            return cv2.cvtColor(arr, cv2.COLOR_GRAY2RGBA)
        channels = arr.shape[2]
        if channels == 1:
            return cv2.cvtColor(arr[:, :, 0], cv2.COLOR_GRAY2RGBA)
        if channels == 3:
            return cv2.cvtColor(arr, cv2.COLOR_BGR2RGBA)
        if channels == 4:
            return cv2.cvtColor(arr, cv2.COLOR_BGRA2RGBA)
        raise DecodeFailure(f"Unsupported channel count: {channels}")

    def decode(self, data: Union[bytes, bytearray], keep_alpha: bool = True, name: str = "<bytes>") -> Image:
        """
        Decode an encoded raster (PNG, JPEG, WebP, BMP …) into an RGBA Image.

        keep_alpha=False decodes as colour, which also applies EXIF orientation
        (phone photos); the alpha channel is then fully opaque.
        """
        if not data:
            raise DecodeFailure(f"Empty image data: {name}")
        buf = np.frombuffer(bytes(data), dtype=np.uint8)
        flags = cv2.IMREAD_UNCHANGED if keep_alpha else cv2.IMREAD_COLOR
        try:
            arr = cv2.imdecode(buf, flags)
        except cv2.error as err:
            raise DecodeFailure(f"Image not decodable: {name} ({err})") from err
        if arr is None or arr.size == 0:
            raise DecodeFailure(f"Image not decodable: {name}")

        pixels = self._to_rgba(arr)
        logger.debug(f"Decoded {name}: {pixels.shape[1]}x{pixels.shape[0]}")
        return Image(pixels=np.ascontiguousarray(pixels))

    def load(self, source: Source, keep_alpha: bool = True) -> Image:
        """Load from a path or from already-read bytes."""
        if isinstance(source, (bytes, bytearray)):
            return self.decode(source, keep_alpha=keep_alpha)

        path = Path(source)
        try:
            data = path.read_bytes()
        except OSError as err:
            raise DecodeFailure(f"Image not found or unreadable: {path}") from err
        img = self.decode(data, keep_alpha=keep_alpha, name=str(path))
        img.path = path
        return img

    @staticmethod
    def to_pil_image(image: Image) -> PILImage.Image:
        return PILImage.fromarray(image.pixels)  # (H, W, 4) uint8 → RGBA

    def encode_png(self, image: Image) -> bytes:
        buffer = BytesIO()
        self.to_pil_image(image).save(buffer, format="PNG")
        return buffer.getvalue()

    def save(self, image: Image) -> None:
        if image.path is None:
            raise ValueError("Cannot save an image without a path")
        image.path.parent.mkdir(parents=True, exist_ok=True)
        self.to_pil_image(image).save(image.path, format="PNG")
