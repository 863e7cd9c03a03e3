from pathlib import Path
from typing import Union
import logging

import numpy as np

from ..models.bounding_box import BoundingBox
from ..models.image import Image
from ..repositories.image_repository import ImageRepository, Source

logger = logging.getLogger(__name__)


class ImageService:
    """I/O helpers and buffer plumbing.  No crop / matte / compositing logic."""

    def __init__(self, image_repository: ImageRepository | None = None):
        self.image_repository = image_repository or ImageRepository()

    def create_image(self, pixels: np.ndarray, path: Union[str, Path] = None) -> Image:
        return self.image_repository.create_image(pixels, path)

    def load_background(self, source: Source) -> Image:
        """Photos are decoded opaque so EXIF orientation is honoured."""
        return self.image_repository.load(source, keep_alpha=False)

    def load_record(self, source: Source) -> Image:
        return self.image_repository.load(source, keep_alpha=True)

    def encode_png(self, image: Image) -> bytes:
        return self.image_repository.encode_png(image)

    def save(self, image: Image) -> None:
        """
        Business-level method to save the image to its path as PNG.
        """
        self.image_repository.save(image)

    def get_image_dimensions(self, img: Image):
        """(height, width), numpy order."""
        return img.pixels.shape[:2]

    def crop_pixels(self, img: Image, box: BoundingBox) -> np.ndarray:
        img_h, img_w = self.get_image_dimensions(img)
        clamped = box.clamped(img_w, img_h)
        if clamped != box:
            logger.debug(f"Crop box {box} clamped to {clamped} for {img_w}x{img_h} image")

        if clamped.width == 0 or clamped.height == 0:
            raise ValueError(f"Invalid crop bounds would create {clamped.width}x{clamped.height} image")

        rows, cols = clamped.as_slices()
        return img.pixels[rows, cols].copy()

    def crop(self, img: Image, box: BoundingBox) -> Image:
        """Return a *new* Image holding only the box region."""
        return self.create_image(self.crop_pixels(img, box))
