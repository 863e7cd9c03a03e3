from __future__ import annotations
import logging
import math
import os
from typing import Tuple

import numpy as np
from dotenv import load_dotenv

from ..models.bounding_box import BoundingBox
from ..models.image import Image
from ..models.tuning_preset import TuningPreset, STANDARD
from .image_service import ImageService
from .row_bands import map_row_bands

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)


class CropDetectionService:
    """
    "Smart crop" for running-record screenshots.

    Finds the box around the text / numbers of the record and pads it,
    dropping the app chrome around it. Always returns a valid box: when
    nothing looks like content the whole image is kept.
    """

    def __init__(self, image_service: ImageService | None = None, workers: int | None = None):
        self.image_service = image_service or ImageService()
        self.workers = workers if workers is not None else int(os.getenv("CONTENT_SCAN_WORKERS", "1"))

    # ─── Pixel classification ──────────────────────────────────────
    @staticmethod
    def _content_mask(pixels: np.ndarray, preset: TuningPreset) -> np.ndarray:
        """
        Args:
            pixels (np.ndarray): (H, W, 4) RGBA uint8.
            preset (TuningPreset): thresholds to use.

        Returns:
            (np.ndarray): (H, W) bool, True where the pixel is content.
        """
        rgb = pixels[..., :3].astype(np.int16)
        # mean brightness < t  ⇔  r+g+b < 3t, kept in integers
        mask = rgb.sum(axis=2) < preset.brightness_threshold * 3
        if preset.channel_spread is not None:
            spread = rgb.max(axis=2) - rgb.min(axis=2)
            mask |= spread > preset.channel_spread
        # fully transparent pixels carry no colour
        mask &= pixels[..., 3] > 0
        return mask

    def _scan_band(self, band: np.ndarray, preset: TuningPreset) -> Tuple[np.ndarray, np.ndarray]:
        mask = self._content_mask(band, preset)
        return mask.any(axis=1), mask.any(axis=0)

    @staticmethod
    def _apply_region_priority(
        content_rows: np.ndarray, height: int, preset: TuningPreset, min_y: int, max_y: int
    ) -> Tuple[int, int]:
        """Widen the vertical extent so it keeps every important row."""
        top_important = content_rows[content_rows < height * preset.top_priority]
        if top_important.size:
            min_y = min(min_y, int(top_important[0]))

        if preset.bottom_priority is not None:
            bottom_important = content_rows[content_rows >= height * (1 - preset.bottom_priority)]
            if bottom_important.size:
                max_y = max(max_y, int(bottom_important[-1]))
        return min_y, max_y

    # ─── Public API ────────────────────────────────────────────────
    def detect(self, img: Image, preset: TuningPreset = STANDARD) -> BoundingBox:
        width, height = img.width, img.height
        if width == 0 or height == 0:
            return BoundingBox.full(width, height)

        bands = map_row_bands(lambda band, _start: self._scan_band(band, preset), img.pixels, self.workers)
        row_hits = np.concatenate([rows for rows, _ in bands])
        col_hits = np.logical_or.reduce([cols for _, cols in bands])

        content_rows = np.flatnonzero(row_hits)
        content_cols = np.flatnonzero(col_hits)
        if content_rows.size == 0:
            logger.warning(f"No content pixels in {width}x{height} record; keeping the full image")
            return BoundingBox.full(width, height)

        min_x, max_x = int(content_cols[0]), int(content_cols[-1])
        min_y, max_y = int(content_rows[0]), int(content_rows[-1])
        min_y, max_y = self._apply_region_priority(content_rows, height, preset, min_y, max_y)

        base = min(width, height)
        left = max(0, math.floor(min_x - base * preset.margin_x))
        right = min(width, math.ceil(max_x + 1 + base * preset.margin_x))
        top = max(0, math.floor(min_y - base * preset.margin_top))
        bottom = min(height, math.ceil(max_y + 1 + base * preset.margin_bottom))

        box = BoundingBox.from_edges(left, top, right, bottom)
        logger.info(f"Content box {box.width}x{box.height} at ({box.x},{box.y}) in {width}x{height} record")
        return box

    def crop(self, img: Image, box: BoundingBox) -> Image:
        return self.image_service.crop(img, box)

    def smart_crop(self, img: Image, preset: TuningPreset = STANDARD) -> Image:
        """Detect the content box and return a new, cropped Image."""
        box = self.detect(img, preset)
        return self.crop(img, box)
