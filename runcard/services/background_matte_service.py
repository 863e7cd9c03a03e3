from __future__ import annotations
import logging
import os

import numpy as np
from dotenv import load_dotenv

from ..models.image import Image
from ..models.modes import ColorMode
from .row_bands import map_row_bands

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)


class BackgroundMatteService:
    """
    Business-level helper for turning a cropped record into an overlay.

    • Estimates the background colour from the four corners.
    • Pixels close to it become transparent, the rest are recoloured.
    • Returns a **new** Image; the input buffer is never touched.
    """

    def __init__(
        self,
        edge_size: int | None = None,
        distance_threshold: float | None = None,
        dark_sum: int | None = None,
        darken_amount: int | None = None,
        workers: int | None = None,
    ):
        self.edge_size = edge_size if edge_size is not None else int(os.getenv("MATTE_EDGE_SIZE", "20"))
        self.distance_threshold = (
            distance_threshold if distance_threshold is not None
            else float(os.getenv("MATTE_DISTANCE_THRESHOLD", "40"))
        )
        self.dark_sum = dark_sum if dark_sum is not None else int(os.getenv("MATTE_DARK_SUM", "300"))
        self.darken_amount = (
            darken_amount if darken_amount is not None else int(os.getenv("MATTE_DARKEN_AMOUNT", "20"))
        )
        self.workers = workers if workers is not None else int(os.getenv("CONTENT_SCAN_WORKERS", "1"))

    # --------------------------------------------------------------
    def _corner_samples(self, pixels: np.ndarray) -> np.ndarray:
        """
        Every pixel of the four edge_size x edge_size corner windows, (N, 4).
        Windows overlap on small images; overlapping pixels are counted once
        per corner.
        """
        h, w = pixels.shape[:2]
        xs = np.arange(min(self.edge_size, w))
        ys = np.arange(min(self.edge_size, h))
        if xs.size == 0 or ys.size == 0:
            return np.empty((0, 4), dtype=np.uint8)

        corners = [
            pixels[np.ix_(rows, cols)].reshape(-1, 4)
            for rows in (ys, h - 1 - ys)
            for cols in (xs, w - 1 - xs)
        ]
        return np.concatenate(corners)

    def estimate_background(self, img: Image) -> np.ndarray | None:
        """
        Mean RGB (float, shape (3,)) of the opaque corner samples, or None
        when there is nothing to sample.
        """
        samples = self._corner_samples(img.pixels)
        samples = samples[samples[:, 3] > 0]
        if samples.size == 0:
            logger.warning(
                f"No opaque border samples in {img.width}x{img.height} record; "
                "transparency disabled for this run"
            )
            return None
        return samples[:, :3].astype(np.float64).mean(axis=0)

    # --------------------------------------------------------------
    def _matte_band(self, band: np.ndarray, background: np.ndarray | None, mode: ColorMode) -> np.ndarray:
        out = band.copy()
        rgb = band[..., :3].astype(np.int16)

        transparent = band[..., 3] == 0
        if background is not None:
            diff = rgb.astype(np.float64) - background
            dist_sq = np.einsum("ijk,ijk->ij", diff, diff)
            transparent |= dist_sq < self.distance_threshold ** 2
        foreground = ~transparent

        if mode is ColorMode.WHITE:
            out[foreground, :3] = 255
        else:
            dark = foreground & (rgb.sum(axis=2) < self.dark_sum)
            darkened = np.clip(rgb - self.darken_amount, 0, 255).astype(np.uint8)
            out[dark, :3] = darkened[dark]

        out[..., 3] = np.where(foreground, 255, 0).astype(np.uint8)
        return out

    def matte(self, img: Image, mode: ColorMode | str = ColorMode.WHITE) -> Image:
        """
        Args:
            img (Image): cropped record, RGBA.
            mode (ColorMode): WHITE forces every kept pixel to pure white,
                BLACK keeps colours and deepens the dark ones.

        Returns:
            Image: same dimensions, alpha 0 (background) or 255 (foreground).
        """
        mode = ColorMode.parse(mode)
        background = self.estimate_background(img)
        if background is not None:
            logger.info(f"Estimated record background RGB {tuple(round(c) for c in background)}")

        if img.width == 0 or img.height == 0:
            return Image(img.pixels.copy())

        bands = map_row_bands(
            lambda band, _start: self._matte_band(band, background, mode), img.pixels, self.workers
        )
        return Image(np.concatenate(bands, axis=0))
