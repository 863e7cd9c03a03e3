from __future__ import annotations
from dataclasses import dataclass
from pathlib import Path
import numpy as np


@dataclass
class Image:
    """
    Simple data object: RGBA pixels (+ optional source path for bookkeeping).
    No OpenCV logic outside the repository / render engine.
    """
    pixels: np.ndarray  # Shape (H, W, 4), dtype uint8, RGBA order, top-left origin.
    path: Path | None = None  # Source or destination of the image.

    def __post_init__(self):
        if not isinstance(self.pixels, np.ndarray):
            raise ValueError("Image pixels must be a numpy array")
        if self.pixels.dtype != np.uint8:
            raise ValueError(f"Image pixels must be uint8, got {self.pixels.dtype}")
        if self.pixels.ndim != 3 or self.pixels.shape[2] != 4:
            raise ValueError(f"Image pixels must have shape (H, W, 4), got {self.pixels.shape}")
        if not self.pixels.flags["C_CONTIGUOUS"]:
            self.pixels = np.ascontiguousarray(self.pixels)
        if self.path is not None:
            self.path = Path(self.path)

    @property
    def height(self) -> int:
        return self.pixels.shape[0]

    @property
    def width(self) -> int:
        return self.pixels.shape[1]

    @property
    def size(self) -> tuple[int, int]:
        """(width, height), the order OpenCV and Pillow expect."""
        return self.width, self.height
