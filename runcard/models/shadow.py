from __future__ import annotations
from dataclasses import dataclass
import math
from typing import Tuple


@dataclass(frozen=True)
class ShadowSpec:
    """
    Drop shadow drawn beneath the overlay.

    Defaults mirror the editor's original look: black at 30 % opacity,
    10 px blur, offset 3 px right and down (preview-canvas units).
    """
    color: Tuple[int, int, int, int] = (0, 0, 0, 77)  # RGBA, alpha 0-255
    blur_radius: float = 10.0
    offset_x: float = 3.0
    offset_y: float = 3.0

    @property
    def opacity(self) -> float:
        return self.color[3] / 255.0

    def scaled(self, sx: float, sy: float) -> "ShadowSpec":
        """Offsets follow each axis; blur follows the mean linear scale."""
        return ShadowSpec(
            color=self.color,
            blur_radius=self.blur_radius * math.sqrt(sx * sy),
            offset_x=self.offset_x * sx,
            offset_y=self.offset_y * sy,
        )
