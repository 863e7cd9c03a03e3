from __future__ import annotations
import math
from dataclasses import dataclass, replace


@dataclass(frozen=True)
class DragDelta:
    """Pointer movement in canvas pixels."""
    dx: float = 0.0
    dy: float = 0.0


@dataclass(frozen=True)
class Placement:
    """
    Where the matted overlay is drawn, in the pixel space of the canvas
    currently being rendered (preview or export).
    """
    left: float
    top: float
    scale_x: float
    scale_y: float

    def __post_init__(self):
        if not all(math.isfinite(v) for v in (self.left, self.top, self.scale_x, self.scale_y)):
            raise ValueError(f"Placement must be finite, got {self}")
        if self.scale_x <= 0 or self.scale_y <= 0:
            raise ValueError(f"Placement scale must be positive, got ({self.scale_x}, {self.scale_y})")

    def dragged(self, delta: DragDelta) -> "Placement":
        return replace(self, left=self.left + delta.dx, top=self.top + delta.dy)

    def rescaled(self, sx: float, sy: float) -> "Placement":
        """Map into another canvas whose axes are sx / sy times larger."""
        return Placement(
            left=self.left * sx,
            top=self.top * sy,
            scale_x=self.scale_x * sx,
            scale_y=self.scale_y * sy,
        )

    def as_dict(self) -> dict:
        return {
            "left": self.left,
            "top": self.top,
            "scale_x": self.scale_x,
            "scale_y": self.scale_y,
        }
