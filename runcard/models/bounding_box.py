from __future__ import annotations
from dataclasses import dataclass


@dataclass(frozen=True)
class BoundingBox:
    x: int
    y: int
    width: int
    height: int

    @classmethod
    def full(cls, width: int, height: int) -> "BoundingBox":
        return cls(0, 0, width, height)

    @classmethod
    def from_edges(cls, left: int, top: int, right: int, bottom: int) -> "BoundingBox":
        """Build from exclusive right/bottom edges."""
        return cls(left, top, max(0, right - left), max(0, bottom - top))

    @property
    def right(self) -> int:
        return self.x + self.width

    @property
    def bottom(self) -> int:
        return self.y + self.height

    def clamped(self, width: int, height: int) -> "BoundingBox":
        """Return the part of this box that lies inside a width x height image."""
        left = min(max(0, self.x), width)
        top = min(max(0, self.y), height)
        right = min(max(left, self.right), width)
        bottom = min(max(top, self.bottom), height)
        return BoundingBox.from_edges(left, top, right, bottom)

    def as_slices(self) -> tuple[slice, slice]:
        """(rows, cols) slices for indexing an (H, W, C) array."""
        return slice(self.y, self.bottom), slice(self.x, self.right)
