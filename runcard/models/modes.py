from __future__ import annotations
from enum import Enum


class _ParsableEnum(Enum):

    @classmethod
    def parse(cls, value):
        """Accept a member or its (case-insensitive) string value."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            allowed = ", ".join(m.value for m in cls)
            raise ValueError(f"Unknown {cls.__name__} '{value}' (expected one of: {allowed})") from None


class ColorMode(_ParsableEnum):
    """Foreground recolor policy used by the matte."""
    WHITE = "white"
    BLACK = "black"


class CropSensitivity(_ParsableEnum):
    """
    Which tuning preset the smart crop and the initial placement use.

    STANDARD  dark text only, headline numbers expected near the top.
    EXTENDED  also picks up colored text and protects the bottom strip.
    """
    STANDARD = "standard"
    EXTENDED = "extended"


class PipelineState(Enum):
    IDLE = "idle"
    LOADED = "loaded"
    CROP_DETECTED = "crop_detected"
    MATTED = "matted"
    PREVIEW_COMPOSITED = "preview_composited"
    EXPORTED = "exported"
