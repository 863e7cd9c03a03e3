from __future__ import annotations
from dataclasses import dataclass

from .modes import CropSensitivity


@dataclass(frozen=True)
class TuningPreset:
    """
    Value-object holding every knob that differs between the two editor
    tunings. Margins are fractions of min(width, height) of the record.
    """
    brightness_threshold: float  # mean (r+g+b)/3 below this → content
    channel_spread: int | None  # max-min channel gap above this → content (None = off)
    top_priority: float  # rows above this fraction of the height are important
    bottom_priority: float | None  # rows below (1 - this) are important (None = off)
    margin_x: float
    margin_top: float
    margin_bottom: float
    overlay_width_ratio: float  # initial overlay width as fraction of canvas width
    max_initial_scale: float

    @classmethod
    def for_sensitivity(cls, sensitivity: CropSensitivity) -> "TuningPreset":
        return PRESETS[CropSensitivity.parse(sensitivity)]


STANDARD = TuningPreset(
    brightness_threshold=120,
    channel_spread=None,
    top_priority=0.4,
    bottom_priority=None,
    margin_x=0.1,
    margin_top=0.1,
    margin_bottom=0.1,
    overlay_width_ratio=0.3,
    max_initial_scale=1.0,
)

EXTENDED = TuningPreset(
    brightness_threshold=160,
    channel_spread=30,
    top_priority=0.4,
    bottom_priority=0.3,
    margin_x=0.1,
    margin_top=0.15,
    margin_bottom=0.225,
    overlay_width_ratio=0.25,
    max_initial_scale=0.8,
)

PRESETS = {
    CropSensitivity.STANDARD: STANDARD,
    CropSensitivity.EXTENDED: EXTENDED,
}
