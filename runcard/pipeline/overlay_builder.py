# pipeline/overlay_builder.py
import logging
from typing import Callable

from ..models.image import Image
from ..models.modes import ColorMode, CropSensitivity, PipelineState
from ..models.tuning_preset import TuningPreset
from ..services.background_matte_service import BackgroundMatteService
from ..services.crop_detection_service import CropDetectionService

logger = logging.getLogger(__name__)


def build_overlay(
    record: Image,
    color_mode: ColorMode | str = ColorMode.WHITE,
    sensitivity: CropSensitivity | str = CropSensitivity.STANDARD,
    *,
    crop_service: CropDetectionService | None = None,
    matte_service: BackgroundMatteService | None = None,
    on_stage: Callable[[PipelineState], None] | None = None,
) -> Image:
    """
    Turn a raw record screenshot into the overlay drawn on the photo:
        • smart-crop to the text / numbers
        • estimate the background from the corners and make it transparent
        • recolour the remaining pixels per *color_mode*
    *on_stage* is called with CROP_DETECTED and MATTED as each step finishes.
    Returns a new Image; *record* is left untouched.
    """
    crop_service = crop_service or CropDetectionService()
    matte_service = matte_service or BackgroundMatteService()
    preset = TuningPreset.for_sensitivity(sensitivity)

    box = crop_service.detect(record, preset)
    cropped = crop_service.crop(record, box)
    if on_stage:
        on_stage(PipelineState.CROP_DETECTED)

    overlay = matte_service.matte(cropped, color_mode)
    if on_stage:
        on_stage(PipelineState.MATTED)

    logger.info(
        f"Overlay built: {record.width}x{record.height} → {overlay.width}x{overlay.height} "
        f"({ColorMode.parse(color_mode).value}, {CropSensitivity.parse(sensitivity).value})"
    )
    return overlay
