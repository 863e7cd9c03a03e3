"""
Run Composer
Owns one editing session: two decoded sources, the matted overlay, the
preview placement and the final export at the photo's native resolution.
"""
from __future__ import annotations

import logging
import os
import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Tuple

from dotenv import load_dotenv

from ..errors import DecodeFailure, PipelineStateError
from ..models.image import Image
from ..models.modes import ColorMode, CropSensitivity, PipelineState
from ..models.placement import DragDelta, Placement
from ..models.shadow import ShadowSpec
from ..models.tuning_preset import TuningPreset
from ..repositories.image_repository import Source
from ..services.background_matte_service import BackgroundMatteService
from ..services.compositor_service import CompositorService
from ..services.crop_detection_service import CropDetectionService
from ..services.image_service import ImageService
from .overlay_builder import build_overlay

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

EXPORT_PREFIX = os.getenv("EXPORT_FILENAME_PREFIX", "running_record")


def generate_filename(prefix: str = EXPORT_PREFIX, now: datetime | None = None) -> str:
    """<prefix>_YYYYMMDDTHHMMSS.png, UTC."""
    now = now or datetime.now(timezone.utc)
    return f"{prefix}_{now:%Y%m%dT%H%M%S}.png"


class RunComposer:
    """
    Idle → Loaded → CropDetected → Matted → PreviewComposited (⟲ drag/reset)
    → Exported → Idle.

    Every process() call starts a new run generation. A run only commits its
    overlay / placement if no newer run (or reload) started meanwhile; stale
    results are dropped, never merged.
    """

    def __init__(
        self,
        image_service: ImageService | None = None,
        crop_service: CropDetectionService | None = None,
        matte_service: BackgroundMatteService | None = None,
        compositor: CompositorService | None = None,
        preview_size: Tuple[int, int] | None = None,
        shadow: ShadowSpec | None = None,
        sensitivity: CropSensitivity | str | None = None,
    ):
        self.image_service = image_service or ImageService()
        self.crop_service = crop_service or CropDetectionService(self.image_service)
        self.matte_service = matte_service or BackgroundMatteService()
        self.compositor = compositor or CompositorService()
        self.preview_container = preview_size or (
            int(os.getenv("PREVIEW_MAX_WIDTH", "300")),
            int(os.getenv("PREVIEW_MAX_HEIGHT", "450")),
        )
        self.shadow = shadow or ShadowSpec()
        self.default_sensitivity = CropSensitivity.parse(
            sensitivity or os.getenv("CROP_SENSITIVITY", CropSensitivity.STANDARD.value)
        )

        self._lock = threading.Lock()
        self._generation = 0
        self.state = PipelineState.IDLE
        self.background: Image | None = None
        self.record: Image | None = None
        self._clear_run()

    def _clear_run(self) -> None:
        self.overlay: Image | None = None
        self.placement: Placement | None = None
        self.canvas_size: Tuple[int, int] | None = None
        self.preset: TuningPreset | None = None
        self.color_mode: ColorMode | None = None

    def _advance(self, token: int, state: PipelineState) -> None:
        with self._lock:
            if token == self._generation:
                self.state = state

    def _require_preview(self) -> None:
        if self.overlay is None or self.placement is None:
            raise PipelineStateError(f"No processed run to work on (state: {self.state.value})")

    # ─── Loading ───────────────────────────────────────────────────
    def load_images(self, background_src: Source, record_src: Source) -> Tuple[Image, Image]:
        """Decode both sources in parallel; both must succeed."""
        with ThreadPoolExecutor(max_workers=2) as executor:
            background_future = executor.submit(self.image_service.load_background, background_src)
            record_future = executor.submit(self.image_service.load_record, record_src)
            try:
                background = background_future.result()
                record = record_future.result()
            except DecodeFailure as err:
                logger.error(f"Decode failed, run aborted: {err}")
                with self._lock:
                    self._generation += 1
                    self.background = self.record = None
                    self._clear_run()
                    self.state = PipelineState.IDLE
                raise

        with self._lock:
            self._generation += 1
            self.background, self.record = background, record
            self._clear_run()
            self.state = PipelineState.LOADED
        logger.info(
            f"Loaded background {background.width}x{background.height}, "
            f"record {record.width}x{record.height}"
        )
        return background, record

    # ─── Processing ────────────────────────────────────────────────
    def process(
        self, color_mode: ColorMode | str, sensitivity: CropSensitivity | str | None = None
    ) -> Image | None:
        """
        Build the overlay and the first preview.

        Returns the preview Image, or None when a newer run superseded this one.
        """
        mode = ColorMode.parse(color_mode)
        sensitivity = CropSensitivity.parse(sensitivity or self.default_sensitivity)
        preset = TuningPreset.for_sensitivity(sensitivity)

        with self._lock:
            if self.background is None or self.record is None:
                raise PipelineStateError("Load both images before processing")
            self._generation += 1
            token = self._generation
            background, record = self.background, self.record

        overlay = build_overlay(
            record, mode, sensitivity,
            crop_service=self.crop_service,
            matte_service=self.matte_service,
            on_stage=lambda state: self._advance(token, state),
        )
        canvas_size = self.compositor.fit_canvas(background.size, self.preview_container)
        placement = self.compositor.default_placement(canvas_size, overlay, preset)
        preview = self.compositor.compose(background, overlay, placement, self.shadow, canvas_size)

        with self._lock:
            if token != self._generation:
                logger.info(f"Run {token} superseded by run {self._generation}; result discarded")
                return None
            self.overlay, self.placement = overlay, placement
            self.canvas_size, self.preset, self.color_mode = canvas_size, preset, mode
            self.state = PipelineState.PREVIEW_COMPOSITED
        return preview

    # ─── Interactive edits ─────────────────────────────────────────
    def render_preview(self) -> Image:
        with self._lock:
            self._require_preview()
            background, overlay = self.background, self.overlay
            placement, canvas_size = self.placement, self.canvas_size
        return self.compositor.compose(background, overlay, placement, self.shadow, canvas_size)

    def drag(self, dx: float, dy: float) -> Image:
        with self._lock:
            self._require_preview()
            self.placement = self.placement.dragged(DragDelta(dx, dy))
        return self.render_preview()

    def reset_placement(self) -> Image:
        with self._lock:
            self._require_preview()
            self.placement = self.compositor.default_placement(self.canvas_size, self.overlay, self.preset)
        return self.render_preview()

    # ─── Export ────────────────────────────────────────────────────
    def export(self) -> Image:
        """
        Re-render the preview composition at the background's native size.
        Ends the run: the composer keeps the sources but forgets the overlay.
        """
        with self._lock:
            self._require_preview()
            token = self._generation
            background, overlay = self.background, self.overlay
            placement, canvas_size = self.placement, self.canvas_size

        export_size = background.size
        export_placement, export_shadow = self.compositor.rescale_for_export(
            placement, self.shadow, canvas_size, export_size
        )
        result = self.compositor.compose(background, overlay, export_placement, export_shadow, export_size)

        with self._lock:
            if token == self._generation:
                self.state = PipelineState.EXPORTED
                logger.info(f"Exported {export_size[0]}x{export_size[1]} composition")
                self._clear_run()
                self.state = PipelineState.IDLE
        return result


def compose_record_image(
    background_src: Source,
    record_src: Source,
    color_mode: ColorMode | str = ColorMode.WHITE,
    sensitivity: CropSensitivity | str | None = None,
    *,
    composer: RunComposer | None = None,
) -> Image:
    """
    Non-interactive run: load, process with the default placement, export.
    """
    composer = composer or RunComposer()
    composer.load_images(background_src, record_src)
    composer.process(color_mode, sensitivity)
    return composer.export()
