"""
Tests for the session orchestrator: load → process → drag/reset → export.
"""
from datetime import datetime, timezone

import numpy as np
import pytest

from runcard.errors import DecodeFailure, PipelineStateError
from runcard.models.modes import ColorMode, PipelineState
from runcard.pipeline.overlay_builder import build_overlay
from runcard.pipeline.run_composer import RunComposer, compose_record_image, generate_filename
from runcard.services.background_matte_service import BackgroundMatteService


@pytest.fixture
def sources(solid_image, stats_record, png_bytes):
  background = solid_image(1200, 1600, (90, 120, 160, 255))
  return png_bytes(background), png_bytes(stats_record)


@pytest.fixture
def composer():
  return RunComposer(preview_size=(300, 450), sensitivity="standard")


def test_build_overlay_reports_stages(stats_record):
  stages = []
  overlay = build_overlay(stats_record, ColorMode.WHITE, "standard", on_stage=stages.append)

  assert stages == [PipelineState.CROP_DETECTED, PipelineState.MATTED]
  assert overlay.size == (280, 151)
  opaque = overlay.pixels[overlay.pixels[..., 3] == 255]
  assert (opaque[:, :3] == 255).all()


def test_process_renders_letterboxed_preview(composer, sources):
  composer.load_images(*sources)
  assert composer.state is PipelineState.LOADED

  preview = composer.process("white")

  assert preview.size == (300, 400)
  assert composer.state is PipelineState.PREVIEW_COMPOSITED
  assert composer.canvas_size == (300, 400)
  assert composer.placement.left == pytest.approx(15)
  assert composer.placement.top == pytest.approx(20)
  assert composer.placement.scale_x == pytest.approx(90 / 280)


def test_drag_and_reset(composer, sources):
  composer.load_images(*sources)
  composer.process(ColorMode.BLACK)

  composer.drag(10, 5)
  assert (composer.placement.left, composer.placement.top) == pytest.approx((25, 25))

  composer.reset_placement()
  assert (composer.placement.left, composer.placement.top) == pytest.approx((15, 20))


def test_export_at_native_resolution_ends_run(composer, sources):
  composer.load_images(*sources)
  composer.process("white")

  result = composer.export()

  assert result.size == (1200, 1600)
  assert (result.pixels[..., 3] == 255).all()
  assert composer.state is PipelineState.IDLE
  assert composer.overlay is None
  with pytest.raises(PipelineStateError):
    composer.export()


def test_export_matches_preview_proportions(composer, sources):
  composer.load_images(*sources)
  composer.process("white")
  composer.drag(100, 150)
  preview = composer.render_preview()

  exported = composer.export()

  def white_box(img):
    ys, xs = np.nonzero(img.pixels[..., :3].min(axis=2) > 250)
    return xs.min(), ys.min()

  px, py = white_box(preview)
  ex, ey = white_box(exported)
  assert abs(ex - px * 4) <= 4
  assert abs(ey - py * 4) <= 4


def test_operations_before_processing_are_rejected(composer, sources):
  with pytest.raises(PipelineStateError):
    composer.process("white")

  composer.load_images(*sources)
  for operation in (composer.render_preview, composer.reset_placement, composer.export):
    with pytest.raises(PipelineStateError):
      operation()


def test_decode_failure_aborts_run(composer, sources):
  composer.load_images(*sources)
  composer.process("white")

  with pytest.raises(DecodeFailure):
    composer.load_images(b"not an image", sources[1])

  assert composer.state is PipelineState.IDLE
  assert composer.background is None
  assert composer.overlay is None


def test_newer_run_wins(sources):
  class InterruptingMatte(BackgroundMatteService):
    """Starts a second run from inside the first one."""

    def __init__(self):
      super().__init__(workers=1)
      self.composer = None
      self.inner_preview = None

    def matte(self, img, mode=ColorMode.WHITE):
      if self.composer is not None:
        composer, self.composer = self.composer, None
        self.inner_preview = composer.process(ColorMode.BLACK)
      return super().matte(img, mode)

  matte = InterruptingMatte()
  composer = RunComposer(matte_service=matte, preview_size=(300, 450))
  composer.load_images(*sources)
  matte.composer = composer

  outer_preview = composer.process(ColorMode.WHITE)

  assert outer_preview is None
  assert matte.inner_preview is not None
  assert composer.color_mode is ColorMode.BLACK
  assert composer.state is PipelineState.PREVIEW_COMPOSITED


def test_compose_record_image_from_paths(tmp_path, sources):
  background_path = tmp_path / "photo.png"
  record_path = tmp_path / "record.png"
  background_path.write_bytes(sources[0])
  record_path.write_bytes(sources[1])

  result = compose_record_image(background_path, record_path, "black", "extended")
  assert result.size == (1200, 1600)


def test_generate_filename_uses_utc_timestamp():
  stamp = datetime(2026, 10, 17, 12, 46, 5, tzinfo=timezone.utc)
  assert generate_filename("run", now=stamp) == "run_20261017T124605.png"
  assert generate_filename().endswith(".png")


def test_rejected_drag_keeps_placement(composer, sources):
  composer.load_images(*sources)
  composer.process("white")
  before = composer.placement

  with pytest.raises(ValueError):
    composer.drag(float("nan"), 0)

  assert composer.placement == before
  composer.drag(1, 0)
  assert composer.placement.left == pytest.approx(before.left + 1)
  assert composer.export().size == (1200, 1600)
