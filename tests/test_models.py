"""
Tests for the value objects shared by every stage.
"""
import dataclasses

import numpy as np
import pytest

from runcard.models.bounding_box import BoundingBox
from runcard.models.image import Image
from runcard.models.modes import ColorMode, CropSensitivity
from runcard.models.placement import DragDelta, Placement
from runcard.models.shadow import ShadowSpec
from runcard.models.tuning_preset import EXTENDED, STANDARD, TuningPreset


def test_image_rejects_wrong_layout():
  with pytest.raises(ValueError):
    Image(np.zeros((4, 4, 3), dtype=np.uint8))
  with pytest.raises(ValueError):
    Image(np.zeros((4, 4, 4), dtype=np.float32))


def test_image_makes_views_contiguous():
  base = np.zeros((10, 10, 4), dtype=np.uint8)
  img = Image(base[:, ::2])
  assert img.pixels.flags["C_CONTIGUOUS"]
  assert img.size == (5, 10)


def test_bounding_box_clamped_to_image():
  box = BoundingBox(-5, 3, 20, 20).clamped(10, 12)
  assert box == BoundingBox(0, 3, 10, 9)
  assert box.right <= 10 and box.bottom <= 12


def test_bounding_box_slices_index_region():
  pixels = np.arange(6 * 5).reshape(6, 5)
  rows, cols = BoundingBox(1, 2, 3, 2).as_slices()
  assert pixels[rows, cols].shape == (2, 3)


def test_modes_parse_strings_case_insensitively():
  assert ColorMode.parse(" WHITE ") is ColorMode.WHITE
  assert ColorMode.parse(ColorMode.BLACK) is ColorMode.BLACK
  assert CropSensitivity.parse("Extended") is CropSensitivity.EXTENDED
  with pytest.raises(ValueError, match="purple"):
    ColorMode.parse("purple")


def test_tuning_preset_lookup():
  assert TuningPreset.for_sensitivity("standard") is STANDARD
  assert TuningPreset.for_sensitivity(CropSensitivity.EXTENDED) is EXTENDED


def test_drag_is_pure():
  start = Placement(10, 20, 0.5, 0.5)
  moved = start.dragged(DragDelta(dx=5, dy=-3))

  assert moved == Placement(15, 17, 0.5, 0.5)
  assert start == Placement(10, 20, 0.5, 0.5)
  with pytest.raises(dataclasses.FrozenInstanceError):
    start.left = 0


def test_placement_rejects_non_positive_scale():
  with pytest.raises(ValueError):
    Placement(0, 0, 0, 1)


@pytest.mark.parametrize("dx", [float("nan"), float("inf")])
def test_drag_to_non_finite_position_rejected(dx):
  start = Placement(10, 20, 0.5, 0.5)
  with pytest.raises(ValueError):
    start.dragged(DragDelta(dx=dx))


def test_shadow_scaled_per_axis():
  shadow = ShadowSpec().scaled(2, 8)
  assert (shadow.offset_x, shadow.offset_y) == (6, 24)
  assert shadow.blur_radius == pytest.approx(40)
  assert shadow.opacity == pytest.approx(77 / 255)
