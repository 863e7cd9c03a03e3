"""
Shared synthetic images. Everything is generated with numpy, no files on disk.
"""
import numpy as np
import pytest

from runcard.models.image import Image
from runcard.repositories.image_repository import ImageRepository


def _solid(width, height, rgba=(255, 255, 255, 255)):
  pixels = np.empty((height, width, 4), dtype=np.uint8)
  pixels[...] = rgba
  return Image(pixels)


@pytest.fixture
def solid_image():
  """Factory: solid_image(width, height, rgba) -> Image."""
  return _solid


@pytest.fixture
def stats_record():
  """
  400x800 white screenshot with dark text only in rows 50-120,
  columns 100-299.
  """
  img = _solid(400, 800)
  img.pixels[50:121, 100:300, :3] = 20
  return img


@pytest.fixture
def gray_card():
  """100x100 mid-grey card with a black text block in the middle."""
  img = _solid(100, 100, (128, 128, 128, 255))
  img.pixels[40:61, 30:71, :3] = 0
  return img


@pytest.fixture
def png_bytes():
  """Factory: png_bytes(Image) -> encoded PNG."""
  repo = ImageRepository()
  return repo.encode_png
