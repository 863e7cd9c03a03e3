from __future__ import annotations
import logging
import math
import os
from typing import Tuple

import numpy as np
from dotenv import load_dotenv

from ..models.image import Image
from ..models.placement import Placement
from ..models.render_engine import RenderEngine
from ..models.shadow import ShadowSpec
from ..models.tuning_preset import TuningPreset, STANDARD

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

Size = Tuple[int, int]  # (width, height)


class CompositorService:
    """
    Draws the matted record over the photo.

    The same compose() call renders both the small interactive preview and the
    full-resolution export; only the output size and the (rescaled) placement
    and shadow differ between the two.
    """

    _CANVAS_FILL = np.array([243, 244, 246], dtype=np.float32)  # editor canvas grey

    def __init__(self, engine: RenderEngine | None = None, margin_ratio: float | None = None):
        # engine construction is the readiness check; it raises if OpenCV is unusable
        self.engine = engine or RenderEngine()
        self.margin_ratio = (
            margin_ratio if margin_ratio is not None
            else float(os.getenv("PLACEMENT_MARGIN_RATIO", "0.05"))
        )

    # ─── Geometry ──────────────────────────────────────────────────
    @staticmethod
    def fit_canvas(background_size: Size, container_size: Size) -> Size:
        """
        Largest canvas with the background's aspect ratio that fits the container.
        """
        bg_w, bg_h = background_size
        max_w, max_h = container_size
        if bg_w <= 0 or bg_h <= 0 or max_w <= 0 or max_h <= 0:
            raise ValueError(f"Cannot fit {bg_w}x{bg_h} into {max_w}x{max_h}")

        bg_aspect = bg_w / bg_h
        container_aspect = max_w / max_h
        if bg_aspect > container_aspect:
            # background is relatively wider → width-bound
            width, height = max_w, max_w / bg_aspect
        else:
            height, width = max_h, max_h * bg_aspect
        return max(1, round(width)), max(1, round(height))

    def default_placement(self, canvas_size: Size, overlay: Image, preset: TuningPreset = STANDARD) -> Placement:
        """Initial (and reset) position: top-left inset, capped width, never upscaled past the preset."""
        canvas_w, canvas_h = canvas_size
        max_overlay_w = canvas_w * preset.overlay_width_ratio
        scale = min(max_overlay_w / max(1, overlay.width), preset.max_initial_scale)
        return Placement(
            left=canvas_w * self.margin_ratio,
            top=canvas_h * self.margin_ratio,
            scale_x=scale,
            scale_y=scale,
        )

    @staticmethod
    def rescale_for_export(
        placement: Placement, shadow: ShadowSpec, preview_size: Size, export_size: Size
    ) -> Tuple[Placement, ShadowSpec]:
        """
        Map placement and shadow captured on the preview canvas onto the export
        canvas, independently per axis.
        """
        sx = export_size[0] / preview_size[0]
        sy = export_size[1] / preview_size[1]
        return placement.rescaled(sx, sy), shadow.scaled(sx, sy)

    @staticmethod
    def _clip_region(canvas_shape, x: int, y: int, w: int, h: int):
        """
        Intersect a w x h patch at (x, y) with the canvas.
        Returns (canvas_slices, patch_slices) or None when nothing overlaps.
        """
        canvas_h, canvas_w = canvas_shape[:2]
        x0, y0 = max(x, 0), max(y, 0)
        x1, y1 = min(x + w, canvas_w), min(y + h, canvas_h)
        if x0 >= x1 or y0 >= y1:
            return None
        return (slice(y0, y1), slice(x0, x1)), (slice(y0 - y, y1 - y), slice(x0 - x, x1 - x))

    # ─── Drawing steps ─────────────────────────────────────────────
    def _draw_background(self, background: Image, output_size: Size) -> np.ndarray:
        """Stretch to fill the output exactly; flatten any transparency onto the canvas fill."""
        # pipeline photos are decoded opaque, so only direct compose() callers reach the flatten
        px = background.pixels.astype(np.float32)
        alpha = px[..., 3:4] / 255.0
        flat = px[..., :3] * alpha + self._CANVAS_FILL * (1.0 - alpha)
        return self.engine.resize(flat, output_size)

    def _scaled_overlay(self, overlay: Image, placement: Placement) -> Tuple[np.ndarray, np.ndarray]:
        """
        Resize in premultiplied alpha so the (unspecified) colour of transparent
        pixels cannot bleed into the edges.

        Returns (premultiplied_rgb, alpha) with alpha in [0, 1].
        """
        px = overlay.pixels.astype(np.float32)
        alpha = px[..., 3:4] / 255.0
        premultiplied = np.concatenate([px[..., :3] * alpha, alpha], axis=2)

        size = (
            max(1, round(overlay.width * placement.scale_x)),
            max(1, round(overlay.height * placement.scale_y)),
        )
        scaled = self.engine.resize(premultiplied, size)
        return scaled[..., :3], np.clip(scaled[..., 3], 0.0, 1.0)

    def _draw_shadow(
        self, canvas: np.ndarray, silhouette: np.ndarray, left: float, top: float, shadow: ShadowSpec
    ) -> np.ndarray:
        sigma = shadow.blur_radius / 2.0  # canvas shadowBlur → gaussian sigma
        pad = int(math.ceil(3 * sigma)) + 1
        canvas_h, canvas_w = canvas.shape[:2]

        # padded so blur can pull in silhouette that sits just off-canvas
        layer = np.zeros((canvas_h + 2 * pad, canvas_w + 2 * pad), dtype=np.float32)
        x = round(left + shadow.offset_x) + pad
        y = round(top + shadow.offset_y) + pad
        region = self._clip_region(layer.shape, x, y, silhouette.shape[1], silhouette.shape[0])
        if region is None:
            return canvas
        dst, src = region
        layer[dst] = silhouette[src]

        layer = self.engine.gaussian_blur(layer, sigma)[pad:pad + canvas_h, pad:pad + canvas_w]
        strength = (np.clip(layer, 0.0, 1.0) * shadow.opacity)[..., None]
        color = np.array(shadow.color[:3], dtype=np.float32)
        return canvas * (1.0 - strength) + color * strength

    def _paste(self, canvas: np.ndarray, rgb: np.ndarray, alpha: np.ndarray, left: int, top: int) -> np.ndarray:
        region = self._clip_region(canvas.shape, left, top, rgb.shape[1], rgb.shape[0])
        if region is None:
            return canvas
        dst, src = region
        a = alpha[src][..., None]
        canvas[dst] = rgb[src] + canvas[dst] * (1.0 - a)
        return canvas

    # ─── Public API ────────────────────────────────────────────────
    def compose(
        self,
        background: Image,
        overlay: Image,
        placement: Placement,
        shadow: ShadowSpec | None,
        output_size: Size,
    ) -> Image:
        """
        Args:
            background (Image): the photo, any resolution.
            overlay (Image): matted record (alpha 0 / 255).
            placement (Placement): position and scale in *output* pixels.
            shadow (ShadowSpec | None): drop shadow in output pixels, None for none.
            output_size (width, height): canvas to render.

        Returns:
            Image: opaque RGBA of exactly output_size.
        """
        out_w, out_h = int(output_size[0]), int(output_size[1])
        if out_w <= 0 or out_h <= 0:
            raise ValueError(f"Output size must be positive, got {out_w}x{out_h}")

        canvas = self._draw_background(background, (out_w, out_h))

        if overlay.width > 0 and overlay.height > 0:
            rgb, alpha = self._scaled_overlay(overlay, placement)
            left, top = round(placement.left), round(placement.top)
            if shadow is not None and shadow.opacity > 0:
                canvas = self._draw_shadow(canvas, alpha, placement.left, placement.top, shadow)
            canvas = self._paste(canvas, rgb, alpha, left, top)

        out = np.empty((out_h, out_w, 4), dtype=np.uint8)
        out[..., :3] = np.clip(np.rint(canvas), 0, 255).astype(np.uint8)
        out[..., 3] = 255
        return Image(out)
