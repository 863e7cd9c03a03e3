# models/render_engine.py
"""
Singleton wrapper around the OpenCV drawing primitives the compositor uses.

• Verifies the backend once per Python process (no polling, no globals to wait on).
• Exposes .resize(arr, size) and .gaussian_blur(arr, sigma) on float or uint8 arrays.
"""
from __future__ import annotations
import logging
from typing import Tuple

import cv2
import numpy as np

from ..errors import RenderBackendUnavailable

logger = logging.getLogger(__name__)

_REQUIRED = ("resize", "GaussianBlur", "imdecode", "cvtColor")


class RenderEngine:
    _instance: "RenderEngine" | None = None

    def __new__(cls):
        if cls._instance is None:
            instance = super().__new__(cls)
            instance._init_runtime()
            cls._instance = instance
        return cls._instance

    # --------------------------------------------------
    def _init_runtime(self) -> None:
        missing = [name for name in _REQUIRED if not hasattr(cv2, name)]
        if missing:
            raise RenderBackendUnavailable(f"OpenCV build lacks: {', '.join(missing)}")
        # round-trip a tiny buffer so a broken native build fails here, not mid-export
        probe = cv2.GaussianBlur(np.zeros((4, 4), np.float32), (0, 0), sigmaX=1.0)
        if probe.shape != (4, 4):
            raise RenderBackendUnavailable("OpenCV GaussianBlur returned an unexpected shape")
        self.backend_version = cv2.__version__
        logger.info(f"Render engine ready (OpenCV {self.backend_version})")

    # --------------------------------------------------
    @staticmethod
    def resize(arr: np.ndarray, size: Tuple[int, int]) -> np.ndarray:
        """
        Args
        ----
        arr  : np.ndarray  (H, W) or (H, W, C)
        size : (width, height) of the result, each clamped to at least 1

        Returns
        -------
        np.ndarray of the same dtype and channel count.
        """
        w, h = max(1, int(size[0])), max(1, int(size[1]))
        src_h, src_w = arr.shape[:2]
        if (w, h) == (src_w, src_h):
            return arr.copy()
        shrinking = w < src_w and h < src_h
        interpolation = cv2.INTER_AREA if shrinking else cv2.INTER_LINEAR
        return cv2.resize(arr, (w, h), interpolation=interpolation)

    @staticmethod
    def gaussian_blur(arr: np.ndarray, sigma: float) -> np.ndarray:
        if sigma <= 0:
            return arr.copy()
        return cv2.GaussianBlur(arr, (0, 0), sigmaX=sigma, sigmaY=sigma)
