"""Face locating helpers feeding face-anchored overlays."""

from __future__ import annotations

import logging
from typing import List, Optional

import cv2
import numpy as np

from halloween_scare.models import FaceBox


class NullFaceLocator:
    """Locator used when detection is disabled; overlays use fixed placement."""

    def locate(self, buffer: np.ndarray) -> List[FaceBox]:
        return []


class FaceLocator:
    """Detect frontal faces with OpenCV's bundled Haar cascade."""

    def __init__(
        self,
        logger: Optional[logging.Logger] = None,
        *,
        cascade_path: Optional[str] = None,
        scale_factor: float = 1.1,
        min_neighbors: int = 5,
        min_size: int = 48,
    ) -> None:
        self.logger = logger or logging.getLogger(__name__)
        self.cascade_path = cascade_path or (
            cv2.data.haarcascades + "haarcascade_frontalface_default.xml"
        )
        self.scale_factor = scale_factor
        self.min_neighbors = min_neighbors
        self.min_size = min_size
        self._cascade: Optional[cv2.CascadeClassifier] = None

    def _load_cascade(self) -> cv2.CascadeClassifier:
        if self._cascade is None:
            cascade = cv2.CascadeClassifier(self.cascade_path)
            if cascade.empty():
                raise RuntimeError(f"Failed to load face cascade from {self.cascade_path}")
            self._cascade = cascade
        return self._cascade

    def locate(self, buffer: np.ndarray) -> List[FaceBox]:
        """Return normalized face boxes; detection problems yield an empty list."""
        height, width = buffer.shape[:2]
        if width == 0 or height == 0:
            return []

        try:
            cascade = self._load_cascade()
            gray = cv2.cvtColor(buffer, cv2.COLOR_RGBA2GRAY)
            detections = cascade.detectMultiScale(
                gray,
                scaleFactor=self.scale_factor,
                minNeighbors=self.min_neighbors,
                minSize=(self.min_size, self.min_size),
            )
        except (cv2.error, RuntimeError) as exc:
            self.logger.warning("Face detection failed, using fixed overlay placement: %s", exc)
            return []

        faces = [
            FaceBox(
                x_center=(x + w / 2.0) / width,
                y_center=(y + h / 2.0) / height,
                width=w / float(width),
                height=h / float(height),
            )
            for (x, y, w, h) in detections
        ]
        self.logger.info("Detected %s face(s)", len(faces))
        return faces


__all__ = ["FaceLocator", "NullFaceLocator"]
