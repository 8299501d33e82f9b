"""
Segmentation Module

Classifies pixels of a BGR frame by HSV color band membership and
produces a binary mask.
"""

import cv2
import numpy as np
from typing import Optional
import sys
from pathlib import Path

sys.path.append(str(Path(__file__).parent.parent))
from config import ColorBand, PipelineConfig


EMPTY_MASK = np.zeros((0, 0), dtype=np.uint8)


def is_empty(image: Optional[np.ndarray]) -> bool:
    """True for a missing frame or a frame with no pixels."""
    return image is None or image.size == 0


class Segmenter:
    """Builds binary masks of pixels inside a color band."""

    def __init__(self, config: dict = None):
        """
        Initialize segmenter.

        Args:
            config: Optional config dict, uses PipelineConfig.SEGMENTATION if None
        """
        self.config = config or PipelineConfig.SEGMENTATION
        self.band = self.config['BAND']
        self.coverage_band = self.config['COVERAGE_BAND']

    def segment(self, frame: np.ndarray, band: ColorBand = None) -> np.ndarray:
        """
        Threshold a frame in HSV space.

        Args:
            frame: BGR input image
            band: Color band, defaults to the configured ring band

        Returns:
            Single-channel mask (255 inside the band, 0 elsewhere), or
            EMPTY_MASK when the frame is empty
        """
        if is_empty(frame):
            return EMPTY_MASK

        band = band or self.band
        hsv = cv2.cvtColor(frame, cv2.COLOR_BGR2HSV)
        return cv2.inRange(hsv, band.lower_array, band.upper_array)

    def coverage_percentage(self, frame: np.ndarray, band: ColorBand = None) -> float:
        """Percentage (0-100) of the frame's pixels inside the coverage band."""
        mask = self.segment(frame, band or self.coverage_band)
        if is_empty(mask):
            return 0.0

        total = mask.shape[0] * mask.shape[1]
        return cv2.countNonZero(mask) / total * 100.0
