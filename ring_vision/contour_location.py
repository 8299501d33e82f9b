"""
Contour Location Module

Cleans a binary mask with a morphological opening and reduces the
qualifying blobs to the horizontal extent of their combined silhouette.
"""

import cv2
import numpy as np
from typing import List, Optional, Tuple
import sys
from pathlib import Path

sys.path.append(str(Path(__file__).parent.parent))
from config import PipelineConfig
from ring_vision.segmentation import is_empty


class ContourLocator:
    """Finds the leftmost and rightmost x of all target blobs."""

    def __init__(self, config: dict = None):
        """
        Initialize contour locator.

        Args:
            config: Optional config dict, uses PipelineConfig.CONTOURS if None
        """
        self.config = config or PipelineConfig.CONTOURS
        self.min_area = self.config['MIN_AREA']
        size = self.config['KERNEL_SIZE']
        self.kernel = cv2.getStructuringElement(cv2.MORPH_RECT, (size, size))

    def clean(self, mask: np.ndarray) -> np.ndarray:
        """Erode then dilate once, dropping speckles smaller than the kernel."""
        if is_empty(mask):
            return mask
        morphed = cv2.erode(mask, self.kernel)
        return cv2.dilate(morphed, self.kernel)

    def filter_contours(self, mask: np.ndarray, min_area: float = None) -> List[np.ndarray]:
        """External contours whose area exceeds min_area."""
        if is_empty(mask):
            return []

        threshold = self.min_area if min_area is None else min_area
        contours, _ = cv2.findContours(mask, cv2.RETR_EXTERNAL, cv2.CHAIN_APPROX_SIMPLE)
        return [c for c in contours if cv2.contourArea(c) > threshold]

    def find_extremes(self,
                      cleaned: np.ndarray,
                      min_area: float = None) -> Optional[Tuple[int, int]]:
        """
        Horizontal extremes of an already cleaned mask.

        Returns:
            (leftmost_x, rightmost_x) over every point of every qualifying
            contour, or None if no contour qualifies
        """
        contours = self.filter_contours(cleaned, min_area)
        if not contours:
            return None

        leftmost_x = None
        rightmost_x = None
        for contour in contours:
            xs = contour[:, 0, 0]
            low, high = int(xs.min()), int(xs.max())
            if leftmost_x is None or low < leftmost_x:
                leftmost_x = low
            if rightmost_x is None or high > rightmost_x:
                rightmost_x = high

        return leftmost_x, rightmost_x

    def locate(self, mask: np.ndarray, min_area: float = None) -> Optional[Tuple[int, int]]:
        """
        Main location method.

        Args:
            mask: Raw binary mask from the segmenter
            min_area: Contour area noise floor, defaults to the configured one

        Returns:
            (leftmost_x, rightmost_x) or None
        """
        return self.find_extremes(self.clean(mask), min_area)
