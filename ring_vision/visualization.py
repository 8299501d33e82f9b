"""
Visualization utilities for the localization pipeline.
Diagnostic overlays and the processed output stream.
"""

import threading
import cv2
import numpy as np
from typing import Optional, Tuple
import sys
from pathlib import Path

sys.path.append(str(Path(__file__).parent.parent))
from config import PipelineConfig


class OverlayRenderer:
    """Draws detection edges, centerlines and offset markers onto a mask."""

    def __init__(self, config: dict = None):
        self.config = config or PipelineConfig.VIZ_COLORS
        self.thickness = self.config['THICKNESS']
        self.reference_column = self.config['REFERENCE_COLUMN']

    def _vertical(self, img: np.ndarray, x: int, height: int, color) -> None:
        cv2.line(img, (int(x), 0), (int(x), int(height)), color, self.thickness)

    def render(self,
               mask: np.ndarray,
               leftmost_x: Optional[int],
               rightmost_x: Optional[int],
               width: int,
               height: int,
               center_offset: int = 0) -> np.ndarray:
        """
        Annotate a copy of the mask.

        Args:
            mask: Single-channel cleaned mask (left untouched)
            leftmost_x: Left edge of the detection, None when nothing was found
            rightmost_x: Right edge of the detection, None when nothing was found
            width: Frame width
            height: Frame height
            center_offset: Signed half-span of the detection

        Returns:
            BGR annotated image
        """
        vis = cv2.cvtColor(mask, cv2.COLOR_GRAY2BGR)

        if leftmost_x is not None and rightmost_x is not None:
            self._vertical(vis, leftmost_x, height, self.config['EDGE'])
            self._vertical(vis, rightmost_x, height, self.config['EDGE'])

        centerline = self.config['CENTERLINE']
        cv2.line(vis, (0, height // 2), (width, height // 2), centerline, self.thickness)
        self._vertical(vis, width // 2, height, centerline)

        marker = self.config['OFFSET_MARKER']
        self._vertical(vis, self.reference_column - center_offset, height, marker)
        self._vertical(vis, self.reference_column + center_offset, height, marker)

        return vis


class DiagnosticStream:
    """
    Push-only holder for the latest annotated frame.

    A relay (e.g. an MJPEG server) reads the newest frame with
    latest(); put_frame() never blocks the pipeline.
    """

    def __init__(self, name: str = None, config: dict = None):
        self.config = config or PipelineConfig.OUTPUT_STREAM
        self.name = name or self.config['NAME']
        self.width = self.config['WIDTH']
        self.height = self.config['HEIGHT']

        self._lock = threading.Lock()
        self._frame = None
        self._frame_id = 0

    def put_frame(self, frame: np.ndarray) -> None:
        with self._lock:
            self._frame = frame
            self._frame_id += 1

    def latest(self) -> Tuple[Optional[np.ndarray], int]:
        """Return (frame copy or None, frame id)."""
        with self._lock:
            if self._frame is None:
                return None, self._frame_id
            return self._frame.copy(), self._frame_id


def add_label_to_image(img: np.ndarray,
                       text: str,
                       color: Tuple[int, int, int] = (255, 255, 255),
                       bg_color: Tuple[int, int, int] = (0, 0, 0)) -> np.ndarray:
    """
    Add a labeled banner to the bottom of an image.

    Args:
        img: Input image (BGR or grayscale)
        text: Label text
        color: Text color
        bg_color: Background color

    Returns:
        Image with label added
    """
    if len(img.shape) == 2:
        vis = cv2.cvtColor(img, cv2.COLOR_GRAY2BGR)
    else:
        vis = img.copy()

    h, w = vis.shape[:2]
    font_scale = max(0.3, w / 600.0)
    thickness = max(1, int(w / 300.0))
    bar_h = max(12, int(h * 0.08))

    cv2.rectangle(vis, (0, h - bar_h), (w, h), bg_color, -1)
    cv2.putText(vis, text, (4, h - int(bar_h * 0.3)), cv2.FONT_HERSHEY_SIMPLEX,
                font_scale, color, thickness, cv2.LINE_AA)

    return vis
