"""Shared pytest configuration and fixtures for the ring vision test suite."""

import sys
from pathlib import Path

import cv2
import numpy as np
import pytest

# Ensure the project root is in the path for imports
PROJECT_ROOT = Path(__file__).parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from ring_vision.sources import CameraRegistry, StaticFrameSource  # noqa: E402


WIDTH = 160
HEIGHT = 120

# Pure orange in BGR: hue 12 on OpenCV's 0-179 scale
ORANGE_BGR = (0, 100, 255)
BLUE_BGR = (255, 0, 0)


# =============================================================================
# Helpers
# =============================================================================

def blank_frame(width: int = WIDTH, height: int = HEIGHT, color=BLUE_BGR) -> np.ndarray:
    frame = np.zeros((height, width, 3), dtype=np.uint8)
    frame[:] = color
    return frame


def frame_with_rect(x1: int, y1: int, x2: int, y2: int, color=ORANGE_BGR,
                    width: int = WIDTH, height: int = HEIGHT) -> np.ndarray:
    frame = blank_frame(width, height)
    cv2.rectangle(frame, (x1, y1), (x2, y2), color, -1)
    return frame


def mask_with_rects(rects, width: int = WIDTH, height: int = HEIGHT) -> np.ndarray:
    mask = np.zeros((height, width), dtype=np.uint8)
    for x1, y1, x2, y2 in rects:
        mask[y1:y2 + 1, x1:x2 + 1] = 255
    return mask


# =============================================================================
# Shared Fixtures
# =============================================================================

@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def ring_frame() -> np.ndarray:
    """Orange square spanning columns 60-100."""
    return frame_with_rect(60, 40, 100, 80)


@pytest.fixture
def three_camera_registry() -> CameraRegistry:
    return CameraRegistry([
        StaticFrameSource("front-cam", [blank_frame()]),
        StaticFrameSource("left-cam", [blank_frame()]),
        StaticFrameSource("rear-cam", [blank_frame()]),
    ])
