"""
Triangulation Module

Converts the horizontal extent of a detected ring into a ground distance
and bearing using the camera's field of view and the ring's known radius.
"""

import math
from dataclasses import dataclass
from typing import List
import sys
from pathlib import Path

sys.path.append(str(Path(__file__).parent.parent))
from config import CameraGeometry, PipelineConfig


@dataclass(frozen=True)
class LocalizationResult:
    """Distance (meters) and bearing (radians) to the target."""

    distance: float = 0.0
    bearing: float = 0.0

    @property
    def found(self) -> bool:
        return self != NO_TARGET

    def as_list(self) -> List[float]:
        return [self.distance, self.bearing]


# Published when no valid target exists; consumers read it as "no target"
NO_TARGET = LocalizationResult(0.0, 0.0)


def center_offset(leftmost_x: int, rightmost_x: int) -> int:
    """Signed half-span in whole pixels, truncated toward zero."""
    return int((leftmost_x - rightmost_x) / 2)


class Triangulator:
    """Estimates distance and bearing from a ring's pixel span."""

    def __init__(self, geometry: CameraGeometry = None, config: dict = None):
        """
        Initialize triangulator.

        Args:
            geometry: Camera geometry, built from PipelineConfig.CAMERA_GEOMETRY if None
            config: Optional config dict, uses PipelineConfig.CAMERA_GEOMETRY if None
        """
        self.config = config or PipelineConfig.CAMERA_GEOMETRY
        self.geometry = geometry or CameraGeometry.from_config(self.config)
        # NOTE: 2 rad is far wider than the field of view, so this gate
        # never rejects an in-frame detection. Kept as-is pending confirmation.
        self.max_bearing = self.config['MAX_BEARING']

    def internal_angle(self, leftmost_x: float, rightmost_x: float, width: int) -> float:
        """Angle subtended by the detected span, mapped linearly onto the fov."""
        midpoint = (leftmost_x + rightmost_x) / 2
        return ((midpoint - leftmost_x) * 2 * self.geometry.fov) / width

    def bearing(self, leftmost_x: float, rightmost_x: float, width: int) -> float:
        """Angle from the optical axis to the span's center."""
        return (self.geometry.fov / width) * ((leftmost_x + rightmost_x - width) / 2)

    def triangulate(self,
                    leftmost_x: float,
                    rightmost_x: float,
                    width: int) -> LocalizationResult:
        """
        Main triangulation method.

        Args:
            leftmost_x: Left edge of the detected span (pixels)
            rightmost_x: Right edge of the detected span (pixels)
            width: Frame width (pixels)

        Returns:
            LocalizationResult, NO_TARGET when a validity gate trips
        """
        angle = self.internal_angle(leftmost_x, rightmost_x, width)
        tangent = math.tan(angle)
        if tangent <= 0:
            # Zero-width span or angle past 90 degrees: no finite range
            return NO_TARGET

        hyp_distance = self.geometry.ring_radius / tangent
        elevation = self.geometry.camera_elevation
        if hyp_distance <= elevation:
            return NO_TARGET

        ground_distance = math.sqrt(hyp_distance ** 2 - elevation ** 2)
        theta = self.bearing(leftmost_x, rightmost_x, width)
        if abs(theta) > self.max_bearing:
            return NO_TARGET

        return LocalizationResult(ground_distance, theta)
