"""
Configuration settings for the ring localization node.
Centralized configuration for all modules.
"""

import numpy as np
from dataclasses import dataclass
from typing import Dict, Tuple


@dataclass(frozen=True)
class ColorBand:
    """Inclusive HSV range used to classify pixels."""

    name: str
    lower: Tuple[int, int, int]
    upper: Tuple[int, int, int]

    @property
    def lower_array(self) -> np.ndarray:
        return np.array(self.lower, dtype=np.uint8)

    @property
    def upper_array(self) -> np.ndarray:
        return np.array(self.upper, dtype=np.uint8)


class TargetColors:
    """HSV color bands for the orange ring (OpenCV hue scale, 0-179)."""

    ORANGE_RING = ColorBand('orange_ring', (0, 100, 100), (20, 255, 255))

    # Narrower band used for the coverage measurement
    ORANGE_COVERAGE = ColorBand('orange_coverage', (5, 100, 100), (15, 255, 255))


@dataclass(frozen=True)
class CameraGeometry:
    """Fixed camera and target geometry, in radians and meters."""

    fov: float
    ring_radius: float
    camera_elevation: float

    @classmethod
    def from_config(cls, config: Dict = None) -> 'CameraGeometry':
        config = config or PipelineConfig.CAMERA_GEOMETRY
        return cls(
            fov=config['FOV'],
            ring_radius=config['RING_RADIUS'],
            camera_elevation=config['CAMERA_ELEVATION'],
        )


class PipelineConfig:
    """Configuration for the entire localization node."""

    # Segmentation
    SEGMENTATION = {
        'BAND': TargetColors.ORANGE_RING,
        'COVERAGE_BAND': TargetColors.ORANGE_COVERAGE,
    }

    # Noise suppression and contour filtering
    CONTOURS = {
        'KERNEL_SIZE': 5,
        'MIN_AREA': 100,
    }

    # Camera geometry (fov in radians, lengths in meters)
    CAMERA_GEOMETRY = {
        'FOV': 0.9564404,
        'RING_RADIUS': 0.1778,
        'CAMERA_ELEVATION': 0.257556,
        # Bearings beyond this many radians are discarded
        'MAX_BEARING': 2.0,
    }

    # Processed output stream
    OUTPUT_STREAM = {
        'NAME': 'ProcessedVideo',
        'WIDTH': 160,
        'HEIGHT': 120,
        'FPS': 30,
        'PORT': 1184,
    }

    # Sampling loop (seconds)
    SCHEDULER = {
        'PERIOD': 0.050,
        'INITIAL_DELAY': 0.0,
        'MISSED_TICK_POLICY': 'catch_up',
    }

    # Per-camera reader holding the latest frame (seconds)
    CAPTURE = {
        'STALE_AFTER': 0.5,     # Latest frame older than this counts as no frame
        'READ_BACKOFF': 0.005,
    }

    # Continuous capture thread
    VISION_THREAD = {
        'EMPTY_FRAME_BACKOFF': 0.01,
    }

    # Telemetry link
    TELEMETRY = {
        'TABLE': 'Camera',
        'CHANNEL': 'NotePose',
        'PORT': 5810,
        'SELECTOR_PORT': 5811,
        'POLL_TIMEOUT_MS': 200,
    }

    # Camera configuration file
    CAMERA_CONFIG = {
        'DEFAULT_PATH': '/boot/frc.json',
    }

    # Visualization Colors (BGR)
    VIZ_COLORS = {
        'EDGE': (0, 0, 255),
        'CENTERLINE': (255, 0, 0),
        'OFFSET_MARKER': (0, 255, 0),
        'THICKNESS': 1,
        # Column the offset markers are mirrored around
        'REFERENCE_COLUMN': 80,
    }
