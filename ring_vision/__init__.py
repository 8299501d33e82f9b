"""
Ring Vision Modules

This package contains the components of the ring localization node:
- segmentation: HSV color band masks
- contour_location: Noise suppression and blob extents
- triangulation: Distance and bearing from a blob's span
- visualization: Diagnostic overlays and the output stream
- sources: Cameras, shared readers, virtual feeds, registry and switched streams
- router: Selector channel and switched camera routing
- scheduler: Fixed-rate sampling and continuous capture threads
- telemetry: Result publishing and selector transport
"""

from .segmentation import Segmenter
from .contour_location import ContourLocator
from .triangulation import Triangulator, LocalizationResult, NO_TARGET
from .visualization import OverlayRenderer, DiagnosticStream

__all__ = [
    'Segmenter',
    'ContourLocator',
    'Triangulator',
    'LocalizationResult',
    'NO_TARGET',
    'OverlayRenderer',
    'DiagnosticStream',
]
