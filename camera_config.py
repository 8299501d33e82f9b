"""
Camera configuration file.

JSON format:
    {
        "team": <team number>,
        "ntmode": <"client" or "server", "client" if unspecified>,
        "cameras": [
            {
                "name": <camera name>,
                "path": <path, e.g. "/dev/video0">,
                "pixel format": <"MJPEG", "YUYV", etc>,   // optional
                "width": <video mode width>,              // optional
                "height": <video mode height>,            // optional
                "fps": <video mode fps>,                  // optional
                "brightness": <percentage brightness>,    // optional
                "white balance": <"auto", "hold", value>, // optional
                "exposure": <"auto", "hold", value>,      // optional
                "properties": [{"name": ..., "value": ...}]   // optional
            }
        ],
        "switched cameras": [
            {
                "name": <virtual camera name>,
                "key": <selector key>
            }
        ]
    }

A string selector value picks a camera by name, a number picks it by index.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Dict, List

from ring_vision.errors import ConfigError
from ring_vision.router import SwitchBinding


logger = logging.getLogger(__name__)


@dataclass
class CameraConfig:
    name: str
    path: str
    settings: Dict = field(default_factory=dict)


@dataclass
class VisionConfig:
    team: int
    server: bool = False
    cameras: List[CameraConfig] = field(default_factory=list)
    switched_cameras: List[SwitchBinding] = field(default_factory=list)


def _read_camera(obj: Dict, path: str) -> CameraConfig:
    if not isinstance(obj, dict) or 'name' not in obj:
        raise ConfigError("could not read camera name", path)
    name = str(obj['name'])
    if 'path' not in obj:
        raise ConfigError(f"camera '{name}': could not read path", path)
    return CameraConfig(name=name, path=str(obj['path']), settings=obj)


def _read_switched_camera(obj: Dict, path: str) -> SwitchBinding:
    if not isinstance(obj, dict) or 'name' not in obj:
        raise ConfigError("could not read switched camera name", path)
    name = str(obj['name'])
    if 'key' not in obj:
        raise ConfigError(f"switched camera '{name}': could not read key", path)
    return SwitchBinding(name=name, key=str(obj['key']))


def parse_config(top, path: str = '<memory>') -> VisionConfig:
    """Validate an already decoded configuration document."""
    if not isinstance(top, dict):
        raise ConfigError("must be JSON object", path)

    if 'team' not in top:
        raise ConfigError("could not read team number", path)
    try:
        team = int(top['team'])
    except (TypeError, ValueError):
        raise ConfigError(f"could not read team number {top['team']!r}", path)

    config = VisionConfig(team=team)

    if 'ntmode' in top:
        mode = str(top['ntmode'])
        if mode.lower() == 'client':
            config.server = False
        elif mode.lower() == 'server':
            config.server = True
        else:
            logger.error("config error in '%s': could not understand ntmode value '%s'", path, mode)

    cameras = top.get('cameras')
    if not isinstance(cameras, list):
        raise ConfigError("could not read cameras", path)
    config.cameras = [_read_camera(c, path) for c in cameras]

    switched = top.get('switched cameras', [])
    if not isinstance(switched, list):
        raise ConfigError("could not read switched cameras", path)
    config.switched_cameras = [_read_switched_camera(c, path) for c in switched]

    return config


def read_config(path: str) -> VisionConfig:
    """Load and validate the camera configuration file."""
    try:
        with open(path, 'r', encoding='utf-8') as f:
            top = json.load(f)
    except OSError as e:
        raise ConfigError(f"could not open: {e}", path) from e
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid JSON: {e}", path) from e

    return parse_config(top, path)
