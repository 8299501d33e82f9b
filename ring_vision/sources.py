"""
Frame Sources

Cameras and virtual feeds, the registry that indexes them, and the
switched stream whose backing source can be replaced at runtime.
"""

import logging
import threading
import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

import cv2
import numpy as np


logger = logging.getLogger(__name__)


class FrameSource(ABC):
    """Anything that can hand out BGR frames on demand."""

    def __init__(self, name: str):
        self.name = name

    @abstractmethod
    def try_grab(self) -> Optional[np.ndarray]:
        """Return the next frame, or None if none is available right now."""

    def wait_for_frame(self, last_id: int, timeout: float) -> Tuple[Optional[np.ndarray], int]:
        """
        Next frame newer than last_id, as (frame, frame_id).

        Returns (None, last_id) when nothing new arrived within timeout.
        """
        frame = self.try_grab()
        if frame is None:
            time.sleep(timeout)
            return None, last_id
        return frame, last_id + 1

    def release(self) -> None:
        pass

    def __repr__(self):
        return f"{type(self).__name__}({self.name!r})"


class VideoCaptureSource(FrameSource):
    """A physical camera opened through cv2.VideoCapture."""

    # Camera config key -> OpenCV capture property
    SETTINGS = {
        'width': cv2.CAP_PROP_FRAME_WIDTH,
        'height': cv2.CAP_PROP_FRAME_HEIGHT,
        'fps': cv2.CAP_PROP_FPS,
    }

    def __init__(self, name: str, path: str, read_timeout_ms: int = 100):
        super().__init__(name)
        self.path = path
        self._lock = threading.Lock()

        device = int(path) if str(path).isdigit() else path
        self._capture = cv2.VideoCapture(device)
        if hasattr(cv2, 'CAP_PROP_READ_TIMEOUT_MSEC'):
            self._capture.set(cv2.CAP_PROP_READ_TIMEOUT_MSEC, read_timeout_ms)
        if not self._capture.isOpened():
            logger.warning("Camera '%s' could not be opened on %s", name, path)

    def apply_settings(self, settings: Dict) -> None:
        """Map camera config keys onto capture properties."""
        with self._lock:
            for key, prop in self.SETTINGS.items():
                if key in settings:
                    self._capture.set(prop, float(settings[key]))

            if 'pixel format' in settings:
                fourcc = str(settings['pixel format'])[:4].ljust(4)
                self._capture.set(cv2.CAP_PROP_FOURCC, cv2.VideoWriter_fourcc(*fourcc))

            if 'brightness' in settings:
                # Percentage in the config, 0..1 for OpenCV
                self._capture.set(cv2.CAP_PROP_BRIGHTNESS, float(settings['brightness']) / 100.0)

            self._apply_auto_or_value(settings.get('white balance'),
                                      cv2.CAP_PROP_AUTO_WB, cv2.CAP_PROP_WB_TEMPERATURE)
            self._apply_auto_or_value(settings.get('exposure'),
                                      cv2.CAP_PROP_AUTO_EXPOSURE, cv2.CAP_PROP_EXPOSURE)

            for prop in settings.get('properties', []):
                self._apply_named_property(prop.get('name'), prop.get('value'))

    def _apply_auto_or_value(self, value, auto_prop: int, value_prop: int) -> None:
        if value is None or value == 'hold':
            return
        if value == 'auto':
            self._capture.set(auto_prop, 1)
        else:
            self._capture.set(auto_prop, 0)
            self._capture.set(value_prop, float(value))

    def _apply_named_property(self, name: Optional[str], value) -> None:
        if name is None:
            return
        prop = getattr(cv2, 'CAP_PROP_' + name.upper().replace(' ', '_'), None)
        if prop is None or isinstance(value, str):
            logger.warning("Camera '%s': unsupported property '%s'", self.name, name)
            return
        self._capture.set(prop, float(value))

    def try_grab(self) -> Optional[np.ndarray]:
        with self._lock:
            ok, frame = self._capture.read()
        if not ok or frame is None or frame.size == 0:
            return None
        return frame

    def release(self) -> None:
        with self._lock:
            self._capture.release()


class BufferedSource(FrameSource):
    """
    Single reader thread over a source, keeping only its latest frame.

    try_grab() returns a copy of the newest frame without touching the
    device. Consumers sharing one camera all see the same frames.
    """

    def __init__(self, source: FrameSource, stale_after: float = 0.5, backoff: float = 0.005,
                 clock=time.monotonic):
        super().__init__(source.name)
        self.source = source
        self.stale_after = stale_after
        self.backoff = backoff
        self._clock = clock

        self._cond = threading.Condition()
        self._latest = None
        self._latest_id = 0
        self._latest_time = 0.0
        self._running = False
        self._thread = None

    @property
    def running(self) -> bool:
        return self._running

    # ── Start / Stop ───────────────────────────────────

    def start(self) -> None:
        """Launch the reader daemon thread."""
        if self._running:
            return
        self._running = True
        self._thread = threading.Thread(target=self._read_loop, name=f"reader-{self.name}", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._running = False
        if self._thread:
            self._thread.join(timeout=2.0)
            self._thread = None

    def release(self) -> None:
        self.stop()
        self.source.release()

    def _read_loop(self) -> None:
        while self._running:
            frame = self.source.try_grab()
            if frame is None:
                time.sleep(self.backoff)
                continue
            with self._cond:
                self._latest = frame
                self._latest_id += 1
                self._latest_time = self._clock()
                self._cond.notify_all()

    # ── Readers ────────────────────────────────────────

    def _fresh_locked(self) -> bool:
        return (self._latest is not None
                and self._clock() - self._latest_time <= self.stale_after)

    def get_frame_with_id(self) -> Tuple[Optional[np.ndarray], int]:
        """Latest frame and its monotonic id; (None, id) if none is fresh."""
        with self._cond:
            if self._fresh_locked():
                return self._latest.copy(), self._latest_id
            return None, self._latest_id

    def try_grab(self) -> Optional[np.ndarray]:
        frame, _ = self.get_frame_with_id()
        return frame

    def wait_for_frame(self, last_id: int, timeout: float) -> Tuple[Optional[np.ndarray], int]:
        with self._cond:
            self._cond.wait_for(lambda: self._latest_id > last_id, timeout=timeout)
            if self._latest_id > last_id and self._fresh_locked():
                return self._latest.copy(), self._latest_id
            return None, last_id


class StaticFrameSource(FrameSource):
    """Replays a fixed sequence of frames; None entries simulate drops."""

    def __init__(self, name: str, frames: Iterable[Optional[np.ndarray]] = (), loop: bool = True):
        super().__init__(name)
        self._frames = list(frames)
        self._loop = loop
        self._index = 0
        self._lock = threading.Lock()
        self.grab_count = 0

    def try_grab(self) -> Optional[np.ndarray]:
        with self._lock:
            self.grab_count += 1
            if not self._frames:
                return None
            if self._index >= len(self._frames):
                if not self._loop:
                    return None
                self._index = 0
            frame = self._frames[self._index]
            self._index += 1
        return None if frame is None else frame.copy()


class ImageFolderSource(StaticFrameSource):
    """Virtual camera cycling through the images of a directory."""

    EXTENSIONS = ('*.jpg', '*.jpeg', '*.png', '*.JPG', '*.JPEG', '*.PNG')

    def __init__(self, name: str, directory: str, loop: bool = True):
        self.directory = Path(directory)
        self.paths = self.find_images(self.directory)
        frames = [cv2.imread(str(p)) for p in self.paths]
        super().__init__(name, frames, loop=loop)

    @classmethod
    def find_images(cls, directory: Path) -> List[Path]:
        image_files = []
        for ext in cls.EXTENSIONS:
            image_files.extend(directory.glob(ext))
        return sorted(set(image_files))


class CameraRegistry:
    """Ordered, read-only collection of named frame sources."""

    def __init__(self, sources: Iterable[FrameSource]):
        self._sources: Tuple[FrameSource, ...] = tuple(sources)

    def __len__(self) -> int:
        return len(self._sources)

    def __iter__(self) -> Iterator[FrameSource]:
        return iter(self._sources)

    @property
    def names(self) -> List[str]:
        return [s.name for s in self._sources]

    def get(self, index: int) -> Optional[FrameSource]:
        """Source at index, or None when out of range."""
        if 0 <= index < len(self._sources):
            return self._sources[index]
        return None

    def index_of(self, name: str) -> Optional[int]:
        """Index of the first source with exactly this name."""
        for i, source in enumerate(self._sources):
            if source.name == name:
                return i
        return None

    def release_all(self) -> None:
        for source in self._sources:
            source.release()


class SwitchedStream(FrameSource):
    """
    Named output stream backed by one interchangeable source.

    set_source() is the only mutation; readers always see either the old
    or the new source, never a partial update.
    """

    def __init__(self, name: str, source: FrameSource = None):
        super().__init__(name)
        self._lock = threading.Lock()
        self._source = source

    @property
    def source(self) -> Optional[FrameSource]:
        with self._lock:
            return self._source

    def set_source(self, source: FrameSource) -> None:
        with self._lock:
            self._source = source

    def try_grab(self) -> Optional[np.ndarray]:
        source = self.source
        if source is None:
            return None
        return source.try_grab()
