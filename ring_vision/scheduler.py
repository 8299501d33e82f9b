"""
Sampling and capture threads.

SampleScheduler runs grab -> localize -> publish on a fixed-rate clock.
VisionThread feeds every available frame of a source through a pipeline.
"""

import enum
import logging
import math
import threading
import time
from typing import Callable, Optional
import sys
from pathlib import Path

import cv2

sys.path.append(str(Path(__file__).parent.parent))
from config import PipelineConfig
from ring_vision.errors import ConfigError
from ring_vision.sources import FrameSource
from ring_vision.telemetry import TelemetrySink, channel_name
from ring_vision.triangulation import NO_TARGET, LocalizationResult


logger = logging.getLogger(__name__)

TICK_EPSILON = 1e-9


class MissedTickPolicy(enum.Enum):
    # Run every missed tick back-to-back until the schedule is met again
    CATCH_UP = "catch_up"
    # Drop missed ticks and wait for the next future slot
    SKIP = "skip"


def next_tick(anchor: float, period: float, last_index: int, now: float,
              policy: MissedTickPolicy) -> int:
    """
    Index of the next tick to run.

    Tick n is due at anchor + n * period, regardless of when earlier
    ticks finished.
    """
    index = last_index + 1
    if policy is MissedTickPolicy.SKIP:
        # A tick due exactly now must not round up to the following one
        index = max(index, math.ceil((now - anchor) / period - TICK_EPSILON))
    return index


class SampleScheduler:
    """Publishes one localization result per period."""

    def __init__(self,
                 source: FrameSource,
                 pipeline,
                 sink: TelemetrySink,
                 channel: str = None,
                 config: dict = None,
                 clock: Callable[[], float] = time.monotonic):
        """
        Initialize scheduler.

        Args:
            source: Frame source sampled each cycle
            pipeline: Object with process(frame) -> LocalizationResult
            sink: Telemetry sink receiving [distance, bearing]
            channel: Telemetry channel, defaults to PipelineConfig.TELEMETRY
            config: Optional config dict, uses PipelineConfig.SCHEDULER if None
            clock: Monotonic time source
        """
        self.config = config or PipelineConfig.SCHEDULER
        self.period = self.config['PERIOD']
        self.initial_delay = self.config['INITIAL_DELAY']
        self.policy = MissedTickPolicy(self.config['MISSED_TICK_POLICY'])

        self.source = source
        self.pipeline = pipeline
        self.sink = sink
        self.channel = channel or channel_name()
        self._clock = clock

        self._stop = threading.Event()
        self._thread = None
        self.cycles = 0
        self.missed_ticks = 0
        self.error: Optional[ConfigError] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def sample(self) -> LocalizationResult:
        """Grab one frame and localize it; NO_TARGET when there is no frame."""
        frame = self.source.try_grab()
        if frame is None:
            logger.debug("Empty frame from '%s'", self.source.name)
            return NO_TARGET
        return self.pipeline.process(frame)

    def tick(self) -> LocalizationResult:
        """Run one full cycle and publish its result."""
        try:
            result = self.sample()
        except cv2.error as e:
            logger.warning("Vision cycle failed: %s", e)
            result = NO_TARGET
        self.sink.publish(self.channel, result.as_list())
        self.cycles += 1
        return result

    # ── Start / Stop ───────────────────────────────────

    def start(self) -> None:
        """Launch the sampling daemon thread."""
        if self.running:
            return
        self._stop.clear()
        self.error = None
        self._thread = threading.Thread(target=self._run, name="sample-scheduler", daemon=True)
        self._thread.start()
        logger.info("Sampling every %.0f ms (%s)", self.period * 1000, self.policy.value)

    def stop(self, timeout: float = 2.0) -> None:
        self._stop.set()
        if self._thread:
            self._thread.join(timeout=timeout)
            self._thread = None

    def _run(self) -> None:
        anchor = self._clock() + self.initial_delay
        index = 0
        while True:
            delay = anchor + index * self.period - self._clock()
            if delay > 0 and self._stop.wait(delay):
                break
            if self._stop.is_set():
                break

            try:
                self.tick()
            except ConfigError as e:
                logger.error("Stopping sampler on configuration error: %s", e)
                self.error = e
                break
            except Exception:
                logger.exception("Sampling cycle %d failed", index)

            next_index = next_tick(anchor, self.period, index, self._clock(), self.policy)
            self.missed_ticks += next_index - index - 1
            index = next_index


class VisionThread:
    """Continuously grabs frames and runs them through a pipeline."""

    def __init__(self,
                 source: FrameSource,
                 pipeline,
                 listener: Optional[Callable] = None,
                 config: dict = None):
        self.config = config or PipelineConfig.VISION_THREAD
        self.backoff = self.config['EMPTY_FRAME_BACKOFF']
        self.source = source
        self.pipeline = pipeline
        self.listener = listener

        self._running = False
        self._thread = None

    def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._thread = threading.Thread(target=self._capture_loop, name="vision-thread", daemon=True)
        self._thread.start()
        logger.info("Vision thread started on '%s'", self.source.name)

    def stop(self) -> None:
        self._running = False
        if self._thread:
            self._thread.join(timeout=2.0)
            self._thread = None

    def _capture_loop(self) -> None:
        last_id = 0
        while self._running:
            frame, last_id = self.source.wait_for_frame(last_id, self.backoff)
            if frame is None:
                continue
            try:
                self.pipeline.process(frame)
            except cv2.error as e:
                logger.warning("Vision thread pipeline error: %s", e)
                continue
            if self.listener is not None:
                self.listener(self.pipeline)
