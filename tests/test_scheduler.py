import threading
import time

import cv2
import pytest

from conftest import frame_with_rect, blank_frame
from pipeline import FrameCounterPipeline, RingLocatorPipeline
from ring_vision.errors import FrameSizeMismatch
from ring_vision.scheduler import MissedTickPolicy, SampleScheduler, VisionThread, next_tick
from ring_vision.sources import BufferedSource, FrameSource, StaticFrameSource
from ring_vision.telemetry import RecordingTelemetry

CHANNEL = "Camera/NotePose"


def make_config(period=0.05, policy="catch_up"):
    return {'PERIOD': period, 'INITIAL_DELAY': 0.0, 'MISSED_TICK_POLICY': policy}


def wait_for(predicate, timeout=3.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.005)
    return predicate()


class ExplodingPipeline:
    def __init__(self, error):
        self.error = error

    def process(self, frame):
        raise self.error


def test_empty_frames_publish_sentinel_each_cycle():
    source = StaticFrameSource("cam0", [None], loop=True)
    sink = RecordingTelemetry()
    scheduler = SampleScheduler(source, RingLocatorPipeline(), sink, config=make_config())

    for _ in range(3):
        scheduler.tick()

    assert sink.values(CHANNEL) == [[0.0, 0.0]] * 3
    assert scheduler.cycles == 3


def test_tick_publishes_detection(ring_frame):
    sink = RecordingTelemetry()
    scheduler = SampleScheduler(StaticFrameSource("cam0", [ring_frame]), RingLocatorPipeline(), sink,
                                config=make_config())

    result = scheduler.tick()

    assert result.found
    assert sink.records == [(CHANNEL, result.as_list())]


def test_opencv_failure_publishes_sentinel():
    sink = RecordingTelemetry()
    scheduler = SampleScheduler(StaticFrameSource("cam0", [blank_frame()]),
                                ExplodingPipeline(cv2.error("boom")), sink, config=make_config())

    scheduler.tick()

    assert sink.values() == [[0.0, 0.0]]


def test_threaded_scheduler_survives_missing_frames():
    source = StaticFrameSource("cam0", [None, None, None, frame_with_rect(60, 40, 100, 80)])
    sink = RecordingTelemetry()
    scheduler = SampleScheduler(source, RingLocatorPipeline(), sink, config=make_config(period=0.01))

    scheduler.start()
    try:
        assert wait_for(lambda: len(sink.records) >= 8)
        assert scheduler.running
    finally:
        scheduler.stop()

    values = sink.values(CHANNEL)
    assert values[:3] == [[0.0, 0.0]] * 3
    assert values[3][0] > 0
    assert not scheduler.running


def test_size_mismatch_stops_scheduler_and_reports_error():
    source = StaticFrameSource("cam0", [frame_with_rect(10, 10, 50, 50, width=320, height=240)])
    sink = RecordingTelemetry()
    scheduler = SampleScheduler(source, RingLocatorPipeline(), sink, config=make_config(period=0.01))

    with pytest.raises(FrameSizeMismatch):
        scheduler.tick()
    assert scheduler.error is None

    scheduler.start()
    assert wait_for(lambda: not scheduler.running)
    scheduler.stop()
    assert sink.records == []
    assert isinstance(scheduler.error, FrameSizeMismatch)
    assert scheduler.error.actual == (320, 240)


class FlakySink(RecordingTelemetry):
    def __init__(self):
        super().__init__()
        self.failures = 0

    def publish(self, channel, values):
        if self.failures < 2:
            self.failures += 1
            raise RuntimeError("link down")
        super().publish(channel, values)


def test_publish_failure_does_not_stop_scheduler():
    sink = FlakySink()
    scheduler = SampleScheduler(StaticFrameSource("cam0", [blank_frame()]), RingLocatorPipeline(), sink,
                                config=make_config(period=0.01))

    scheduler.start()
    try:
        assert wait_for(lambda: len(sink.records) >= 3)
        assert scheduler.running
    finally:
        scheduler.stop()

    assert sink.failures == 2
    assert scheduler.error is None


def test_ticks_are_anchored_to_start_time():
    # A slow first cycle must not push later ticks back
    now = [0.0]
    starts = []

    class SlowPipeline:
        def process(self, frame):
            starts.append(now[0])
            now[0] += 0.25 if len(starts) == 1 else 0.01
            return RingLocatorPipeline().process(frame)

    done = threading.Event()

    class StopAfter(RecordingTelemetry):
        def publish(self, channel, values):
            super().publish(channel, values)
            if len(self.records) >= 6:
                done.set()

    sink = StopAfter()
    scheduler = SampleScheduler(StaticFrameSource("cam0", [blank_frame()]), SlowPipeline(), sink,
                                config=make_config(period=0.1), clock=lambda: now[0])
    scheduler._stop.wait = lambda timeout: (now.__setitem__(0, now[0] + timeout), done.is_set())[1]

    scheduler.start()
    assert done.wait(2.0)
    scheduler.stop()

    # Ticks 1 and 2 were missed while tick 0 ran; catch-up runs them back-to-back
    assert starts[:4] == pytest.approx([0.0, 0.25, 0.26, 0.3])
    assert scheduler.missed_ticks == 0


@pytest.mark.parametrize("policy,now,expected", [
    (MissedTickPolicy.CATCH_UP, 0.01, 1),
    (MissedTickPolicy.CATCH_UP, 0.27, 1),
    (MissedTickPolicy.SKIP, 0.01, 1),
    (MissedTickPolicy.SKIP, 0.27, 3),
    (MissedTickPolicy.SKIP, 0.30, 3),
    # 0.1 * 3 is slightly above 0.3 in floating point
    (MissedTickPolicy.SKIP, 0.1 * 3, 3),
])
def test_next_tick(policy, now, expected):
    assert next_tick(0.0, 0.1, 0, now, policy) == expected


def test_skip_runs_tick_due_exactly_now():
    anchor, period = 1.0, 0.05
    for n in range(2, 40):
        assert next_tick(anchor, period, 0, anchor + n * period, MissedTickPolicy.SKIP) == n


def test_vision_thread_counts_frames():
    source = StaticFrameSource("cam0", [None, blank_frame()])
    counter = FrameCounterPipeline()
    seen = []
    thread = VisionThread(source, counter, listener=lambda p: seen.append(p.count),
                          config={'EMPTY_FRAME_BACKOFF': 0.001})

    thread.start()
    try:
        assert wait_for(lambda: counter.count >= 5)
    finally:
        thread.stop()

    assert seen[:3] == [1, 2, 3]
    assert source.grab_count > counter.count


class ThirtyFpsCamera(FrameSource):
    """Blocks for one frame interval on every read, like a real device."""

    def try_grab(self):
        time.sleep(1 / 30)
        return blank_frame()


def test_shared_camera_keeps_sampling_rate():
    camera = BufferedSource(ThirtyFpsCamera("cam0"))
    counter = FrameCounterPipeline()
    vision_thread = VisionThread(camera, counter)
    sink = RecordingTelemetry()
    scheduler = SampleScheduler(camera, RingLocatorPipeline(), sink, config=make_config(period=0.05))

    camera.start()
    vision_thread.start()
    scheduler.start()
    time.sleep(1.0)
    scheduler.stop()
    vision_thread.stop()
    camera.release()

    # 20 Hz sampling and 30 fps capture side by side
    assert len(sink.records) >= 18
    assert counter.count >= 20
