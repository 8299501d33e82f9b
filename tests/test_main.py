from camera_config import parse_config
from conftest import frame_with_rect
from main import start_switched_cameras, wait_for_sampler
from pipeline import RingLocatorPipeline
from ring_vision.router import RouterState, SelectorTable
from ring_vision.scheduler import SampleScheduler
from ring_vision.sources import StaticFrameSource
from ring_vision.telemetry import RecordingTelemetry


def test_node_exits_with_error_when_sampler_stops():
    wrong_size = frame_with_rect(10, 10, 50, 50, width=640, height=480)
    sink = RecordingTelemetry()
    scheduler = SampleScheduler(StaticFrameSource("cam0", [wrong_size]), RingLocatorPipeline(), sink,
                                config={'PERIOD': 0.01, 'INITIAL_DELAY': 0.0,
                                        'MISSED_TICK_POLICY': 'catch_up'})

    scheduler.start()
    try:
        assert wait_for_sampler(scheduler, poll=0.01) == 1
    finally:
        scheduler.stop()

    assert scheduler.error.actual == (640, 480)
    assert sink.records == []


def test_switched_cameras_bound_from_config(three_camera_registry):
    config = parse_config({"team": 1, "cameras": [],
                           "switched cameras": [{"name": "driver", "key": "/select/driver"},
                                                {"name": "intake", "key": "/select/intake"}]})
    table = SelectorTable()
    table.set("/select/intake", "rear-cam")

    routers = start_switched_cameras(config, three_camera_registry, table)
    table.dispatch_pending()

    assert [r.binding.name for r in routers] == ["driver", "intake"]
    assert routers[0].state is RouterState.UNBOUND
    assert routers[1].stream.source is three_camera_registry.get(2)
