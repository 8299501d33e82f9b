"""
Ring Localization Node

Loads the camera configuration, starts cameras and switched cameras,
then publishes the ring's distance and bearing every sampling period.

Usage:
    python main.py [config_file] [--dry-run] [--log-level LEVEL]
"""

import argparse
import logging
import sys
import time

from camera_config import read_config, VisionConfig
from config import PipelineConfig
from pipeline import FrameCounterPipeline, RingLocatorPipeline
from ring_vision import DiagnosticStream
from ring_vision.errors import ConfigError
from ring_vision.router import SelectorTable, SwitchRouter
from ring_vision.scheduler import SampleScheduler, VisionThread
from ring_vision.sources import BufferedSource, CameraRegistry, VideoCaptureSource
from ring_vision.telemetry import (RecordingTelemetry, ZmqSelectorListener,
                                   ZmqTelemetryPublisher, team_address)


logger = logging.getLogger("ring_vision.node")


def start_camera(config, capture_config: dict = None) -> BufferedSource:
    """Open a camera and start its single reader thread."""
    capture_config = capture_config or PipelineConfig.CAPTURE
    logger.info("Starting camera '%s' on %s", config.name, config.path)
    camera = VideoCaptureSource(config.name, config.path)
    camera.apply_settings(config.settings)
    reader = BufferedSource(camera,
                            stale_after=capture_config['STALE_AFTER'],
                            backoff=capture_config['READ_BACKOFF'])
    reader.start()
    return reader


def start_switched_cameras(vision_config: VisionConfig,
                           registry: CameraRegistry,
                           table: SelectorTable):
    routers = []
    for binding in vision_config.switched_cameras:
        router = SwitchRouter(binding, registry)
        router.attach(table)
        routers.append(router)
    return routers


def telemetry_endpoints(vision_config: VisionConfig, config: dict = None):
    """(publisher endpoint, selector endpoint, bind) for the configured mode."""
    config = config or PipelineConfig.TELEMETRY
    if vision_config.server:
        host = '*'
    else:
        host = team_address(vision_config.team)
    return (f"tcp://{host}:{config['PORT']}",
            f"tcp://{host}:{config['SELECTOR_PORT']}",
            vision_config.server)


def wait_for_sampler(scheduler: SampleScheduler = None, poll: float = 1.0) -> int:
    """
    Block while the node runs.

    Returns 1 once the sampler has stopped on its own, which only happens
    after a configuration error. Without a sampler this blocks forever.
    """
    while True:
        time.sleep(poll)
        if scheduler is not None and not scheduler.running:
            logger.critical("Sampler stopped: %s", scheduler.error)
            return 1


def main(argv=None):
    parser = argparse.ArgumentParser(description='Orange ring localization node')
    parser.add_argument('config_file', nargs='?', default=PipelineConfig.CAMERA_CONFIG['DEFAULT_PATH'],
                        help='Camera configuration JSON')
    parser.add_argument('--dry-run', action='store_true', help='Record telemetry in memory instead of publishing')
    parser.add_argument('--log-level', default='INFO', help='Logging level')
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s.%(msecs)03d | %(levelname)-7s | %(name)s | %(message)s",
        datefmt="%H:%M:%S",
    )

    try:
        vision_config = read_config(args.config_file)
    except ConfigError as e:
        logger.error("%s", e)
        return 1

    table = SelectorTable()
    listener = None
    if args.dry_run:
        sink = RecordingTelemetry()
    else:
        pub_endpoint, selector_endpoint, bind = telemetry_endpoints(vision_config)
        if bind:
            logger.info("Setting up telemetry server")
        else:
            logger.info("Setting up telemetry client for team %d", vision_config.team)
        sink = ZmqTelemetryPublisher(pub_endpoint, bind=bind)
        keys = [b.key for b in vision_config.switched_cameras]
        listener = ZmqSelectorListener(selector_endpoint, table, keys=keys, bind=bind)

    registry = CameraRegistry(start_camera(c) for c in vision_config.cameras)
    routers = start_switched_cameras(vision_config, registry, table)
    logger.info("Started %d camera(s), %d switched camera(s)", len(registry), len(routers))
    table.start()
    if listener is not None:
        listener.start()

    scheduler = None
    vision_thread = None
    if len(registry) >= 1:
        camera = registry.get(0)
        vision_thread = VisionThread(camera, FrameCounterPipeline())
        vision_thread.start()

        output = DiagnosticStream()
        scheduler = SampleScheduler(camera, RingLocatorPipeline(output=output), sink)
        scheduler.start()
    else:
        logger.warning("No cameras configured, nothing to sample")

    exit_code = 0
    try:
        exit_code = wait_for_sampler(scheduler)
    except KeyboardInterrupt:
        logger.info("Shutting down")
    finally:
        if scheduler is not None:
            scheduler.stop()
        if vision_thread is not None:
            vision_thread.stop()
        if listener is not None:
            listener.stop()
        table.stop()
        sink.close()
        registry.release_all()

    return exit_code


if __name__ == "__main__":
    sys.exit(main())
