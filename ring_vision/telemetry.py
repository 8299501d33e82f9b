"""
Telemetry link.

Publishes localization results to the robot controller and receives
camera selector values from it, over ZeroMQ.
"""

import json
import logging
import threading
from abc import ABC, abstractmethod
from typing import List, Optional, Sequence, Tuple
import sys
from pathlib import Path

import zmq

sys.path.append(str(Path(__file__).parent.parent))
from config import PipelineConfig
from ring_vision.router import SelectorTable


logger = logging.getLogger(__name__)


def channel_name(config: dict = None) -> str:
    config = config or PipelineConfig.TELEMETRY
    return f"{config['TABLE']}/{config['CHANNEL']}"


def team_address(team: int) -> str:
    """Controller address for a team number (10.TE.AM.2)."""
    return f"10.{team // 100}.{team % 100}.2"


class TelemetrySink(ABC):
    """Fire-and-forget publisher of real-valued arrays."""

    @abstractmethod
    def publish(self, channel: str, values: Sequence[float]) -> None:
        ...

    def close(self) -> None:
        pass


class RecordingTelemetry(TelemetrySink):
    """Keeps every publish in memory (dry runs and tests)."""

    def __init__(self):
        self._lock = threading.Lock()
        self.records: List[Tuple[str, List[float]]] = []

    def publish(self, channel: str, values: Sequence[float]) -> None:
        with self._lock:
            self.records.append((channel, [float(v) for v in values]))

    def values(self, channel: str = None) -> List[List[float]]:
        with self._lock:
            return [v for c, v in self.records if channel is None or c == channel]


class ZmqTelemetryPublisher(TelemetrySink):
    """PUB socket sending multipart [channel, json array] messages."""

    def __init__(self, endpoint: str, bind: bool = False, context: zmq.Context = None):
        self.endpoint = endpoint
        self._context = context or zmq.Context.instance()
        self._socket = self._context.socket(zmq.PUB)
        self._socket.setsockopt(zmq.LINGER, 0)
        self._socket.setsockopt(zmq.SNDHWM, 10)
        self._lock = threading.Lock()
        if bind:
            self._socket.bind(endpoint)
        else:
            self._socket.connect(endpoint)
        logger.info("Telemetry publisher %s %s", "bound to" if bind else "connected to", endpoint)

    @staticmethod
    def encode(channel: str, values: Sequence[float]) -> List[bytes]:
        return [channel.encode('utf-8'), json.dumps([float(v) for v in values]).encode('utf-8')]

    def publish(self, channel: str, values: Sequence[float]) -> None:
        with self._lock:
            try:
                self._socket.send_multipart(self.encode(channel, values), flags=zmq.NOBLOCK)
            except zmq.error.Again:
                logger.debug("Telemetry send queue full, dropped %s", channel)

    def close(self) -> None:
        with self._lock:
            self._socket.close()


class ZmqSelectorListener:
    """SUB socket feeding [key, json value] messages into a SelectorTable."""

    def __init__(self,
                 endpoint: str,
                 table: SelectorTable,
                 keys: Sequence[str] = (),
                 bind: bool = False,
                 context: zmq.Context = None,
                 config: dict = None):
        self.config = config or PipelineConfig.TELEMETRY
        self.endpoint = endpoint
        self.table = table
        self._context = context or zmq.Context.instance()
        self._socket = self._context.socket(zmq.SUB)
        self._socket.setsockopt(zmq.LINGER, 0)
        self._socket.setsockopt(zmq.RCVTIMEO, self.config['POLL_TIMEOUT_MS'])
        for key in keys or ('',):
            self._socket.setsockopt(zmq.SUBSCRIBE, key.encode('utf-8'))
        if bind:
            self._socket.bind(endpoint)
        else:
            self._socket.connect(endpoint)

        self._running = False
        self._thread = None

    @staticmethod
    def decode(parts: List[bytes]) -> Optional[Tuple[str, object]]:
        """(key, value) from a message, or None if it is malformed."""
        if len(parts) != 2:
            return None
        try:
            return parts[0].decode('utf-8'), json.loads(parts[1].decode('utf-8'))
        except (UnicodeDecodeError, ValueError):
            return None

    def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._thread = threading.Thread(target=self._receive_loop, name="selector-listener", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._running = False
        if self._thread:
            self._thread.join(timeout=2.0)
            self._thread = None
        self._socket.close()

    def _receive_loop(self) -> None:
        while self._running:
            try:
                parts = self._socket.recv_multipart()
            except zmq.error.Again:
                continue
            except zmq.error.ZMQError as e:
                if self._running:
                    logger.error("Selector listener error: %s", e)
                break

            message = self.decode(parts)
            if message is None:
                logger.debug("Dropping malformed selector message")
                continue
            self.table.set(*message)
