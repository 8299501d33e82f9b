"""
Switched camera routing.

Selector values arrive as (key, value) messages on a SelectorTable. A
SwitchRouter subscribed to one key resolves each value to a registry
entry and points its switched stream at it.
"""

import enum
import logging
import math
import numbers
import queue
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Union

from ring_vision.sources import CameraRegistry, SwitchedStream


logger = logging.getLogger(__name__)

SelectorValue = Union[int, float, str]


@dataclass(frozen=True)
class SelectorEvent:
    key: str
    value: Any
    immediate: bool = False


@dataclass(frozen=True)
class SwitchBinding:
    """Associates one switched output stream with one selector key."""

    name: str
    key: str


class SelectorTable:
    """
    Last-value-wins key/value channel with change subscriptions.

    set() records the value and queues an event for every subscriber of
    the key. Events are delivered by dispatch_pending(), either from the
    caller's thread or from the dispatcher thread started by start().
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._values: Dict[str, Any] = {}
        self._subscribers: Dict[str, List[Callable[[SelectorEvent], None]]] = {}
        self._events: "queue.Queue[Optional[tuple]]" = queue.Queue()
        self._thread = None

    def get(self, key: str, default=None):
        with self._lock:
            return self._values.get(key, default)

    def set(self, key: str, value: SelectorValue) -> None:
        with self._lock:
            self._values[key] = value
            handlers = list(self._subscribers.get(key, []))
        event = SelectorEvent(key, value)
        for handler in handlers:
            self._events.put((handler, event))

    def subscribe(self, key: str, handler: Callable[[SelectorEvent], None]) -> None:
        """Register a handler; it also receives one immediate event with the current value."""
        with self._lock:
            self._subscribers.setdefault(key, []).append(handler)
            current = self._values.get(key)
        self._events.put((handler, SelectorEvent(key, current, immediate=True)))

    def dispatch_pending(self, block: bool = False, timeout: float = None) -> int:
        """Deliver queued events; returns how many were delivered."""
        delivered = 0
        while True:
            try:
                item = self._events.get(block=block and delivered == 0, timeout=timeout)
            except queue.Empty:
                return delivered
            if item is None:
                return delivered
            handler, event = item
            handler(event)
            delivered += 1

    # ── Dispatcher thread ─────────────────────────────

    def start(self) -> None:
        if self._thread is not None:
            return
        self._thread = threading.Thread(target=self._dispatch_loop, name="selector-dispatch", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        if self._thread is None:
            return
        self._events.put(None)
        self._thread.join(timeout=2.0)
        self._thread = None

    def _dispatch_loop(self) -> None:
        while self._thread is not None:
            item = self._events.get()
            if item is None:
                break
            handler, event = item
            try:
                handler(event)
            except Exception:
                logger.exception("Selector handler failed for key '%s'", event.key)


class RouterState(enum.Enum):
    UNBOUND = "unbound"
    BOUND = "bound"


class SwitchRouter:
    """State machine that retargets a switched stream from selector values."""

    def __init__(self,
                 binding: SwitchBinding,
                 registry: CameraRegistry,
                 stream: SwitchedStream = None):
        self.binding = binding
        self.registry = registry
        self.stream = stream or SwitchedStream(binding.name)
        self.state = RouterState.UNBOUND
        self.bound_index: Optional[int] = None

    def attach(self, table: SelectorTable) -> None:
        """Subscribe to the binding's key (the current value is delivered immediately)."""
        logger.info("Starting switched camera '%s' on %s", self.binding.name, self.binding.key)
        table.subscribe(self.binding.key, self.on_event)

    def on_event(self, event: SelectorEvent) -> None:
        self.handle(event.value)

    def resolve(self, value: Any) -> Optional[int]:
        """Registry index for a selector value, or None if it names nothing."""
        if value is None or isinstance(value, bool):
            return None

        if isinstance(value, str):
            return self.registry.index_of(value)

        if isinstance(value, numbers.Integral):
            index = int(value)
        elif isinstance(value, numbers.Real) and math.isfinite(value):
            # Doubles select by index, truncated toward zero
            index = int(value)
        else:
            return None

        if self.registry.get(index) is None:
            return None
        return index

    def handle(self, value: Any) -> bool:
        """Apply a selector value; returns True if the stream was retargeted."""
        index = self.resolve(value)
        if index is None:
            logger.debug("Switched camera '%s': ignoring selector value %r", self.binding.name, value)
            return False

        self.stream.set_source(self.registry.get(index))
        self.state = RouterState.BOUND
        self.bound_index = index
        logger.info("Switched camera '%s' now showing '%s'", self.binding.name, self.registry.get(index).name)
        return True
