"""
World Events
============
Typed records emitted by PhysicsWorld.step() and the subscriber lists
that deliver them.

Subscribers are called synchronously, in registration order, and must not
re-enter step(). Every emitted event is also queued so a caller can poll
instead of subscribing.
"""

import logging
import numpy as np
from collections import deque
from dataclasses import dataclass
from typing import Any, Callable, Deque, List, NamedTuple


logger = logging.getLogger(__name__)


class SegmentPairKey(NamedTuple):
    """Identity of a segment pair across two ropes (rope_a < rope_b)"""
    rope_a: int
    rope_b: int
    segment_a: int
    segment_b: int

    @classmethod
    def make(cls, rope_a: int, rope_b: int, segment_a: int, segment_b: int) -> "SegmentPairKey":
        if rope_a > rope_b:
            return cls(rope_b, rope_a, segment_b, segment_a)
        return cls(rope_a, rope_b, segment_a, segment_b)


@dataclass(frozen=True)
class CrossingEvent:
    """Two segments started intersecting this tick"""
    rope_a: Any
    rope_b: Any
    segment_a: int
    segment_b: int
    sign: int              # +1: rope_a over rope_b, -1: under
    point: np.ndarray


@dataclass(frozen=True)
class SeparationEvent:
    """A previously intersecting segment pair no longer intersects"""
    key: SegmentPairKey


@dataclass(frozen=True)
class TangleFormedEvent:
    tangle: Any
    rope_a: Any
    rope_b: Any
    point: np.ndarray


@dataclass(frozen=True)
class TangleBrokenEvent:
    tangle: Any


class EventHub:
    """
    Subscriber lists per event type plus a bounded poll queue.

    When nobody polls, the queue keeps the newest queue_size events; the
    first dropped event after each drain is logged as a warning.
    """

    def __init__(self, queue_size: int = 1024):
        self.crossing: List[Callable] = []
        self.separation: List[Callable] = []
        self.tangle_formed: List[Callable] = []
        self.tangle_broken: List[Callable] = []
        self.queue: Deque = deque(maxlen=queue_size)
        self.dropped = 0

    def _enqueue(self, event):
        if len(self.queue) == self.queue.maxlen:
            if self.dropped == 0:
                logger.warning("Event queue full (%d), dropping oldest events until polled",
                               self.queue.maxlen)
            self.dropped += 1
        self.queue.append(event)

    def emit_crossing(self, event: CrossingEvent):
        self._enqueue(event)
        for fn in self.crossing:
            fn(event.rope_a, event.rope_b, event.segment_a, event.segment_b, event.sign, event.point)

    def emit_separation(self, event: SeparationEvent):
        self._enqueue(event)
        for fn in self.separation:
            fn(event)

    def emit_tangle_formed(self, event: TangleFormedEvent):
        self._enqueue(event)
        for fn in self.tangle_formed:
            fn(event.tangle, event.rope_a, event.rope_b, event.point)

    def emit_tangle_broken(self, event: TangleBrokenEvent):
        self._enqueue(event)
        for fn in self.tangle_broken:
            fn(event.tangle)

    def drain(self) -> List:
        events = list(self.queue)
        self.queue.clear()
        self.dropped = 0
        return events

    def clear(self):
        self.queue.clear()
        self.dropped = 0
