"""
Crossing Detector
=================
Glue between the physics world and the braid tracker.

The world reports every segment pair that starts intersecting. The detector
keeps its own set of active pairs so a pair is forwarded to the tracker once
per physical crossing, and forgets a pair when the world reports that it
separated.
"""

from typing import Optional, Set

from ropes.events import SegmentPairKey, SeparationEvent

from .tracker import BraidEvent, BraidTracker


class CrossingDetector:

    def __init__(self, tracker: BraidTracker):
        self.tracker = tracker
        self.previous_intersections: Set[SegmentPairKey] = set()

    @staticmethod
    def make_key(rope_id_a: int, rope_id_b: int, segment_a: int, segment_b: int) -> SegmentPairKey:
        return SegmentPairKey.make(rope_id_a, rope_id_b, segment_a, segment_b)

    def attach(self, world):
        """Subscribe to a PhysicsWorld's crossing and separation events"""
        world.on_crossing(self.on_crossing)
        world.on_separation(self.on_separation)
        return self

    def on_crossing(self, rope_a, rope_b, segment_a: int, segment_b: int,
                    sign: int, point=None) -> Optional[BraidEvent]:
        key = self.make_key(rope_a.rope_id, rope_b.rope_id, segment_a, segment_b)
        if key in self.previous_intersections:
            return None
        self.previous_intersections.add(key)
        return self.tracker.record_crossing(rope_a.rope_id, rope_b.rope_id, sign)

    def on_separation(self, event: SeparationEvent):
        self.previous_intersections.discard(event.key)

    def clear_intersection(self, rope_id_a: int, rope_id_b: int, segment_a: int, segment_b: int):
        self.previous_intersections.discard(self.make_key(rope_id_a, rope_id_b, segment_a, segment_b))

    def reset(self):
        self.previous_intersections.clear()
