"""
Physics World Module
====================
Orchestrates one simulation tick across all ropes.

Per step(dt), in this exact order (Gauss-Seidel results depend on it):

1. Gravity + Verlet prediction for every particle
2. solver_iterations rounds of:
       distance -> tangle -> rope-rope collision -> bending (first half) -> bounds
3. Strict and max length hardening per rope
4. Commit predicted positions
5. Tangle lifecycle: cooldowns, break stale tangles, form new ones
6. Crossing detection against the previous tick's intersection set

Subscribers registered with on_crossing / on_separation / on_tangle_formed /
on_tangle_broken are called synchronously during step(); the same events
are queued for poll_events().
"""

import logging
import numpy as np
from dataclasses import replace
from typing import Callable, Dict, FrozenSet, List, Optional, Set

from .config import Bounds, WorldConfig
from .events import (
    CrossingEvent,
    EventHub,
    SegmentPairKey,
    SeparationEvent,
    TangleBrokenEvent,
    TangleFormedEvent,
)
from .geometry import (
    crossing_angle,
    crossing_quality,
    distance,
    normalize,
    segment_intersection,
    segment_to_segment_distance,
)
from .rope import Rope, RopeOptions, RopeSegment
from .tangle import TangleConstraint


logger = logging.getLogger(__name__)


# Tangle formation gating
SKIP_SEGMENTS_FROM_START = 3            # No tangles right at a pinned origin
MIN_CROSSING_ANGLE = np.radians(45)     # Shallow crossings slide past each other
MIN_LOCAL_TENSION = 2.0                 # Both strands must be pulled taut
ANGLE_TOLERANCE = 1e-9                  # Exact 45 degree crossings pass


class IdAllocator:
    """Monotonic integer ids, owned by one world"""

    def __init__(self, start: int = 0):
        self._start = start
        self._next = start

    def allocate(self) -> int:
        value = self._next
        self._next += 1
        return value

    def reserve(self, value: int):
        """Make sure an externally chosen id is never handed out again"""
        self._next = max(self._next, value + 1)

    def reset(self):
        self._next = self._start


def _boxes_overlap(a0: np.ndarray, a1: np.ndarray,
                   b0: np.ndarray, b1: np.ndarray, margin: float = 0.0) -> bool:
    """Quick reject for segment pairs whose bounding boxes are apart"""
    if min(a0[0], a1[0]) - margin > max(b0[0], b1[0]):
        return False
    if min(b0[0], b1[0]) - margin > max(a0[0], a1[0]):
        return False
    if min(a0[1], a1[1]) - margin > max(b0[1], b1[1]):
        return False
    if min(b0[1], b1[1]) - margin > max(a0[1], a1[1]):
        return False
    return True


class PhysicsWorld:
    """
    Owns every rope, every tangle, and the id allocators for both.

    Not thread-safe: mutate only from step() or the explicit mutation API
    (add_rope, remove_rope, endpoint movers on the ropes).
    """

    def __init__(self,
                 gravity=None,
                 solver_iterations: Optional[int] = None,
                 bounds: Optional[Bounds] = None,
                 config: Optional[WorldConfig] = None):
        overrides = {}
        if gravity is not None:
            overrides["gravity"] = np.asarray(gravity, dtype=np.float64)
        if solver_iterations is not None:
            overrides["solver_iterations"] = solver_iterations
        if bounds is not None:
            overrides["bounds"] = bounds
        self.config = replace(config or WorldConfig(), **overrides)

        self.ropes: List[Rope] = []
        self.tangle_constraints: List[TangleConstraint] = []

        self.rope_ids = IdAllocator()
        self.tangle_ids = IdAllocator()

        self.events = EventHub()

        self._previous_intersections: Set[SegmentPairKey] = set()
        self._cooldowns: Dict[SegmentPairKey, int] = {}
        self.frame = 0

    # ------------------------------------------------------------------
    # Configuration shortcuts
    # ------------------------------------------------------------------

    @property
    def gravity(self) -> np.ndarray:
        return self.config.gravity

    @gravity.setter
    def gravity(self, value):
        self.config.gravity = np.asarray(value, dtype=np.float64)

    @property
    def solver_iterations(self) -> int:
        return self.config.solver_iterations

    @property
    def bounds(self) -> Optional[Bounds]:
        return self.config.bounds

    @bounds.setter
    def bounds(self, value: Optional[Bounds]):
        if isinstance(value, dict):
            value = Bounds(**value)
        self.config.bounds = value

    @property
    def active_intersections(self) -> FrozenSet[SegmentPairKey]:
        return frozenset(self._previous_intersections)

    # ------------------------------------------------------------------
    # Subscription
    # ------------------------------------------------------------------

    def on_crossing(self, fn: Callable) -> Callable:
        """fn(rope_a, rope_b, segment_a, segment_b, sign, point)"""
        self.events.crossing.append(fn)
        return fn

    def on_separation(self, fn: Callable) -> Callable:
        """fn(SeparationEvent)"""
        self.events.separation.append(fn)
        return fn

    def on_tangle_formed(self, fn: Callable) -> Callable:
        """fn(tangle, rope_a, rope_b, point)"""
        self.events.tangle_formed.append(fn)
        return fn

    def on_tangle_broken(self, fn: Callable) -> Callable:
        """fn(tangle)"""
        self.events.tangle_broken.append(fn)
        return fn

    def poll_events(self) -> List:
        """Drain every event emitted since the last poll"""
        return self.events.drain()

    # ------------------------------------------------------------------
    # Ropes
    # ------------------------------------------------------------------

    def add_rope(self, rope: Rope) -> Rope:
        if rope.rope_id is None:
            rope.rope_id = self.rope_ids.allocate()
        else:
            self.rope_ids.reserve(rope.rope_id)
        self.ropes.append(rope)
        logger.debug("Added rope %d (%d segments)", rope.rope_id, rope.num_segments)
        return rope

    def create_rope(self, start, end, num_segments: int,
                    options: Optional[RopeOptions] = None) -> Rope:
        return self.add_rope(Rope(start, end, num_segments, options))

    def remove_rope(self, rope: Rope):
        """Remove a rope; tangles attached to it break. Unknown ropes are ignored."""
        if rope not in self.ropes:
            return
        self.ropes.remove(rope)

        attached = [t for t in self.tangle_constraints if t.rope_a is rope or t.rope_b is rope]
        self.tangle_constraints = [t for t in self.tangle_constraints if t not in attached]
        for tangle in attached:
            tangle.mark_broken()
            self.events.emit_tangle_broken(TangleBrokenEvent(tangle))

        rid = rope.rope_id
        self._drop_intersections({k for k in self._previous_intersections if rid in (k.rope_a, k.rope_b)})
        self._cooldowns = {
            k: v for k, v in self._cooldowns.items() if rid not in (k.rope_a, k.rope_b)
        }
        logger.debug("Removed rope %d", rid)

    def _drop_intersections(self, keys: Set[SegmentPairKey]):
        self._previous_intersections -= keys
        for key in sorted(keys):
            self.events.emit_separation(SeparationEvent(key))

    def get_all_segments(self) -> List[RopeSegment]:
        segments = []
        for rope in self.ropes:
            segments.extend(rope.get_segments())
        return segments

    def reset(self):
        """
        Drop every rope, tangle, intersection and cooldown.

        Active intersections are reported as separations before they are dropped.
        """
        self._drop_intersections(set(self._previous_intersections))
        self.ropes = []
        self.tangle_constraints = []
        self._cooldowns = {}
        self.rope_ids.reset()
        self.tangle_ids.reset()
        self.events.clear()
        self.frame = 0

    # ------------------------------------------------------------------
    # Step
    # ------------------------------------------------------------------

    def step(self, dt: float):
        if dt <= 0:
            raise ValueError("dt must be positive")

        cfg = self.config
        self.frame += 1

        # 1. Predict
        for rope in self.ropes:
            rope.apply_gravity(cfg.gravity)
            for particle in rope.particles:
                particle.integrate(dt)

        # 2. Solve
        for i in range(cfg.solver_iterations):
            for rope in self.ropes:
                for constraint in rope.distance_constraints:
                    constraint.solve()

            for tangle in self.tangle_constraints:
                tangle.age += dt
                tangle.solve()

            if not cfg.allow_free_crossing:
                self.solve_rope_collisions()

            if i < cfg.solver_iterations / 2:
                for rope in self.ropes:
                    for constraint in rope.bending_constraints:
                        constraint.solve()

            if cfg.bounds is not None:
                self.solve_boundary_constraints()

        # 3. Harden lengths
        for rope in self.ropes:
            rope.enforce_strict_length(cfg.strict_length_iterations)
            rope.enforce_max_length(cfg.max_length_factor)

        # 4. Commit
        for rope in self.ropes:
            for particle in rope.particles:
                particle.update_position(dt)

        # 5. Tangle lifecycle
        self.update_tangles()

        # 6. Crossings
        self.detect_crossings()

    def solve_boundary_constraints(self):
        bounds = self.config.bounds
        if bounds is None:
            return
        for rope in self.ropes:
            for particle in rope.particles:
                if particle.is_pinned:
                    continue
                particle.predicted = bounds.clamp(particle.predicted)

    def solve_rope_collisions(self):
        """
        Push apart segments of different ropes closer than two collision radii.

        The correction is applied at the closest points and shared out to the
        segment endpoints by barycentric weight and inverse mass.
        """
        min_dist = 2.0 * self.config.rope_collision_radius

        for i in range(len(self.ropes)):
            for j in range(i + 1, len(self.ropes)):
                for ca in self.ropes[i].distance_constraints:
                    for cb in self.ropes[j].distance_constraints:
                        self._separate_segments(ca, cb, min_dist)

    def _separate_segments(self, ca, cb, min_dist: float):
        a0, a1 = ca.particle_a, ca.particle_b
        b0, b1 = cb.particle_a, cb.particle_b

        if not _boxes_overlap(a0.predicted, a1.predicted, b0.predicted, b1.predicted, min_dist):
            return

        closest = segment_to_segment_distance(a0.predicted, a1.predicted, b0.predicted, b1.predicted)
        if closest.distance >= min_dist:
            return

        normal = closest.point_a - closest.point_b
        if closest.distance < 1e-9:
            seg = a1.predicted - a0.predicted
            normal = np.array([-seg[1], seg[0]])
        normal = normalize(normal)
        if not normal.any():
            return

        ta, tb = closest.t_a, closest.t_b
        wa0, wa1 = (1 - ta) * a0.inverse_mass, ta * a1.inverse_mass
        wb0, wb1 = (1 - tb) * b0.inverse_mass, tb * b1.inverse_mass
        w_sum = (1 - ta) * wa0 + ta * wa1 + (1 - tb) * wb0 + tb * wb1
        if w_sum < 1e-9:
            return

        push = normal * ((min_dist - closest.distance) / w_sum)
        a0.predicted += push * wa0
        a1.predicted += push * wa1
        b0.predicted -= push * wb0
        b1.predicted -= push * wb1

    # ------------------------------------------------------------------
    # Tangle lifecycle
    # ------------------------------------------------------------------

    def update_tangles(self):
        for key in list(self._cooldowns):
            self._cooldowns[key] -= 1
            if self._cooldowns[key] <= 0:
                del self._cooldowns[key]

        broken = [t for t in self.tangle_constraints if t.should_break()]
        if broken:
            self.tangle_constraints = [t for t in self.tangle_constraints if t not in broken]
            for tangle in broken:
                tangle.mark_broken()
                if tangle.key is not None:
                    self._cooldowns[tangle.key] = self.config.tangle_cooldown_frames
                logger.debug("Tangle %d broke (locked=%s)", tangle.tangle_id, tangle.is_locked)
                self.events.emit_tangle_broken(TangleBrokenEvent(tangle))

        for i in range(len(self.ropes)):
            for j in range(i + 1, len(self.ropes)):
                self.detect_rope_pair_tangles(self.ropes[i], self.ropes[j])

    def count_pair_tangles(self, rope_a: Rope, rope_b: Rope) -> int:
        return sum(
            1 for t in self.tangle_constraints
            if (t.rope_a is rope_a and t.rope_b is rope_b) or
               (t.rope_a is rope_b and t.rope_b is rope_a)
        )

    def is_on_cooldown(self, key: SegmentPairKey) -> bool:
        return key in self._cooldowns

    def detect_rope_pair_tangles(self, rope_a: Rope, rope_b: Rope):
        """Scan every segment pair of two ropes for a new interlock"""
        cfg = self.config
        pair_count = self.count_pair_tangles(rope_a, rope_b)

        skip_a = SKIP_SEGMENTS_FROM_START if rope_a.start_particle.is_pinned else 0
        skip_b = SKIP_SEGMENTS_FROM_START if rope_b.start_particle.is_pinned else 0
        segments_b = rope_b.get_segments()[skip_b:]

        for seg_a in rope_a.get_segments()[skip_a:]:
            for seg_b in segments_b:
                if len(self.tangle_constraints) >= cfg.max_total_tangles:
                    return
                if pair_count >= cfg.max_tangles_per_rope_pair:
                    return

                key = SegmentPairKey.make(rope_a.rope_id, rope_b.rope_id, seg_a.index, seg_b.index)
                if key in self._cooldowns:
                    continue

                if not _boxes_overlap(seg_a.start, seg_a.end, seg_b.start, seg_b.end):
                    continue
                hit = segment_intersection(seg_a.start, seg_a.end, seg_b.start, seg_b.end)
                if not hit.intersects:
                    continue

                dir_a = seg_a.end - seg_a.start
                dir_b = seg_b.end - seg_b.start
                angle = crossing_angle(dir_a, dir_b)
                if angle < MIN_CROSSING_ANGLE - ANGLE_TOLERANCE:
                    continue

                idx_a = rope_a.nearest_particle_index(seg_a.index, hit.t)
                idx_b = rope_b.nearest_particle_index(seg_b.index, hit.u)
                tension_a = rope_a.local_tension(idx_a)
                tension_b = rope_b.local_tension(idx_b)
                if tension_a < MIN_LOCAL_TENSION or tension_b < MIN_LOCAL_TENSION:
                    continue

                quality = crossing_quality(dir_a, dir_b)
                score = (tension_a + tension_b) * quality
                if score <= cfg.tangle_formation_threshold:
                    continue

                particle_a = rope_a.particles[idx_a]
                particle_b = rope_b.particles[idx_b]
                if any(t.connects(particle_a, particle_b) for t in self.tangle_constraints):
                    continue

                self._form_tangle(rope_a, idx_a, rope_b, idx_b, key, angle, score, hit.point)
                pair_count += 1

    def _form_tangle(self, rope_a: Rope, idx_a: int, rope_b: Rope, idx_b: int,
                     key: SegmentPairKey, angle: float, score: float, point: np.ndarray):
        params = self.config.tangle
        strength = min(1.0, score / self.config.tangle_tension_threshold)
        stiffness = params.min_stiffness + (params.max_stiffness - params.min_stiffness) * strength

        tangle = TangleConstraint(
            self.tangle_ids.allocate(),
            rope_a, idx_a,
            rope_b, idx_b,
            params=params,
            wrap_angle=angle,
            stiffness=stiffness,
            key=key
        )
        self.tangle_constraints.append(tangle)
        self._cooldowns[key] = self.config.tangle_cooldown_frames

        logger.debug("Tangle %d formed between ropes %d and %d at %.0f° (score %.2f)",
                     tangle.tangle_id, rope_a.rope_id, rope_b.rope_id, np.degrees(angle), score)
        self.events.emit_tangle_formed(TangleFormedEvent(tangle, rope_a, rope_b, point.copy()))

    def get_tangle_stats(self) -> Dict:
        """Aggregate tangle state; Capstan multipliers compound across tangles"""
        total_friction = 1.0
        max_wrap = 0.0
        locked = 0
        details = []
        for tangle in self.tangle_constraints:
            if tangle.is_locked:
                locked += 1
            max_wrap = max(max_wrap, tangle.wrap_angle)
            total_friction *= tangle.get_capstan_friction()
            details.append(tangle.get_debug_info())

        return {
            "count": len(self.tangle_constraints),
            "locked": locked,
            "max_wrap": max_wrap,
            "total_friction": total_friction,
            "details": details,
        }

    # ------------------------------------------------------------------
    # Crossing detection
    # ------------------------------------------------------------------

    def detect_crossings(self):
        """
        Report segment pairs that intersect now but did not last tick.

        One physical crossing yields one event; a pair that separates for at
        least one tick and crosses again is reported again.
        """
        current: Set[SegmentPairKey] = set()
        crossings: List[CrossingEvent] = []

        for i in range(len(self.ropes)):
            for j in range(i + 1, len(self.ropes)):
                rope_a, rope_b = self.ropes[i], self.ropes[j]
                segments_b = rope_b.get_segments()

                for seg_a in rope_a.get_segments():
                    for seg_b in segments_b:
                        if not _boxes_overlap(seg_a.start, seg_a.end, seg_b.start, seg_b.end):
                            continue
                        hit = segment_intersection(seg_a.start, seg_a.end, seg_b.start, seg_b.end)
                        if not hit.intersects:
                            continue

                        key = SegmentPairKey.make(rope_a.rope_id, rope_b.rope_id,
                                                  seg_a.index, seg_b.index)
                        current.add(key)
                        if key in self._previous_intersections:
                            continue

                        sign = self.crossing_sign(rope_a, seg_a, hit.t, rope_b, seg_b, hit.u)
                        crossings.append(CrossingEvent(
                            rope_a, rope_b, seg_a.index, seg_b.index, sign, hit.point.copy()
                        ))

        separated = self._previous_intersections - current
        self._previous_intersections = current

        for key in sorted(separated):
            self.events.emit_separation(SeparationEvent(key))
        for event in crossings:
            self.events.emit_crossing(event)

    @staticmethod
    def crossing_sign(rope_a: Rope, seg_a: RopeSegment, t: float,
                      rope_b: Rope, seg_b: RopeSegment, u: float) -> int:
        """
        +1 if rope_a passes over rope_b at the crossing, -1 otherwise.

        Compares particle heights interpolated at the intersection; on a tie
        the strand whose segment starts nearer its own rope's start is over.
        """
        pa0, pa1 = rope_a.particles[seg_a.index], rope_a.particles[seg_a.index + 1]
        pb0, pb1 = rope_b.particles[seg_b.index], rope_b.particles[seg_b.index + 1]
        height_a = pa0.height + (pa1.height - pa0.height) * t
        height_b = pb0.height + (pb1.height - pb0.height) * u

        if abs(height_a - height_b) > 1e-9:
            return 1 if height_a > height_b else -1

        dist_a = distance(seg_a.start, rope_a.start_particle.position)
        dist_b = distance(seg_b.start, rope_b.start_particle.position)
        return 1 if dist_a < dist_b else -1
