"""
Tangle Constraint Module
========================
Stateful interlock between two particles on two different ropes.

Real rope-on-rope friction under wrap follows the Capstan equation:

    T_hold = T_load * e^(mu * theta)

Friction grows exponentially with the wrap angle theta. The constraint
couples this both ways:
- tension winds the strands tighter (wrap angle grows, rest distance shrinks)
- wrap angle raises friction, which makes the tangle hold harder and,
  past the lock threshold, lock for good.

Lifecycle:

    FORMING --> LOOSE <--> TIGHTENING --> LOCKED
                  |            |             |
                  +------------+-------------+--> BROKEN

LOCKED is one-way. Only breaking (slack for too long, or pulled past the
break distance) ends a tangle.
"""

import numpy as np
from enum import Enum
from typing import Dict, Optional, Tuple

from .config import TangleParams
from .geometry import crossing_quality


class TangleState(Enum):
    """Tangle lifecycle states"""
    FORMING = "forming"          # Created this tick, not yet solved
    LOOSE = "loose"              # No tension on the interlock
    TIGHTENING = "tightening"    # Under tension, cinching down
    LOCKED = "locked"            # Cannot slip any more
    BROKEN = "broken"            # Removed from the world


class TangleConstraint:
    """
    Capstan-friction interlock between particle `index_a` of rope_a and
    particle `index_b` of rope_b.
    """

    MIN_WRAP = np.pi / 6
    MAX_WRAP = 2 * np.pi

    # Wrap-angle hysteresis: grow above 1, decay below 0.5, frozen between
    WRAP_GROWTH_TENSION = 1.0
    WRAP_DECAY_TENSION = 0.5
    WRAP_GROWTH_RATE = 0.001
    WRAP_DECAY_FACTOR = 0.995
    MIN_CROSSING_QUALITY = 0.5

    TIGHTEN_RATE = 0.02
    FRICTION_CAP = 3.0

    LOCKED_FRICTION = 0.98
    LOOSE_FRICTION_BASE = 0.5
    LOOSE_FRICTION_SPAN = 0.45

    SLACK_WRAP = np.pi / 3
    SLACK_TENSION = 0.3
    UNLOCKED_BREAK_FACTOR = 1.5

    def __init__(self,
                 tangle_id: int,
                 rope_a,
                 index_a: int,
                 rope_b,
                 index_b: int,
                 params: Optional[TangleParams] = None,
                 wrap_angle: float = MIN_WRAP,
                 stiffness: Optional[float] = None,
                 key: Optional[Tuple] = None):
        self.tangle_id = tangle_id
        self.params = params or TangleParams()

        self.rope_a = rope_a
        self.rope_b = rope_b
        self.index_a = index_a
        self.index_b = index_b
        self.particle_a = rope_a.particles[index_a]
        self.particle_b = rope_b.particles[index_b]

        # Segment pair this tangle formed on (cooldown bookkeeping)
        self.key = key

        self.friction_coefficient = self.params.friction_coefficient
        self.min_distance = self.params.min_distance
        self.max_distance = self.params.max_distance
        self.lock_threshold = self.params.lock_threshold

        if stiffness is None:
            stiffness = self.params.min_stiffness
        self.stiffness = float(np.clip(stiffness, self.params.min_stiffness, self.params.max_stiffness))

        self.rest_distance = float(np.clip(self.current_distance(), self.min_distance, self.max_distance))
        self.wrap_angle = float(np.clip(wrap_angle, self.MIN_WRAP, self.MAX_WRAP))

        # Recomputed every solve
        self.tension = 0.0

        self.age = 0.0
        self.slack_frames = 0
        self.crossing_point = (self.particle_a.position + self.particle_b.position) / 2

        self.state = TangleState.FORMING
        self._locked = False

    # ------------------------------------------------------------------
    # Friction model
    # ------------------------------------------------------------------

    @property
    def is_locked(self) -> bool:
        return self._locked

    @property
    def is_broken(self) -> bool:
        return self.state == TangleState.BROKEN

    def get_capstan_friction(self) -> float:
        """Capstan multiplier e^(mu * theta)"""
        return float(np.exp(self.friction_coefficient * self.wrap_angle))

    def get_effective_friction(self) -> float:
        """
        Fraction of the positional error the interlock removes per iteration.

        Loose tangles: 0.5 + 0.45 * (1 - 1/capstan), strictly increasing
        in wrap angle and below 0.95. Locked tangles use a fixed 0.98.
        """
        if self._locked:
            return self.LOCKED_FRICTION
        grip = 1.0 - 1.0 / self.get_capstan_friction()
        return self.LOOSE_FRICTION_BASE + self.LOOSE_FRICTION_SPAN * grip

    def get_effective_stiffness(self) -> float:
        return 1.0 if self._locked else self.stiffness

    def get_break_distance(self) -> float:
        if self._locked:
            return self.max_distance * min(self.get_capstan_friction(), self.FRICTION_CAP)
        return self.max_distance * self.UNLOCKED_BREAK_FACTOR

    # ------------------------------------------------------------------
    # Solve
    # ------------------------------------------------------------------

    def current_distance(self) -> float:
        """Distance between the tangled particles on committed positions"""
        return float(np.linalg.norm(self.particle_b.position - self.particle_a.position))

    def connects(self, particle_a, particle_b) -> bool:
        """True if this tangle joins exactly this unordered particle pair"""
        return ((self.particle_a is particle_a and self.particle_b is particle_b) or
                (self.particle_a is particle_b and self.particle_b is particle_a))

    def update_wrap_angle(self):
        dir_a = self.rope_a.local_direction(self.index_a)
        dir_b = self.rope_b.local_direction(self.index_b)
        quality = crossing_quality(dir_a, dir_b)

        if self.tension > self.WRAP_GROWTH_TENSION and quality > self.MIN_CROSSING_QUALITY:
            self.wrap_angle = min(
                self.MAX_WRAP,
                self.wrap_angle + self.tension * self.WRAP_GROWTH_RATE * quality
            )
        elif self.tension < self.WRAP_DECAY_TENSION:
            self.wrap_angle = max(self.MIN_WRAP, self.wrap_angle * self.WRAP_DECAY_FACTOR)

    def solve(self):
        if self.state == TangleState.BROKEN:
            return

        pa, pb = self.particle_a, self.particle_b
        delta = pb.predicted - pa.predicted
        dist = float(np.linalg.norm(delta))

        self.tension = max(0.0, dist - self.rest_distance)
        self.update_wrap_angle()

        if self.tension > 0 and not self._locked:
            capstan = min(self.get_capstan_friction(), self.FRICTION_CAP)
            self.rest_distance = max(
                self.min_distance,
                self.rest_distance - self.TIGHTEN_RATE * self.tension * capstan
            )
            self.wrap_angle = min(self.MAX_WRAP, self.wrap_angle + self.tension * self.WRAP_GROWTH_RATE)
            if self.tension > self.lock_threshold:
                self._locked = True

        self._update_state()

        if dist > self.rest_distance:
            error = dist - self.rest_distance
        elif dist < self.min_distance:
            error = dist - self.min_distance
        else:
            error = 0.0

        w_sum = pa.inverse_mass + pb.inverse_mass
        if error != 0.0 and dist > 1e-6 and w_sum > 1e-6:
            factor = error * self.get_effective_stiffness() * self.get_effective_friction()
            correction = delta * (factor / (dist * w_sum))
            pa.predicted += correction * pa.inverse_mass
            pb.predicted -= correction * pb.inverse_mass

        self.crossing_point = (pa.predicted + pb.predicted) / 2

    def _update_state(self):
        if self.state == TangleState.BROKEN:
            return
        if self._locked:
            self.state = TangleState.LOCKED
        elif self.tension > 0:
            self.state = TangleState.TIGHTENING
        else:
            self.state = TangleState.LOOSE

    # ------------------------------------------------------------------
    # Breaking
    # ------------------------------------------------------------------

    def should_break(self) -> bool:
        """
        Advance the slack counter and decide whether the tangle lets go.

        Call once per tick, after positions are committed.
        """
        if not self._locked and self.wrap_angle < self.SLACK_WRAP and self.tension < self.SLACK_TENSION:
            self.slack_frames += 1
        else:
            self.slack_frames = 0

        if self.slack_frames > self.params.slack_frames_to_break:
            return True

        return self.current_distance() > self.get_break_distance()

    def mark_broken(self):
        self.state = TangleState.BROKEN

    def get_debug_info(self) -> Dict:
        return {
            "id": self.tangle_id,
            "ropes": (self.rope_a.rope_id, self.rope_b.rope_id),
            "state": self.state.value,
            "wrap_angle_deg": float(np.degrees(self.wrap_angle)),
            "tension": self.tension,
            "rest_distance": self.rest_distance,
            "capstan_friction": self.get_capstan_friction(),
            "is_locked": self._locked,
            "age": self.age,
            "slack_frames": self.slack_frames,
        }

    def __repr__(self) -> str:
        return (f"TangleConstraint(id={self.tangle_id}, ropes=({self.rope_a.rope_id}, "
                f"{self.rope_b.rope_id}), state={self.state.value}, "
                f"wrap={np.degrees(self.wrap_angle):.0f}°)")
