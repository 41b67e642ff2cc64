"""
Rope Module
===========
A rope is an ordered particle chain held together by distance constraints
and smoothed by bending constraints.

    start                                        end
      o-------o-------o-------o-------o-------o
      p0      p1      p2      p3      p4      p5
        d0      d1      d2      d3      d4           distance constraints
           b0      b1      b2      b3                bending constraints

Endpoints are usually pinned and driven from outside (a hand, a collar):
move_start / move_end teleport them each tick.
"""

import numpy as np
from dataclasses import dataclass
from typing import List, NamedTuple, Optional

from .constraints import BendingConstraint, DistanceConstraint
from .geometry import as_vec2
from .particle import Particle


@dataclass
class RopeOptions:
    """Material properties of a rope"""
    mass: float = 0.1               # Per particle
    stiffness: float = 1.0          # Distance constraint stiffness (0-1)
    bend_stiffness: float = 0.3
    damping: float = 0.02
    thickness: float = 3.0          # Visual / contact radius hint


class RopeSegment(NamedTuple):
    """A segment between particles index and index + 1"""
    start: np.ndarray
    end: np.ndarray
    index: int
    rope_id: Optional[int]


class Rope:
    """
    A flexible, inextensible strand.

    rope_id is assigned by the owning PhysicsWorld when the rope is added,
    unless one was given explicitly.
    """

    def __init__(self,
                 start,
                 end,
                 num_segments: int,
                 options: Optional[RopeOptions] = None,
                 rope_id: Optional[int] = None):
        if num_segments < 1:
            raise ValueError("A rope needs at least one segment")

        self.options = options or RopeOptions()
        self.rope_id = rope_id
        self.thickness = self.options.thickness

        start = as_vec2(start)
        end = as_vec2(end)

        self.particles: List[Particle] = []
        for i in range(num_segments + 1):
            pos = start + (end - start) * (i / num_segments)
            self.particles.append(
                Particle(pos[0], pos[1], mass=self.options.mass, damping=self.options.damping)
            )

        segment_length = float(np.linalg.norm(end - start)) / num_segments
        self.distance_constraints: List[DistanceConstraint] = [
            DistanceConstraint(
                self.particles[i],
                self.particles[i + 1],
                segment_length,
                self.options.stiffness
            )
            for i in range(num_segments)
        ]

        self.bending_constraints: List[BendingConstraint] = [
            BendingConstraint(
                self.particles[i],
                self.particles[i + 1],
                self.particles[i + 2],
                self.options.bend_stiffness
            )
            for i in range(num_segments - 1)
        ]

    # ------------------------------------------------------------------
    # Endpoints
    # ------------------------------------------------------------------

    @property
    def start_particle(self) -> Particle:
        return self.particles[0]

    @property
    def end_particle(self) -> Particle:
        return self.particles[-1]

    @property
    def num_segments(self) -> int:
        return len(self.distance_constraints)

    def pin_start(self):
        self.start_particle.pin()

    def pin_end(self):
        self.end_particle.pin()

    def unpin_start(self):
        self.start_particle.unpin(self.options.mass)

    def unpin_end(self):
        self.end_particle.unpin(self.options.mass)

    def move_start(self, position):
        position = as_vec2(position)
        self.start_particle.teleport(position[0], position[1])

    def move_end(self, position):
        position = as_vec2(position)
        self.end_particle.teleport(position[0], position[1])

    # ------------------------------------------------------------------
    # Forces and geometry
    # ------------------------------------------------------------------

    def apply_gravity(self, gravity: np.ndarray):
        for particle in self.particles:
            particle.apply_force(gravity * particle.mass)

    def get_segments(self) -> List[RopeSegment]:
        """Committed-position segments (for crossing and tangle tests)"""
        return [
            RopeSegment(
                self.particles[i].position,
                self.particles[i + 1].position,
                i,
                self.rope_id
            )
            for i in range(len(self.particles) - 1)
        ]

    def get_current_length(self) -> float:
        return sum(c.current_length() for c in self.distance_constraints)

    def get_predicted_length(self) -> float:
        return sum(c.predicted_length() for c in self.distance_constraints)

    def get_rest_length(self) -> float:
        return sum(c.rest_length for c in self.distance_constraints)

    def local_tension(self, index: int) -> float:
        """
        Stretch beyond rest length around particle `index`.

        Sum over the one or two distance constraints adjacent to the particle.
        """
        tension = 0.0
        if index > 0:
            tension += self.distance_constraints[index - 1].stretch()
        if index < len(self.distance_constraints):
            tension += self.distance_constraints[index].stretch()
        return tension

    def nearest_particle_index(self, segment_index: int, t: float) -> int:
        """Particle closest to parameter t along a segment"""
        return segment_index if t < 0.5 else segment_index + 1

    def local_direction(self, index: int) -> np.ndarray:
        """Rope direction at a particle from its immediate neighbours (predicted positions)"""
        prev_idx = max(0, index - 1)
        next_idx = min(len(self.particles) - 1, index + 1)
        return self.particles[next_idx].predicted - self.particles[prev_idx].predicted

    def set_height_profile(self, start_height: float = 0.0, end_height: float = 0.0):
        """
        Interpolate particle heights from start to end with a smoothstep curve.

        Heights decide which strand is on top at a crossing.
        """
        n = len(self.particles)
        for i, particle in enumerate(self.particles):
            t = i / (n - 1)
            smooth = t * t * (3 - 2 * t)
            particle.height = start_height + (end_height - start_height) * smooth

    # ------------------------------------------------------------------
    # Length hardening
    # ------------------------------------------------------------------

    def enforce_max_length(self, factor: float = 1.0):
        """
        Uniformly pull the rope toward its pinned end if it is longer than
        factor * rest length.

        Scales every free particle's predicted position about the pinned
        anchor (the start if pinned, otherwise the end). With neither end
        pinned there is no anchor and this is a no-op.
        """
        if self.start_particle.is_pinned:
            anchor = self.start_particle.predicted.copy()
        elif self.end_particle.is_pinned:
            anchor = self.end_particle.predicted.copy()
        else:
            return

        current = self.get_predicted_length()
        max_length = factor * self.get_rest_length()
        if current <= max_length or current < 1e-9:
            return

        shrink = max_length / current
        for particle in self.particles:
            if particle.is_pinned:
                continue
            particle.predicted = anchor + (particle.predicted - anchor) * shrink

    def enforce_strict_length(self, iterations: int = 3):
        """Stretch-only full-stiffness passes over every segment"""
        for _ in range(iterations):
            for constraint in self.distance_constraints:
                constraint.solve_stretch_only()

    def __repr__(self) -> str:
        return f"Rope(id={self.rope_id}, segments={self.num_segments}, rest={self.get_rest_length():.1f})"
