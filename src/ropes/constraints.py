"""
Basic Rope Constraints
======================
Position-based projections on particle pairs and triples.

Constraints act on `predicted` positions and are solved Gauss-Seidel style:
each solve() immediately writes its correction, so later constraints in the
same pass see the already-corrected positions.
"""

import numpy as np
from typing import Optional

from .particle import Particle


class DistanceConstraint:
    """
    Keeps two particles at a rest length.

    PBD projection (Müller et al. 2006):

        C      = |pB - pA| - L0
        dp     = (C * k) / (|pB - pA| * (wA + wB)) * (pB - pA)
        pA    += wA * dp
        pB    -= wB * dp

    Heavier (or pinned) particles move less.
    """

    def __init__(self,
                 particle_a: Particle,
                 particle_b: Particle,
                 rest_length: Optional[float] = None,
                 stiffness: float = 1.0):
        self.particle_a = particle_a
        self.particle_b = particle_b
        if rest_length is None:
            rest_length = float(np.linalg.norm(particle_b.position - particle_a.position))
        self.rest_length = rest_length
        self.stiffness = float(np.clip(stiffness, 0.0, 1.0))

    def solve(self):
        self._project(self.stiffness, stretch_only=False)

    def solve_stretch_only(self):
        """Full-stiffness projection that only ever shortens the pair"""
        self._project(1.0, stretch_only=True)

    def _project(self, stiffness: float, stretch_only: bool):
        delta = self.particle_b.predicted - self.particle_a.predicted
        dist = np.linalg.norm(delta)

        if dist < 1e-6:
            return

        error = dist - self.rest_length
        if stretch_only and error <= 0:
            return

        w_sum = self.particle_a.inverse_mass + self.particle_b.inverse_mass
        if w_sum < 1e-6:
            return

        correction = delta * ((error * stiffness) / (dist * w_sum))

        self.particle_a.predicted += correction * self.particle_a.inverse_mass
        self.particle_b.predicted -= correction * self.particle_b.inverse_mass

    def current_length(self) -> float:
        return float(np.linalg.norm(self.particle_b.position - self.particle_a.position))

    def predicted_length(self) -> float:
        return float(np.linalg.norm(self.particle_b.predicted - self.particle_a.predicted))

    def stretch(self) -> float:
        """Extension beyond rest length on committed positions (never negative)"""
        return max(0.0, self.current_length() - self.rest_length)


class BendingConstraint:
    """
    Soft smoothness heuristic over three consecutive particles.

    Not a true angular constraint: when the angle at the middle particle
    drifts from its rest angle, the middle particle is pushed away from
    the midpoint of its neighbours by angle_error * stiffness * 0.1.
    Results are approximate by construction.
    """

    ANGLE_TOLERANCE = 0.01   # radians
    PUSH_SCALE = 0.1

    def __init__(self,
                 particle_a: Particle,
                 particle_b: Particle,
                 particle_c: Particle,
                 stiffness: float = 0.5):
        self.particle_a = particle_a
        self.particle_b = particle_b    # Middle
        self.particle_c = particle_c
        self.stiffness = stiffness

        self.rest_angle = self.calculate_angle(
            particle_a.position, particle_b.position, particle_c.position
        )

    @staticmethod
    def calculate_angle(a: np.ndarray, b: np.ndarray, c: np.ndarray) -> float:
        """Angle ABC in radians (pi for a straight line)"""
        ba = a - b
        bc = c - b
        denom = np.linalg.norm(ba) * np.linalg.norm(bc) + 1e-6
        return float(np.arccos(np.clip(np.dot(ba, bc) / denom, -1.0, 1.0)))

    def solve(self):
        if self.particle_b.inverse_mass == 0.0:
            return

        current = self.calculate_angle(
            self.particle_a.predicted,
            self.particle_b.predicted,
            self.particle_c.predicted
        )
        angle_error = current - self.rest_angle

        if abs(angle_error) < self.ANGLE_TOLERANCE:
            return

        center = (self.particle_a.predicted + self.particle_c.predicted) / 2
        push_dir = self.particle_b.predicted - center
        norm = np.linalg.norm(push_dir)
        if norm < 1e-9:
            return

        push_amount = angle_error * self.stiffness * self.PUSH_SCALE
        self.particle_b.predicted += (push_dir / norm) * push_amount
