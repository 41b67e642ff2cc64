"""
Particle Module
===============
Integrable point mass for the position-based rope solver.

Verlet-style: velocity is never integrated on its own, it is re-derived
from the difference between the current and previous positions.

    v      = (x - x_prev) / dt * (1 - damping)
    x_pred = x + v*dt + a*dt^2

Inverse mass 0 means pinned (infinite mass): the particle only moves when
an external driver teleports it.
"""

import numpy as np

from .geometry import as_vec2


class Particle:
    """A single point mass of a rope"""

    def __init__(self, x: float, y: float, mass: float = 1.0, damping: float = 0.01):
        self.position = np.array([x, y], dtype=np.float64)
        self.prev_position = self.position.copy()
        self.predicted = self.position.copy()
        self.velocity = np.zeros(2)

        # Accumulated acceleration (cleared after each integrate)
        self.acceleration = np.zeros(2)

        self.mass = mass
        self.inverse_mass = 1.0 / mass if mass > 0 else 0.0

        # 0-1, fraction of velocity removed per step
        self.damping = damping

        # Vertical offset, only used to decide which strand is on top
        self.height = 0.0

    @property
    def is_pinned(self) -> bool:
        return self.inverse_mass == 0.0

    def pin(self):
        """Give the particle infinite mass"""
        self.inverse_mass = 0.0

    def unpin(self, mass: float = 1.0):
        self.mass = mass
        self.inverse_mass = 1.0 / mass if mass > 0 else 0.0

    def apply_force(self, force):
        """Accumulate a force until the next integrate(). No-op when pinned."""
        if self.inverse_mass > 0:
            self.acceleration += as_vec2(force) * self.inverse_mass

    def integrate(self, dt: float):
        """Predict the next position from Verlet velocity and accumulated acceleration"""
        if self.inverse_mass == 0.0:
            self.predicted = self.position.copy()
            self.acceleration[:] = 0.0
            return

        self.velocity = (self.position - self.prev_position) / dt
        self.velocity *= (1.0 - self.damping)

        self.predicted = self.position + self.velocity * dt + self.acceleration * (dt * dt)

        self.acceleration[:] = 0.0

    def update_position(self, dt: float):
        """Commit the solved prediction and re-derive velocity from the actual displacement"""
        if self.inverse_mass == 0.0:
            return

        self.prev_position = self.position.copy()
        self.position = self.predicted.copy()
        self.velocity = (self.position - self.prev_position) / dt

    def teleport(self, x: float, y: float):
        """Snap to a new location with zero velocity (externally driven endpoints)"""
        self.position = np.array([x, y], dtype=np.float64)
        self.prev_position = self.position.copy()
        self.predicted = self.position.copy()
        self.velocity = np.zeros(2)

    def __repr__(self) -> str:
        state = "pinned" if self.is_pinned else f"m={self.mass:g}"
        return f"Particle(({self.position[0]:.2f}, {self.position[1]:.2f}), {state})"
