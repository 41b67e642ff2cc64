"""
Test Suite: Particles and Basic Constraints
===========================================
Unit tests for Verlet particles and the distance / bending projections.

Tests:
- Pinned particles ignore forces
- Verlet prediction and commit
- Single-call convergence of a two-particle distance constraint
- Stretch-only projection
- Bending constraint rest angle and pinned middle
"""

import numpy as np
import pytest
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from ropes import BendingConstraint, DistanceConstraint, Particle


class TestParticle:
    """Tests for Particle"""

    def test_pinned_particle_ignores_force(self):
        particle = Particle(3.0, 4.0, mass=1.0)
        particle.pin()

        particle.apply_force(np.array([1e6, -1e6]))
        particle.integrate(1.0 / 60.0)

        np.testing.assert_array_equal(particle.predicted, particle.position)
        np.testing.assert_array_equal(particle.position, [3.0, 4.0])

    def test_pinned_particle_commit_is_noop(self):
        particle = Particle(0.0, 0.0)
        particle.pin()
        particle.predicted = np.array([5.0, 5.0])

        particle.update_position(0.1)

        np.testing.assert_array_equal(particle.position, [0.0, 0.0])

    def test_prediction_from_acceleration(self):
        """F = m*a, x_pred = x + a*dt^2 from rest"""
        particle = Particle(0.0, 0.0, mass=2.0, damping=0.0)
        particle.apply_force(np.array([0.0, 20.0]))  # a = 10

        particle.integrate(0.1)

        np.testing.assert_array_almost_equal(particle.predicted, [0.0, 0.1])
        np.testing.assert_array_equal(particle.acceleration, [0.0, 0.0])

    def test_verlet_velocity_carried(self):
        particle = Particle(0.0, 0.0, damping=0.0)
        particle.prev_position = np.array([-1.0, 0.0])

        particle.integrate(0.5)

        np.testing.assert_array_almost_equal(particle.predicted, [1.0, 0.0])

    def test_commit_updates_velocity(self):
        particle = Particle(0.0, 0.0)
        particle.predicted = np.array([1.0, 2.0])

        particle.update_position(0.5)

        np.testing.assert_array_almost_equal(particle.position, [1.0, 2.0])
        np.testing.assert_array_almost_equal(particle.prev_position, [0.0, 0.0])
        np.testing.assert_array_almost_equal(particle.velocity, [2.0, 4.0])

    def test_teleport_resets_motion(self):
        particle = Particle(0.0, 0.0)
        particle.prev_position = np.array([-3.0, 0.0])

        particle.teleport(10.0, 10.0)

        np.testing.assert_array_equal(particle.prev_position, [10.0, 10.0])
        np.testing.assert_array_equal(particle.predicted, [10.0, 10.0])
        np.testing.assert_array_equal(particle.velocity, [0.0, 0.0])

    def test_unpin_restores_mass(self):
        particle = Particle(0.0, 0.0, mass=0.5)
        particle.pin()
        assert particle.is_pinned

        particle.unpin(0.5)

        assert not particle.is_pinned
        assert particle.inverse_mass == pytest.approx(2.0)


class TestDistanceConstraint:
    """Tests for the PBD distance projection"""

    def test_one_free_endpoint_converges_in_one_call(self):
        anchor = Particle(0.0, 0.0)
        anchor.pin()
        free = Particle(3.0, 4.0)
        constraint = DistanceConstraint(anchor, free, rest_length=2.0)

        constraint.solve()

        assert abs(constraint.predicted_length() - 2.0) < 1e-6
        np.testing.assert_array_equal(anchor.predicted, [0.0, 0.0])

    def test_two_free_endpoints_share_correction(self):
        a = Particle(0.0, 0.0)
        b = Particle(10.0, 0.0)
        constraint = DistanceConstraint(a, b, rest_length=6.0)

        constraint.solve()

        np.testing.assert_array_almost_equal(a.predicted, [2.0, 0.0])
        np.testing.assert_array_almost_equal(b.predicted, [8.0, 0.0])

    def test_heavier_particle_moves_less(self):
        light = Particle(0.0, 0.0, mass=1.0)
        heavy = Particle(4.0, 0.0, mass=3.0)
        constraint = DistanceConstraint(light, heavy, rest_length=2.0)

        constraint.solve()

        assert abs(light.predicted[0]) > abs(heavy.predicted[0] - 4.0)
        assert constraint.predicted_length() == pytest.approx(2.0)

    def test_partial_stiffness(self):
        anchor = Particle(0.0, 0.0)
        anchor.pin()
        free = Particle(4.0, 0.0)
        constraint = DistanceConstraint(anchor, free, rest_length=2.0, stiffness=0.5)

        constraint.solve()

        assert constraint.predicted_length() == pytest.approx(3.0)

    def test_rest_length_defaults_to_current(self):
        constraint = DistanceConstraint(Particle(0.0, 0.0), Particle(0.0, 7.0))
        assert constraint.rest_length == pytest.approx(7.0)

    def test_stretch_only_ignores_compression(self):
        a = Particle(0.0, 0.0)
        b = Particle(1.0, 0.0)
        constraint = DistanceConstraint(a, b, rest_length=5.0)

        constraint.solve_stretch_only()

        np.testing.assert_array_equal(b.predicted, [1.0, 0.0])

    def test_stretch_only_fixes_extension(self):
        a = Particle(0.0, 0.0)
        a.pin()
        b = Particle(9.0, 0.0)
        constraint = DistanceConstraint(a, b, rest_length=5.0, stiffness=0.1)

        constraint.solve_stretch_only()

        assert constraint.predicted_length() == pytest.approx(5.0)

    def test_stretch_measured_on_positions(self):
        constraint = DistanceConstraint(Particle(0.0, 0.0), Particle(6.0, 0.0), rest_length=4.0)
        assert constraint.stretch() == pytest.approx(2.0)

        compressed = DistanceConstraint(Particle(0.0, 0.0), Particle(1.0, 0.0), rest_length=4.0)
        assert compressed.stretch() == 0.0

    def test_coincident_particles_skipped(self):
        a = Particle(1.0, 1.0)
        b = Particle(1.0, 1.0)
        constraint = DistanceConstraint(a, b, rest_length=2.0)

        constraint.solve()

        assert not np.isnan(a.predicted).any()
        assert not np.isnan(b.predicted).any()


class TestBendingConstraint:
    """Tests for the smoothness heuristic"""

    def test_straight_rest_angle(self):
        constraint = BendingConstraint(Particle(0, 0), Particle(1, 0), Particle(2, 0))
        assert constraint.rest_angle == pytest.approx(np.pi, abs=1e-3)

    def test_bent_chain_pushed_straighter(self):
        a, b, c = Particle(0, 0), Particle(1, 0), Particle(2, 0)
        constraint = BendingConstraint(a, b, c, stiffness=1.0)
        b.predicted = np.array([1.0, 0.5])

        before = BendingConstraint.calculate_angle(a.predicted, b.predicted, c.predicted)
        constraint.solve()
        after = BendingConstraint.calculate_angle(a.predicted, b.predicted, c.predicted)

        assert after > before
        np.testing.assert_array_equal(a.predicted, [0.0, 0.0])

    def test_pinned_middle_not_moved(self):
        a, b, c = Particle(0, 0), Particle(1, 0), Particle(2, 0)
        constraint = BendingConstraint(a, b, c)
        b.pin()
        b.predicted = np.array([1.0, 0.5])

        constraint.solve()

        np.testing.assert_array_equal(b.predicted, [1.0, 0.5])

    def test_within_tolerance_no_change(self):
        a, b, c = Particle(0, 0), Particle(1, 0), Particle(2, 0)
        constraint = BendingConstraint(a, b, c)

        constraint.solve()

        np.testing.assert_array_equal(b.predicted, [1.0, 0.0])
