"""
Test Suite: Rope
================
Unit tests for rope construction, endpoints and length hardening.

Tests:
- Particle / constraint layout
- Pinning and endpoint driving
- Local tension and segment lookup
- Max length and strict length enforcement
"""

import numpy as np
import pytest
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from ropes import Rope, RopeOptions


@pytest.fixture
def rope():
    """Horizontal 10-unit rope with 5 segments"""
    return Rope((0.0, 0.0), (10.0, 0.0), 5)


class TestRopeConstruction:
    """Tests for the particle chain layout"""

    def test_layout(self, rope):
        assert len(rope.particles) == 6
        assert len(rope.distance_constraints) == 5
        assert len(rope.bending_constraints) == 4
        assert rope.num_segments == 5

    def test_rest_length(self, rope):
        assert rope.get_rest_length() == pytest.approx(10.0)
        assert rope.get_current_length() == pytest.approx(10.0)

    def test_particles_evenly_spaced(self, rope):
        xs = [p.position[0] for p in rope.particles]
        np.testing.assert_array_almost_equal(xs, [0, 2, 4, 6, 8, 10])

    def test_single_segment_has_no_bending(self):
        single = Rope((0, 0), (1, 0), 1)
        assert len(single.bending_constraints) == 0

    def test_zero_segments_rejected(self):
        with pytest.raises(ValueError):
            Rope((0, 0), (1, 0), 0)

    def test_options_applied(self):
        options = RopeOptions(mass=0.5, damping=0.1, thickness=4.0)
        heavy = Rope((0, 0), (1, 0), 2, options)

        assert heavy.particles[1].mass == pytest.approx(0.5)
        assert heavy.particles[1].damping == pytest.approx(0.1)
        assert heavy.thickness == pytest.approx(4.0)

    def test_segments_carry_index_and_id(self):
        tagged = Rope((0, 0), (3, 0), 3, rope_id=7)
        segments = tagged.get_segments()

        assert [s.index for s in segments] == [0, 1, 2]
        assert all(s.rope_id == 7 for s in segments)
        np.testing.assert_array_almost_equal(segments[1].start, [1.0, 0.0])
        np.testing.assert_array_almost_equal(segments[1].end, [2.0, 0.0])


class TestRopeEndpoints:
    """Tests for pinning and driven endpoints"""

    def test_pin_and_unpin(self, rope):
        rope.pin_start()
        rope.pin_end()
        assert rope.start_particle.is_pinned
        assert rope.end_particle.is_pinned

        rope.unpin_start()
        assert not rope.start_particle.is_pinned
        assert rope.start_particle.mass == pytest.approx(rope.options.mass)

    def test_move_end(self, rope):
        rope.move_end((12.0, 3.0))

        np.testing.assert_array_equal(rope.end_particle.position, [12.0, 3.0])
        np.testing.assert_array_equal(rope.end_particle.prev_position, [12.0, 3.0])

    def test_gravity_skips_pinned(self, rope):
        rope.pin_start()
        rope.apply_gravity(np.array([0.0, 50.0]))

        np.testing.assert_array_equal(rope.start_particle.acceleration, [0.0, 0.0])
        np.testing.assert_array_almost_equal(rope.particles[1].acceleration, [0.0, 50.0])


class TestRopeTension:
    """Tests for stretch measurement around a particle"""

    def test_local_tension_sums_adjacent_stretch(self, rope):
        rope.particles[1].position = np.array([3.0, 0.0])  # segment 0: 3 (rest 2), segment 1: 1

        assert rope.local_tension(1) == pytest.approx(1.0)
        assert rope.local_tension(0) == pytest.approx(1.0)
        assert rope.local_tension(3) == pytest.approx(0.0)

    def test_local_tension_at_end(self, rope):
        rope.particles[5].position = np.array([13.0, 0.0])
        assert rope.local_tension(5) == pytest.approx(3.0)

    def test_nearest_particle_index(self, rope):
        assert rope.nearest_particle_index(2, 0.3) == 2
        assert rope.nearest_particle_index(2, 0.7) == 3

    def test_local_direction_uses_neighbours(self, rope):
        np.testing.assert_array_almost_equal(rope.local_direction(2), [4.0, 0.0])
        np.testing.assert_array_almost_equal(rope.local_direction(0), [2.0, 0.0])

    def test_height_profile(self, rope):
        rope.set_height_profile(0.0, 6.0)
        heights = [p.height for p in rope.particles]

        assert heights[0] == pytest.approx(0.0)
        assert heights[-1] == pytest.approx(6.0)
        assert all(b >= a for a, b in zip(heights, heights[1:]))


class TestLengthHardening:
    """Tests for max length and strict length passes"""

    def _stretch_predicted(self, rope, factor):
        for particle in rope.particles:
            if not particle.is_pinned:
                particle.predicted = particle.predicted * factor

    def test_max_length_never_exceeded(self, rope):
        rope.pin_start()
        self._stretch_predicted(rope, 2.0)
        assert rope.get_predicted_length() > rope.get_rest_length()

        rope.enforce_max_length(1.0)

        assert rope.get_predicted_length() <= rope.get_rest_length() + 1e-9
        np.testing.assert_array_equal(rope.start_particle.predicted, [0.0, 0.0])

    def test_max_length_from_pinned_end(self):
        rope = Rope((-10.0, 0.0), (0.0, 0.0), 5)
        rope.pin_end()
        for particle in rope.particles[:-1]:
            particle.predicted = particle.predicted * 1.5

        rope.enforce_max_length(1.0)

        assert rope.get_predicted_length() <= rope.get_rest_length() + 1e-9

    def test_max_length_with_slack_factor(self, rope):
        rope.pin_start()
        self._stretch_predicted(rope, 1.1)

        rope.enforce_max_length(1.2)

        assert rope.get_predicted_length() == pytest.approx(11.0)

    def test_max_length_noop_without_pin(self, rope):
        self._stretch_predicted(rope, 2.0)

        rope.enforce_max_length(1.0)

        assert rope.get_predicted_length() == pytest.approx(20.0)

    def test_strict_length_contracts(self, rope):
        rope.pin_start()
        self._stretch_predicted(rope, 1.5)

        before = rope.get_predicted_length()

        rope.enforce_strict_length(iterations=3)

        assert rope.get_predicted_length() < before
        for constraint in rope.distance_constraints:
            assert constraint.predicted_length() >= constraint.rest_length - 1e-9

    def test_strict_length_single_segment_exact(self):
        rope = Rope((0.0, 0.0), (4.0, 0.0), 1)
        rope.pin_start()
        rope.end_particle.predicted = np.array([9.0, 0.0])

        rope.enforce_strict_length(iterations=1)

        np.testing.assert_array_almost_equal(rope.end_particle.predicted, [4.0, 0.0])
