"""
Test Suite: Strand Geometry
===========================
Unit tests for the 2D vector and segment helpers.

Tests:
- Segment intersection (crossing, parallel, disjoint, degenerate)
- Segment-to-segment closest approach
- Crossing quality and angle
"""

import numpy as np
import pytest
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from ropes.geometry import (
    closest_point_on_segment,
    cross,
    crossing_angle,
    crossing_quality,
    normalize,
    point_to_segment_distance,
    segment_intersection,
    segment_to_segment_distance,
    vec2,
)


class TestVectorHelpers:
    """Tests for the small vector functions"""

    def test_cross_sign(self):
        assert cross(vec2(1, 0), vec2(0, 1)) == pytest.approx(1.0)
        assert cross(vec2(0, 1), vec2(1, 0)) == pytest.approx(-1.0)

    def test_normalize_unit_length(self):
        np.testing.assert_array_almost_equal(normalize(vec2(3, 4)), [0.6, 0.8])

    def test_normalize_zero_vector(self):
        """Zero input gives zero output, never NaN"""
        result = normalize(vec2(0, 0))
        np.testing.assert_array_equal(result, [0.0, 0.0])


class TestSegmentIntersection:
    """Tests for the cross-product segment intersection"""

    def test_diagonals_cross_at_center(self):
        hit = segment_intersection(vec2(0, 0), vec2(2, 2), vec2(0, 2), vec2(2, 0))

        assert hit.intersects
        np.testing.assert_array_almost_equal(hit.point, [1.0, 1.0])
        assert hit.t == pytest.approx(0.5)
        assert hit.u == pytest.approx(0.5)

    def test_parallel_segments_never_intersect(self):
        hit = segment_intersection(vec2(0, 0), vec2(1, 0), vec2(0, 1), vec2(1, 1))
        assert not hit.intersects

    def test_collinear_overlap_is_not_an_intersection(self):
        hit = segment_intersection(vec2(0, 0), vec2(2, 0), vec2(1, 0), vec2(3, 0))
        assert not hit.intersects

    def test_lines_cross_outside_segments(self):
        hit = segment_intersection(vec2(0, 0), vec2(1, 0), vec2(2, -1), vec2(2, 1))
        assert not hit.intersects

    def test_zero_length_segment(self):
        hit = segment_intersection(vec2(1, 1), vec2(1, 1), vec2(0, 0), vec2(2, 2))
        assert not hit.intersects


class TestClosestApproach:
    """Tests for point and segment distances"""

    def test_closest_point_interior(self):
        point = closest_point_on_segment(vec2(0, 0), vec2(10, 0), vec2(5, 3))
        np.testing.assert_array_almost_equal(point, [5.0, 0.0])

    def test_closest_point_clamped_to_endpoint(self):
        point = closest_point_on_segment(vec2(0, 0), vec2(10, 0), vec2(-5, 3))
        np.testing.assert_array_almost_equal(point, [0.0, 0.0])

    def test_point_to_degenerate_segment(self):
        assert point_to_segment_distance(vec2(1, 1), vec2(1, 1), vec2(4, 5)) == pytest.approx(5.0)

    def test_parallel_segments_distance(self):
        result = segment_to_segment_distance(vec2(0, 0), vec2(2, 0), vec2(0, 1), vec2(2, 1))
        assert result.distance == pytest.approx(1.0)

    def test_crossing_segments_distance_is_zero(self):
        result = segment_to_segment_distance(vec2(0, 0), vec2(2, 2), vec2(0, 2), vec2(2, 0))

        assert result.distance == pytest.approx(0.0, abs=1e-9)
        assert result.t_a == pytest.approx(0.5)
        assert result.t_b == pytest.approx(0.5)

    def test_skew_segments_endpoint_clamp(self):
        # Second segment lies beyond the end of the first
        result = segment_to_segment_distance(vec2(0, 0), vec2(1, 0), vec2(3, -1), vec2(3, 1))

        assert result.distance == pytest.approx(2.0)
        np.testing.assert_array_almost_equal(result.point_a, [1.0, 0.0])
        np.testing.assert_array_almost_equal(result.point_b, [3.0, 0.0])


class TestCrossingQuality:
    """Tests for |sin| of the crossing angle"""

    def test_perpendicular_is_one(self):
        assert crossing_quality(vec2(1, 0), vec2(0, 5)) == pytest.approx(1.0)

    def test_parallel_is_zero(self):
        assert crossing_quality(vec2(2, 0), vec2(-7, 0)) == pytest.approx(0.0)

    def test_angle_recovered(self):
        theta = np.radians(20)
        angle = crossing_angle(vec2(1, 0), vec2(np.cos(theta), np.sin(theta)))
        assert angle == pytest.approx(theta)

    def test_obtuse_reported_as_acute(self):
        theta = np.radians(160)
        angle = crossing_angle(vec2(1, 0), vec2(np.cos(theta), np.sin(theta)))
        assert angle == pytest.approx(np.radians(20))
