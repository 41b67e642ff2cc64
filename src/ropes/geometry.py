"""
Strand Geometry Module
======================
2D vector algebra and line-segment routines used by the rope solver and by
crossing detection.

All vectors are numpy float64 arrays of shape (2,). Every helper is a pure
function and tolerates zero-length segments without producing NaN.

Coordinate convention (top-down view of the strands):

    +-----> x
    |
    |
    v  y
"""

import numpy as np
from dataclasses import dataclass
from typing import Optional


EPSILON = 1e-10          # Parallel / degenerate threshold for cross products
LENGTH_EPSILON = 1e-8    # Squared-length threshold for point-like segments


def vec2(x: float = 0.0, y: float = 0.0) -> np.ndarray:
    """Create a 2D vector"""
    return np.array([x, y], dtype=np.float64)


def as_vec2(value) -> np.ndarray:
    """Coerce a tuple / list / array into a fresh float64 2-vector"""
    arr = np.asarray(value, dtype=np.float64)
    return np.array([arr[0], arr[1]], dtype=np.float64)


def add(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    return a + b


def sub(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    return a - b


def scale(v: np.ndarray, s: float) -> np.ndarray:
    return v * s


def dot(a: np.ndarray, b: np.ndarray) -> float:
    return float(a[0] * b[0] + a[1] * b[1])


def cross(a: np.ndarray, b: np.ndarray) -> float:
    """2D cross product (z component of the 3D cross product)"""
    return float(a[0] * b[1] - a[1] * b[0])


def length(v: np.ndarray) -> float:
    return float(np.linalg.norm(v))


def distance(a: np.ndarray, b: np.ndarray) -> float:
    return float(np.linalg.norm(b - a))


def normalize(v: np.ndarray, eps: float = 1e-12) -> np.ndarray:
    """Unit vector along v, or the zero vector if v is (nearly) zero"""
    norm = np.linalg.norm(v)
    if norm < eps:
        return np.zeros(2)
    return v / norm


def lerp(a: np.ndarray, b: np.ndarray, t: float) -> np.ndarray:
    return a + (b - a) * t


@dataclass
class SegmentDistance:
    """Closest approach between two segments"""
    distance: float
    point_a: np.ndarray    # Closest point on the first segment
    point_b: np.ndarray    # Closest point on the second segment
    t_a: float             # Parameter along the first segment [0, 1]
    t_b: float             # Parameter along the second segment [0, 1]


@dataclass
class SegmentIntersection:
    """Result of a segment-segment intersection test"""
    intersects: bool
    point: Optional[np.ndarray] = None
    t: float = 0.0         # Parameter along the first segment
    u: float = 0.0         # Parameter along the second segment


def closest_point_on_segment(a: np.ndarray, b: np.ndarray, p: np.ndarray) -> np.ndarray:
    """Closest point on segment AB to point P"""
    ab = b - a
    ab_len_sq = dot(ab, ab)

    if ab_len_sq < LENGTH_EPSILON:
        return a.copy()

    t = np.clip(dot(p - a, ab) / ab_len_sq, 0.0, 1.0)
    return a + ab * t


def point_to_segment_distance(a: np.ndarray, b: np.ndarray, p: np.ndarray) -> float:
    return distance(p, closest_point_on_segment(a, b, p))


def segment_to_segment_distance(p1: np.ndarray, p2: np.ndarray,
                                q1: np.ndarray, q2: np.ndarray) -> SegmentDistance:
    """
    Minimum distance between segments P1P2 and Q1Q2.

    Clamped closest-point-of-approach: solve the unconstrained problem,
    clamp s to [0, 1], recompute t and re-clamp s if t left its range.
    Point-like segments fall back to point-segment distance.
    """
    d1 = p2 - p1
    d2 = q2 - q1
    r = p1 - q1

    a = dot(d1, d1)
    e = dot(d2, d2)
    f = dot(d2, r)

    if a < LENGTH_EPSILON and e < LENGTH_EPSILON:
        s, t = 0.0, 0.0
    elif a < LENGTH_EPSILON:
        s = 0.0
        t = float(np.clip(f / e, 0.0, 1.0))
    else:
        c = dot(d1, r)
        if e < LENGTH_EPSILON:
            t = 0.0
            s = float(np.clip(-c / a, 0.0, 1.0))
        else:
            b = dot(d1, d2)
            denom = a * e - b * b

            if abs(denom) > EPSILON:
                s = float(np.clip((b * f - c * e) / denom, 0.0, 1.0))
            else:
                # Parallel: pick the start of the first segment
                s = 0.0

            t = (b * s + f) / e

            if t < 0.0:
                t = 0.0
                s = float(np.clip(-c / a, 0.0, 1.0))
            elif t > 1.0:
                t = 1.0
                s = float(np.clip((b - c) / a, 0.0, 1.0))

    closest_p = p1 + d1 * s
    closest_q = q1 + d2 * t

    return SegmentDistance(
        distance=distance(closest_p, closest_q),
        point_a=closest_p,
        point_b=closest_q,
        t_a=float(s),
        t_b=float(t)
    )


def segment_intersection(p1: np.ndarray, p2: np.ndarray,
                         q1: np.ndarray, q2: np.ndarray) -> SegmentIntersection:
    """
    Test whether segments P1P2 and Q1Q2 cross.

    Uses the 2D cross-product formulation:

        P1 + t*r = Q1 + u*s,   r = P2 - P1,  s = Q2 - Q1
        t = (Q1 - P1) x s / (r x s)
        u = (Q1 - P1) x r / (r x s)

    Parallel and collinear segments (|r x s| < 1e-10) never intersect,
    which also covers zero-length segments.
    """
    r = p2 - p1
    s = q2 - q1
    qp = q1 - p1

    rxs = cross(r, s)
    if abs(rxs) < EPSILON:
        return SegmentIntersection(intersects=False)

    t = cross(qp, s) / rxs
    u = cross(qp, r) / rxs

    if 0.0 <= t <= 1.0 and 0.0 <= u <= 1.0:
        return SegmentIntersection(
            intersects=True,
            point=p1 + r * t,
            t=t,
            u=u
        )

    return SegmentIntersection(intersects=False)


def crossing_quality(dir_a: np.ndarray, dir_b: np.ndarray) -> float:
    """
    |sin| of the angle between two directions.

    1.0 = perpendicular, 0.0 = parallel. Inputs need not be normalized.
    """
    return abs(cross(normalize(dir_a), normalize(dir_b)))


def crossing_angle(dir_a: np.ndarray, dir_b: np.ndarray) -> float:
    """Acute crossing angle (radians, 0 to pi/2) between two directions"""
    return float(np.arcsin(min(1.0, crossing_quality(dir_a, dir_b))))
