"""
Ropes Module
============
Position-based dynamics for flexible, inextensible strands that can cross
and tangle.

Submodules:
- geometry: 2D vector algebra, segment distance and intersection
- particle: Verlet point masses with pinning
- constraints: distance and bending projections
- tangle: Capstan-friction interlock between two ropes
- rope: particle chains with length hardening
- world: the per-tick solver, tangle lifecycle and crossing detection
- config: world configuration and YAML loading
"""

from .config import (
    Bounds,
    TangleParams,
    WorldConfig,
    load_config
)

from .particle import Particle

from .constraints import (
    DistanceConstraint,
    BendingConstraint
)

from .tangle import (
    TangleConstraint,
    TangleState
)

from .rope import (
    Rope,
    RopeOptions,
    RopeSegment
)

from .events import (
    CrossingEvent,
    EventHub,
    SegmentPairKey,
    SeparationEvent,
    TangleBrokenEvent,
    TangleFormedEvent
)

from .world import (
    PhysicsWorld,
    IdAllocator,
    SKIP_SEGMENTS_FROM_START,
    MIN_CROSSING_ANGLE,
    MIN_LOCAL_TENSION
)

__all__ = [
    # Config
    'Bounds',
    'TangleParams',
    'WorldConfig',
    'load_config',
    # Bodies and constraints
    'Particle',
    'DistanceConstraint',
    'BendingConstraint',
    'TangleConstraint',
    'TangleState',
    # Ropes
    'Rope',
    'RopeOptions',
    'RopeSegment',
    # Events
    'CrossingEvent',
    'EventHub',
    'SegmentPairKey',
    'SeparationEvent',
    'TangleBrokenEvent',
    'TangleFormedEvent',
    # World
    'PhysicsWorld',
    'IdAllocator',
    'SKIP_SEGMENTS_FROM_START',
    'MIN_CROSSING_ANGLE',
    'MIN_LOCAL_TENSION',
]
