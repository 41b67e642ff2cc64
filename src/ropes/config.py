"""
World Configuration
===================
Every tunable of the rope world, with its default.

Configuration can be built in code or loaded from a YAML document:

    world:
      solver_iterations: 8
      allow_free_crossing: true
      bounds: {min_x: -200, max_x: 200, min_y: -400, max_y: 200}
    tangle:
      friction_coefficient: 0.3
      lock_threshold: 50.0

Missing keys keep their defaults; unknown keys are rejected.
"""

import numpy as np
import yaml
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Dict, Optional, Union


@dataclass
class Bounds:
    """Axis-aligned box the free particles are clamped into"""
    min_x: float
    max_x: float
    min_y: float
    max_y: float

    def clamp(self, point: np.ndarray) -> np.ndarray:
        return np.array([
            np.clip(point[0], self.min_x, self.max_x),
            np.clip(point[1], self.min_y, self.max_y),
        ])


@dataclass
class TangleParams:
    """Physical parameters shared by every tangle constraint"""
    friction_coefficient: float = 0.3   # Capstan mu (rope on rope)
    min_distance: float = 2.0           # Rope thickness floor between tangled particles
    max_distance: float = 8.0           # Upper clamp of the rest distance
    lock_threshold: float = 50.0        # Tension above which a tangle locks for good
    min_stiffness: float = 0.7          # Stiffness of a barely-formed tangle
    max_stiffness: float = 0.95         # Stiffness of a strongly-formed tangle
    slack_frames_to_break: int = 90     # ~1.5 s at 60 Hz


@dataclass
class WorldConfig:
    """
    Configuration for the rope world.

    allow_free_crossing disables rope-rope collision entirely: strands pass
    through each other while crossing detection (and tangling) still runs.
    """
    gravity: np.ndarray = field(default_factory=lambda: np.array([0.0, 50.0]))
    solver_iterations: int = 8
    bounds: Optional[Bounds] = None

    # Tangle formation
    tangle_formation_threshold: float = 4.0    # (tensionA + tensionB) * |sin| must exceed this
    tangle_tension_threshold: float = 25.0     # Score at which a new tangle gets max stiffness
    tangle_cooldown_frames: int = 120
    max_tangles_per_rope_pair: int = 2
    max_total_tangles: int = 6

    # Rope-rope contact
    rope_collision_radius: float = 1.5
    allow_free_crossing: bool = True

    # Length hardening
    strict_length_iterations: int = 3
    max_length_factor: float = 1.0

    tangle: TangleParams = field(default_factory=TangleParams)

    def __post_init__(self):
        self.gravity = np.asarray(self.gravity, dtype=np.float64)
        if self.solver_iterations < 1:
            raise ValueError("solver_iterations must be at least 1")
        if isinstance(self.bounds, dict):
            self.bounds = Bounds(**self.bounds)
        if isinstance(self.tangle, dict):
            self.tangle = TangleParams(**self.tangle)

    @classmethod
    def from_dict(cls, data: Dict) -> "WorldConfig":
        """Build from a parsed document with optional 'world' and 'tangle' sections"""
        data = data or {}
        world = dict(data.get("world", {}))
        known = {f.name for f in fields(cls)}
        unknown = set(world) - known
        if unknown:
            raise ValueError(f"Unknown world config keys: {sorted(unknown)}")
        if "tangle" in data:
            world["tangle"] = TangleParams(**data["tangle"])
        return cls(**world)


def load_config(path: Optional[Union[str, Path]] = None) -> WorldConfig:
    """Load a WorldConfig from YAML, or the defaults if no path is given"""
    if path is None:
        return WorldConfig()
    with open(path, 'r') as f:
        return WorldConfig.from_dict(yaml.safe_load(f))
