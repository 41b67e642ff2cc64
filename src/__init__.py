"""
Tangled Strands
===============
Rope dynamics with Capstan-friction tangles and B3 braid tracking.

A position-based simulation of three leashes held in one hand, used to
detect when and how the strands wrap around each other.
"""

__version__ = "0.1.0"
__author__ = "Tangled Strands Development Team"
