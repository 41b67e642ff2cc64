"""
Braids Module
=============
B3 braid-word tracking for three strands.

Submodules:
- crossing: the sigma_1 / sigma_2 generator token
- word: braid words, free reduction and the Yang-Baxter rewrite
- tracker: rope pair -> generator mapping and the running word
- detector: de-duplicates physics crossings before they reach the tracker
"""

from .crossing import Crossing

from .word import (
    BraidWord,
    MAX_REDUCE_ITERATIONS
)

from .tracker import (
    BraidTracker,
    BraidEvent,
    GENERATOR_FOR_SLOTS
)

from .detector import CrossingDetector

__all__ = [
    'Crossing',
    'BraidWord',
    'MAX_REDUCE_ITERATIONS',
    'BraidTracker',
    'BraidEvent',
    'GENERATOR_FOR_SLOTS',
    'CrossingDetector',
]
