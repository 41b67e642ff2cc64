"""
Braid Tracker
=============
Maps rope-pair crossing events onto B3 generators and keeps the running
braid word.

Each rope is registered into a generator slot (0, 1, 2):

    slots 0-1  ->  sigma_1
    slots 1-2  ->  sigma_2
    slots 0-2  ->  sigma_1   (approximation, see below)

A crossing between the two outer strands (slots 0 and 2) is not a single
generator of B3. It is recorded as sigma_1 and logged at debug level; this
is a known approximation, not a topologically exact mapping. The live word
only grows through record_crossing(); reductions always work on copies.
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from .crossing import Crossing
from .word import BraidWord


logger = logging.getLogger(__name__)


GENERATOR_FOR_SLOTS = {
    (0, 1): 1,
    (1, 2): 2,
    (0, 2): 1,
}


@dataclass(frozen=True)
class BraidEvent:
    """One recorded crossing"""
    time: float             # Seconds since tracker start / reset
    crossing: Crossing
    description: str
    rope_a: int
    rope_b: int


class BraidTracker:
    """Running braid word for up to three strands"""

    def __init__(self,
                 strand_names: Sequence[str] = ("A", "B", "C"),
                 debounce_window: float = 0.2,
                 clock: Callable[[], float] = time.monotonic):
        self.strand_names = tuple(strand_names)
        self.debounce_window = debounce_window
        self._clock = clock

        self.braid_word = BraidWord()
        self.event_log: List[BraidEvent] = []
        self.rope_slots: Dict[int, int] = {}

        self.start_time = clock()
        self._last_crossing: Optional[Tuple[float, frozenset]] = None

    def register_rope(self, rope_id: int, generator_slot: int):
        if generator_slot not in (0, 1, 2):
            raise ValueError(f"Generator slot must be 0, 1 or 2, got {generator_slot}")
        self.rope_slots[rope_id] = generator_slot

    def elapsed_time(self, now: Optional[float] = None) -> float:
        if now is None:
            now = self._clock()
        return now - self.start_time

    def generator_for(self, rope_id_a: int, rope_id_b: int) -> Optional[int]:
        """Generator index for a rope pair, or None if the pair cannot be mapped"""
        slot_a = self.rope_slots.get(rope_id_a)
        slot_b = self.rope_slots.get(rope_id_b)
        if slot_a is None or slot_b is None:
            logger.warning("Unknown rope ids in crossing: %s, %s", rope_id_a, rope_id_b)
            return None

        slots = tuple(sorted((slot_a, slot_b)))
        generator = GENERATOR_FOR_SLOTS.get(slots)
        if generator is None:
            logger.warning("Invalid strand pair for a crossing: slots %s", slots)
            return None
        if slots == (0, 2):
            logger.debug("Outer strands crossed (ropes %s, %s), recorded as σ1", rope_id_a, rope_id_b)
        return generator

    def record_crossing(self, rope_id_a: int, rope_id_b: int, sign: int,
                        now: Optional[float] = None) -> Optional[BraidEvent]:
        """
        Append the crossing of two ropes to the live word.

        Returns the logged event, or None when the crossing is debounced
        (same rope pair within debounce_window) or cannot be mapped.
        """
        if now is None:
            now = self._clock()
        pair = frozenset((rope_id_a, rope_id_b))

        if self._last_crossing is not None:
            last_time, last_pair = self._last_crossing
            if now - last_time < self.debounce_window and last_pair == pair:
                return None

        generator = self.generator_for(rope_id_a, rope_id_b)
        if generator is None:
            return None

        timestamp = self.elapsed_time(now)
        crossing = Crossing(generator, 1 if sign > 0 else -1, timestamp)
        self.braid_word.append(crossing)
        self._last_crossing = (now, pair)

        event = BraidEvent(
            time=timestamp,
            crossing=crossing,
            description=crossing.describe(self.strand_names),
            rope_a=rope_id_a,
            rope_b=rope_id_b
        )
        self.event_log.append(event)
        return event

    def get_stats(self) -> Dict:
        reduced = self.braid_word.reduce()
        return {
            "total_crossings": self.braid_word.length,
            "simplified_length": reduced.length,
            "writhe": self.braid_word.writhe,
            "complexity": reduced.complexity,
            "is_trivial": reduced.is_trivial,
            "braid_word": self.braid_word.to_display_string(12),
            "simplified_word": reduced.to_display_string(12),
        }

    def get_recent_events(self, count: int = 10) -> List[BraidEvent]:
        """Newest first"""
        return list(reversed(self.event_log[-count:]))

    def is_tangled(self) -> bool:
        return not self.braid_word.reduce().is_trivial

    def get_untangle_sequence(self) -> BraidWord:
        """Crossings that undo the reduced word (its inverse)"""
        return self.braid_word.reduce().inverse()

    def reset(self):
        """Clear the word and the log; rope registrations are kept"""
        self.braid_word = BraidWord()
        self.event_log = []
        self.start_time = self._clock()
        self._last_crossing = None
