"""
Braid Word Module
=================
Ordered sequence of crossings with the two rewrites this project relies on:

- Free reduction: cancel adjacent sigma_i * sigma_i^-1 pairs
- Yang-Baxter:    sigma_1 sigma_2 sigma_1  <->  sigma_2 sigma_1 sigma_2
                  (applied only to runs of a single sign)

reduce() alternates the two for at most 100 rounds. That bound guarantees
termination; it does not guarantee a minimal or canonical word (that would
need the Garside normal form).
"""

from typing import Iterable, Iterator, List, Optional

from .crossing import Crossing


MAX_REDUCE_ITERATIONS = 100


class BraidWord:
    """
    A word in B3.

    length, writhe and complexity are derived from the crossing list on
    every access, so they cannot drift out of sync with it.
    """

    def __init__(self, crossings: Optional[Iterable[Crossing]] = None):
        self.crossings: List[Crossing] = list(crossings) if crossings is not None else []

    @classmethod
    def from_ints(cls, letters: Iterable[int]) -> "BraidWord":
        """Build from signed generator indices, e.g. [1, -2, 1] = σ1 σ2⁻¹ σ1"""
        return cls(Crossing(abs(v), 1 if v > 0 else -1) for v in letters if v != 0)

    def to_ints(self) -> List[int]:
        return [c.generator * c.sign for c in self.crossings]

    def append(self, crossing: Crossing) -> "BraidWord":
        self.crossings.append(crossing)
        return self

    def __len__(self) -> int:
        return len(self.crossings)

    def __iter__(self) -> Iterator[Crossing]:
        return iter(self.crossings)

    def __eq__(self, other) -> bool:
        if not isinstance(other, BraidWord):
            return NotImplemented
        return self.to_ints() == other.to_ints()

    @property
    def length(self) -> int:
        return len(self.crossings)

    @property
    def is_trivial(self) -> bool:
        """Empty word (identity). Only meaningful after reduction."""
        return not self.crossings

    @property
    def writhe(self) -> int:
        """Signed sum of crossings"""
        return sum(c.sign for c in self.crossings)

    @property
    def complexity(self) -> int:
        """
        |writhe| + floor(length / 2)

        Length still counts when the writhe is low: many crossings that
        mostly cancel in sign are still a mess.
        """
        return abs(self.writhe) + self.length // 2

    def clone(self) -> "BraidWord":
        return BraidWord(self.crossings)

    def inverse(self) -> "BraidWord":
        """Reverse the word and invert every crossing"""
        return BraidWord(c.inverse() for c in reversed(self.crossings))

    def simplify(self) -> "BraidWord":
        """Free reduction into a new word (stack-based, single pass)"""
        result: List[Crossing] = []
        for crossing in self.crossings:
            if result and result[-1].cancels(crossing):
                result.pop()
            else:
                result.append(crossing)
        return BraidWord(result)

    def apply_yang_baxter(self) -> bool:
        """
        Rewrite the first same-sign sigma_i sigma_j sigma_i run in place.

        Returns True if a rewrite happened, False (word unchanged) otherwise.
        """
        for i in range(len(self.crossings) - 2):
            a, b, c = self.crossings[i], self.crossings[i + 1], self.crossings[i + 2]

            if not (a.sign == b.sign == c.sign):
                continue
            if a.generator == c.generator and a.generator != b.generator:
                outer, inner = b.generator, a.generator
                self.crossings[i] = Crossing(outer, a.sign, a.timestamp)
                self.crossings[i + 1] = Crossing(inner, b.sign, b.timestamp)
                self.crossings[i + 2] = Crossing(outer, c.sign, c.timestamp)
                return True
        return False

    def reduce(self, max_iterations: int = MAX_REDUCE_ITERATIONS) -> "BraidWord":
        """
        Free reduction interleaved with Yang-Baxter rewrites, into a new word.

        Stops when a round leaves the length unchanged or after
        max_iterations rounds. Not a canonical form.
        """
        current = self.clone()
        for _ in range(max_iterations):
            before = current.length
            current = current.simplify()
            current.apply_yang_baxter()
            if current.length == before:
                break
        return current

    def __str__(self) -> str:
        if not self.crossings:
            return "ε"
        return "·".join(str(c) for c in self.crossings)

    def __repr__(self) -> str:
        return f"BraidWord({self})"

    def to_display_string(self, max_length: int = 8) -> str:
        """The last max_length letters, prefixed with ... when truncated"""
        if not self.crossings:
            return "ε"
        if len(self.crossings) <= max_length:
            return str(self)
        return "..." + "·".join(str(c) for c in self.crossings[-max_length:])
