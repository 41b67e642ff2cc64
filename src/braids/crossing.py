"""
Crossing Generator
==================
A single letter of a braid word over B3.

    sigma_1 : strand in slot 1 crosses over the strand in slot 0
    sigma_2 : strand in slot 2 crosses over the strand in slot 1

A negative sign is the inverse generator (crossing under).
"""

from dataclasses import dataclass
from typing import Sequence


_SUBSCRIPTS = {1: "₁", 2: "₂"}


@dataclass(frozen=True)
class Crossing:
    """Immutable crossing token"""
    generator: int      # 1 or 2
    sign: int           # +1 over, -1 under
    timestamp: float = 0.0

    def __post_init__(self):
        if self.generator not in (1, 2):
            raise ValueError(f"Generator must be 1 or 2, got {self.generator}")
        if self.sign not in (1, -1):
            raise ValueError(f"Sign must be +1 or -1, got {self.sign}")

    def inverse(self) -> "Crossing":
        return Crossing(self.generator, -self.sign, self.timestamp)

    def cancels(self, other: "Crossing") -> bool:
        """Same generator, opposite sign"""
        return self.generator == other.generator and self.sign == -other.sign

    def same_letter(self, other: "Crossing") -> bool:
        """Equal as group elements (timestamps ignored)"""
        return self.generator == other.generator and self.sign == other.sign

    def __str__(self) -> str:
        base = f"σ{_SUBSCRIPTS[self.generator]}"
        return base if self.sign > 0 else f"{base}⁻¹"

    def short_str(self) -> str:
        """ASCII form: sigma1, sigma2^-1 written as σ1, σ2^-1"""
        base = f"σ{self.generator}"
        return base if self.sign > 0 else f"{base}^-1"

    def describe(self, strand_names: Sequence[str] = ("A", "B", "C")) -> str:
        lower = strand_names[self.generator - 1]
        upper = strand_names[self.generator]
        direction = "OVER" if self.sign > 0 else "UNDER"
        return f"{upper} crosses {direction} {lower}"
