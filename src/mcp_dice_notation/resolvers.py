from __future__ import annotations

import random
import secrets
from typing import Protocol

from .models import Die, FaceRange, mean_face


class RollResolver(Protocol):
    """Turns a die into one number.

    ``exhaustive`` resolvers return expectations instead of outcomes; the
    modifier chain switches to probability arithmetic when it sees one.
    """

    exhaustive: bool

    def draw(self, die: Die) -> float: ...


class RandomResolver:
    exhaustive = False

    def __init__(self, rng: random.Random | None = None) -> None:
        self.rng = rng if rng is not None else secrets.SystemRandom()

    def _face(self, die: Die) -> int:
        if isinstance(die, FaceRange):
            return self.rng.randint(die.low, die.high)
        return self.rng.choice(die.values)

    def draw(self, die: Die) -> float:
        return float(sum(self._face(die) for _ in range(die.pips)))


class MaximumResolver:
    exhaustive = False

    def draw(self, die: Die) -> float:
        return float(die.high * die.pips)


class MinimumResolver:
    exhaustive = False

    def draw(self, die: Die) -> float:
        return float(die.low * die.pips)


class MedianResolver:
    exhaustive = False

    def draw(self, die: Die) -> float:
        return (die.low + die.high) / 2 * die.pips


class AverageResolver:
    exhaustive = True

    def draw(self, die: Die) -> float:
        return mean_face(die) * die.pips
