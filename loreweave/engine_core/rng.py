"""
RNG - Seedable randomness consumed only by rule modules.

Contract:
    next()            float in [0, 1)
    int(min, max)     integer, both bounds inclusive
    roll(notation)    result of a dice expression such as "2d6+1"

Given the same seed and the same call sequence, results are identical,
which makes hook resolution replayable.
"""

from __future__ import annotations
from dataclasses import dataclass
from random import Random
from typing import Iterable, Protocol, runtime_checkable
import re

from ..errors import DiceNotationError


@runtime_checkable
class RNG(Protocol):
    """Randomness capability handed to RuleModule.resolve()."""

    def next(self) -> float: ...

    def int(self, min: int, max: int) -> int: ...

    def roll(self, notation: str) -> int: ...


# One signed term: "2d6", "d20", "+3", "-1d4"
_TERM_RE = re.compile(r"\s*([+-]?)\s*(?:(\d*)[dD](\d+)|(\d+))\s*")

MAX_DICE = 1000


@dataclass(frozen=True)
class DiceTerm:
    """A parsed term of a dice expression."""
    sign: int
    count: int
    sides: int  # 0 for a flat modifier; count holds the modifier

    @property
    def is_modifier(self) -> bool:
        return self.sides == 0


def parse_notation(notation: str) -> list[DiceTerm]:
    """
    Parse dice notation into signed terms.

    Accepts sums of NdM and integer terms: "d20", "2d6+1", "1d8+1d4-2".
    """
    if not notation or not notation.strip():
        raise DiceNotationError("Empty dice notation")

    terms: list[DiceTerm] = []
    pos = 0
    text = notation.strip()
    while pos < len(text):
        match = _TERM_RE.match(text, pos)
        if not match or match.end() == pos:
            raise DiceNotationError(f"Invalid dice notation: {notation!r}")
        sign_str, count_str, sides_str, flat_str = match.groups()
        if terms and not sign_str:
            raise DiceNotationError(f"Missing operator in dice notation: {notation!r}")
        sign = -1 if sign_str == "-" else 1

        if flat_str is not None:
            terms.append(DiceTerm(sign=sign, count=int(flat_str), sides=0))
        else:
            count = int(count_str) if count_str else 1
            sides = int(sides_str)
            if count < 1 or sides < 1:
                raise DiceNotationError(f"Dice count and sides must be positive: {notation!r}")
            if count > MAX_DICE:
                raise DiceNotationError(f"Too many dice ({count}) in {notation!r}")
            terms.append(DiceTerm(sign=sign, count=count, sides=sides))
        pos = match.end()

    return terms


class _RollingMixin:
    """Implements roll() in terms of int()."""

    def roll(self, notation: str) -> int:
        total = 0
        for term in parse_notation(notation):
            if term.is_modifier:
                total += term.sign * term.count
                continue
            for _ in range(term.count):
                total += term.sign * self.int(1, term.sides)
        return total


class SeededRNG(_RollingMixin):
    """Deterministic RNG built on random.Random."""

    def __init__(self, seed: int | None = None):
        self.seed = seed
        self._random = Random(seed)

    def next(self) -> float:
        return self._random.random()

    def int(self, min: int, max: int) -> int:
        if min > max:
            raise ValueError(f"Empty range: int({min}, {max})")
        return self._random.randint(min, max)


class ScriptedRNG(_RollingMixin):
    """
    RNG that replays a fixed sequence of integers.

    int() returns the next scripted value clamped into [min, max];
    next() maps it into [0, 1). Useful for tests and for replaying a
    recorded session.
    """

    def __init__(self, values: Iterable[int]):
        self._values = list(values)
        self._index = 0
        self.calls: list[tuple[int, int]] = []

    def _take(self) -> int:
        if self._index >= len(self._values):
            raise IndexError("ScriptedRNG exhausted")
        value = self._values[self._index]
        self._index += 1
        return value

    def next(self) -> float:
        value = self._take()
        return (value % 1000) / 1000.0

    def int(self, min: int, max: int) -> int:
        self.calls.append((min, max))
        return sorted((min, self._take(), max))[1]

    @property
    def remaining(self) -> int:
        return len(self._values) - self._index
