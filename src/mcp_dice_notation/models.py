from __future__ import annotations

import itertools
import math
from dataclasses import dataclass, field
from typing import Callable, Literal, TypeAlias


Operator: TypeAlias = Literal["+", "-", "*", "/", "%"]
ComparisonOperator: TypeAlias = Literal["<", "<=", ">", ">=", "=", "=!"]
SelectionKind: TypeAlias = Literal["keep_highest", "keep_lowest", "drop_highest", "drop_lowest"]


def format_number(value: float) -> str:
    if isinstance(value, float):
        if value.is_integer():
            return str(int(value))
        return str(round(value, 4))
    return str(value)


def format_fudge(value: float) -> str:
    if value < 0:
        return "-"
    if value > 0:
        return "+"
    return "0"


@dataclass(frozen=True)
class Result:
    value: float
    expression: str


@dataclass(frozen=True)
class FaceRange:
    """A die whose faces are every integer from ``low`` to ``high`` inclusive."""

    low: int
    high: int
    pips: int = 1
    formatter: Callable[[float], str] = field(default=format_number, compare=False, repr=False)

    @property
    def sides(self) -> int:
        return self.high - self.low + 1

    def faces(self) -> tuple[int, ...]:
        return tuple(range(self.low, self.high + 1))

    def describe(self) -> str:
        if self.formatter is format_fudge:
            return "F"
        if self.low == 1:
            return str(self.high)
        return f"[{self.low},{self.high}]"


@dataclass(frozen=True)
class FaceSet:
    """A die with an explicit list of face values; duplicates weight a face."""

    values: tuple[int, ...]
    pips: int = 1
    formatter: Callable[[float], str] = field(default=format_number, compare=False, repr=False)

    @property
    def low(self) -> int:
        return min(self.values)

    @property
    def high(self) -> int:
        return max(self.values)

    @property
    def sides(self) -> int:
        return len(self.values)

    def faces(self) -> tuple[int, ...]:
        return self.values

    def describe(self) -> str:
        return "[" + "|".join(str(v) for v in self.values) + "]"


Die: TypeAlias = FaceRange | FaceSet


def fudge_die() -> FaceRange:
    return FaceRange(-1, 1, formatter=format_fudge)


def lowest_total(die: Die) -> int:
    return die.low * die.pips


def highest_total(die: Die) -> int:
    return die.high * die.pips


def outcomes(die: Die) -> list[int]:
    """Every equally likely unit total, one entry per combination of pips."""
    if die.pips == 1:
        return list(die.faces())
    return [sum(combo) for combo in itertools.product(die.faces(), repeat=die.pips)]


def mean_face(die: Die) -> float:
    faces = die.faces()
    return math.fsum(faces) / len(faces)


@dataclass(frozen=True)
class Comparison:
    operator: ComparisonOperator
    operand: int


@dataclass(frozen=True)
class Explode:
    limit: int = 1
    combined: bool = False


@dataclass(frozen=True)
class ReRoll:
    nested: tuple[Modifier, ...] = ()
    limit: int = 100
    trigger: Comparison | None = None


@dataclass(frozen=True)
class Unique:
    nested: tuple[Modifier, ...] = ()
    limit: int = 100


@dataclass(frozen=True)
class Condition:
    comparisons: tuple[Comparison, ...]


Modifier: TypeAlias = Explode | ReRoll | Unique | Condition


@dataclass(frozen=True)
class Selection:
    kind: SelectionKind
    count: int = 1


@dataclass(frozen=True)
class ConstantTerm:
    value: int


@dataclass(frozen=True)
class DieTerm:
    count: int
    die: Die
    modifiers: tuple[Modifier, ...] = ()
    selection: Selection | None = None


@dataclass(frozen=True)
class BinaryTerm:
    left: ParsedTerm
    operator: Operator
    right: ParsedTerm


@dataclass(frozen=True)
class UnaryTerm:
    operator: Literal["+", "-"]
    operand: ParsedTerm


@dataclass(frozen=True)
class GroupTerm:
    inner: ParsedTerm


ParsedTerm: TypeAlias = ConstantTerm | DieTerm | BinaryTerm | UnaryTerm | GroupTerm
