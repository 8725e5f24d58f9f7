from __future__ import annotations

import math

from .models import (
    BinaryTerm,
    ConstantTerm,
    DieTerm,
    GroupTerm,
    ParsedTerm,
    Result,
    UnaryTerm,
)
from .modifiers import roll_unit
from .resolvers import RollResolver


def _divide(left: float, right: float) -> float:
    if right == 0:
        if left == 0 or math.isnan(left):
            return math.nan
        return math.copysign(math.inf, left) * math.copysign(1.0, right)
    return left / right


def _modulo(left: float, right: float) -> float:
    if right == 0 or math.isinf(left) or math.isnan(left) or math.isnan(right):
        return math.nan
    return math.fmod(left, right)


_ARITHMETIC = {
    "+": lambda a, b: a + b,
    "-": lambda a, b: a - b,
    "*": lambda a, b: a * b,
    "/": _divide,
    "%": _modulo,
}


def _roll_term(term: DieTerm, resolver: RollResolver) -> Result:
    units: list[Result] = []
    prior: tuple[float, ...] = ()
    for _ in range(term.count):
        unit, rolled = roll_unit(term.die, term.modifiers, resolver, prior)
        units.append(unit)
        prior = prior + (rolled,)

    selection = term.selection
    if selection is None:
        total = math.fsum(u.value for u in units)
        return Result(total, "[" + ", ".join(u.expression for u in units) + "]")

    highest_first = selection.kind in ("keep_highest", "drop_highest")
    ordered = sorted(units, key=lambda u: u.value, reverse=highest_first)
    count = max(selection.count, 0)

    if selection.kind.startswith("keep"):
        kept, dropped = ordered[:count], ordered[count:]
        rendered = [u.expression for u in kept] + [f"{u.expression}d" for u in dropped]
    else:
        dropped, kept = ordered[:count], ordered[count:]
        rendered = [f"{u.expression}d" for u in dropped] + [u.expression for u in kept]

    total = math.fsum(u.value for u in kept)
    return Result(total, "[" + ", ".join(rendered) + "]")


def evaluate_tree(term: ParsedTerm, resolver: RollResolver) -> Result:
    """Evaluate a parsed tree bottom-up, building the trace alongside the value."""

    if isinstance(term, ConstantTerm):
        return Result(float(term.value), str(term.value))

    if isinstance(term, DieTerm):
        return _roll_term(term, resolver)

    if isinstance(term, BinaryTerm):
        left = evaluate_tree(term.left, resolver)
        right = evaluate_tree(term.right, resolver)
        value = _ARITHMETIC[term.operator](left.value, right.value)
        return Result(value, f"{left.expression} {term.operator} {right.expression}")

    if isinstance(term, UnaryTerm):
        operand = evaluate_tree(term.operand, resolver)
        value = -operand.value if term.operator == "-" else operand.value
        return Result(value, f"{term.operator}{operand.expression}")

    inner = evaluate_tree(term.inner, resolver)
    return Result(inner.value, f"({inner.expression})")
