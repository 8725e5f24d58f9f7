from __future__ import annotations

import operator
from typing import Callable, Sequence

from .errors import ModifierError
from .models import (
    Comparison,
    Condition,
    Die,
    Explode,
    Modifier,
    ReRoll,
    Result,
    Unique,
    format_number,
    highest_total,
    lowest_total,
    outcomes,
)
from .resolvers import RollResolver


ARROW = " <- "

_COMPARATORS: dict[str, Callable[[float, float], bool]] = {
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
    "=": operator.eq,
    "=!": operator.ne,
}


def compare(comparison: Comparison, value: float) -> bool:
    fn = _COMPARATORS.get(comparison.operator)
    if fn is None:
        raise ModifierError(
            f"Unknown comparison operator '{comparison.operator}'. Use <, <=, >, >=, = or =!.",
            code="UNKNOWN_COMPARISON",
        )
    return fn(value, comparison.operand)


def _holds(condition: Condition, value: float) -> bool:
    return all(compare(c, value) for c in condition.comparisons)


def _explode(modifier: Explode, total: float, die: Die, resolver: RollResolver) -> Result | None:
    exhaustive = resolver.exhaustive
    peak = highest_total(die)

    parts = [total]
    value = total
    previous = total
    count = 0
    while count < modifier.limit and (exhaustive or previous == peak):
        count += 1
        draw = resolver.draw(die)
        # Only one outcome in sides**pips reaches each further explosion.
        weight = (1 / die.sides**die.pips) ** count if exhaustive else 1.0
        value += draw * weight
        parts.append(draw * weight)
        previous = draw

    if count == 0:
        return None
    if modifier.combined:
        return Result(value, format_number(value) + "!" * count)

    fmt = format_number if exhaustive else die.formatter
    rendered = [f"{fmt(p)}!" for p in parts[:-1]]
    rendered.append(fmt(parts[-1]))
    return Result(value, "(" + ", ".join(rendered) + ")")


def _reroll(
    modifier: ReRoll, total: float, die: Die, resolver: RollResolver, prior: tuple[float, ...]
) -> Result | None:
    if resolver.exhaustive:
        raise ModifierError(
            "Re-rolls cannot be evaluated exhaustively; use a sampling mode instead.",
            code="UNSUPPORTED_COMBINATION",
        )

    floor = lowest_total(die)

    def triggered(value: float) -> bool:
        if modifier.trigger is None:
            return value == floor
        return compare(modifier.trigger, value)

    current = total
    nested: Result | None = None
    nested_fired = False
    count = 0
    while count < modifier.limit and triggered(current):
        count += 1
        nested, nested_fired = run_chain(resolver.draw(die), modifier.nested, die, resolver, prior)
        current = nested.value

    if count == 0:
        return None
    if nested_fired:
        return Result(current, f"{format_number(current)}r({nested.expression})")
    return Result(current, f"{die.formatter(current)}r")


def _unique(
    modifier: Unique, total: float, die: Die, resolver: RollResolver, prior: tuple[float, ...]
) -> Result | None:
    if total not in prior:
        return None
    if resolver.exhaustive:
        # Every draw is the same expectation, so a retry can never differ.
        raise ModifierError(
            "Unique rolls cannot be evaluated exhaustively; use a sampling mode instead.",
            code="UNSUPPORTED_COMBINATION",
        )

    current = total
    nested: Result | None = None
    nested_fired = False
    count = 0
    while current in prior:
        if count >= modifier.limit:
            raise ModifierError(
                f"Could not roll a unique value within {modifier.limit} retries.",
                code="RETRY_LIMIT_EXCEEDED",
            )
        count += 1
        nested, nested_fired = run_chain(resolver.draw(die), modifier.nested, die, resolver, prior)
        current = nested.value

    if nested_fired:
        return Result(current, f"{format_number(current)}u({nested.expression})")
    return Result(current, f"{die.formatter(current)}u")


def _condition(modifier: Condition, total: float, die: Die, resolver: RollResolver) -> Result:
    if resolver.exhaustive:
        results = outcomes(die)
        chance = sum(1 for o in results if _holds(modifier, o)) / len(results)
        return Result(chance, f"{chance * 100:.2f}% chance")

    if _holds(modifier, total):
        return Result(1.0, "Success(1)")
    return Result(0.0, "Failure(0)")


def apply_modifier(
    modifier: Modifier,
    total: float,
    die: Die,
    resolver: RollResolver,
    prior: tuple[float, ...] = (),
) -> Result | None:
    if isinstance(modifier, Explode):
        return _explode(modifier, total, die, resolver)
    if isinstance(modifier, ReRoll):
        return _reroll(modifier, total, die, resolver, prior)
    if isinstance(modifier, Unique):
        return _unique(modifier, total, die, resolver, prior)
    return _condition(modifier, total, die, resolver)


def _run(
    total: float,
    modifiers: Sequence[Modifier],
    die: Die,
    resolver: RollResolver,
    prior: tuple[float, ...],
) -> tuple[Result, bool, float]:
    # The third item is the die total before any condition collapsed it.
    traces: list[str] = []
    rolled = total
    for modifier in modifiers:
        result = apply_modifier(modifier, total, die, resolver, prior)
        if result is None:
            continue
        traces.append(result.expression)
        if isinstance(modifier, Condition):
            total = result.value
            break
        total = rolled = result.value

    if not traces:
        return Result(total, die.formatter(total)), False, rolled
    return Result(total, ARROW.join(reversed(traces))), True, rolled


def run_chain(
    total: float,
    modifiers: Sequence[Modifier],
    die: Die,
    resolver: RollResolver,
    prior: tuple[float, ...] = (),
) -> tuple[Result, bool]:
    """Apply ``modifiers`` in order; also report whether any of them fired."""
    result, fired, _rolled = _run(total, modifiers, die, resolver, prior)
    return result, fired


def roll_unit(
    die: Die,
    modifiers: Sequence[Modifier],
    resolver: RollResolver,
    prior: tuple[float, ...] = (),
) -> tuple[Result, float]:
    """Roll one die unit.

    Returns the unit's result and its total before any pass/fail condition;
    unique checks compare against the latter.
    """
    result, _fired, rolled = _run(resolver.draw(die), modifiers, die, resolver, prior)
    return result, rolled
