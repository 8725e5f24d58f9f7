from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any

from mcp.server.fastmcp import FastMCP

from .config import get_settings
from .dice import evaluate_tree
from .errors import DiceError
from .modes import SINGLE_PASS_RESOLVERS, EvaluationMode, simulated_average, simulated_graph
from .parser import parse_request


logger = logging.getLogger(__name__)

mcp = FastMCP("mcp-dice-notation")


def _now_utc_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def _envelope(text: str, mode: EvaluationMode) -> dict[str, Any]:
    return {
        "request_id": uuid.uuid4().hex,
        "timestamp": _now_utc_iso(),
        "input": text,
        "mode": mode.value,
    }


def _parse_mode(mode: str) -> EvaluationMode:
    try:
        return EvaluationMode(mode)
    except ValueError:
        choices = ", ".join(m.value for m in EvaluationMode)
        raise ValueError(f"[INVALID_MODE] Unknown mode '{mode}'. Use one of: {choices}.") from None


@mcp.tool()
def roll_dice(text: str, mode: str = "single", iterations: int | None = None):
    """Evaluate a dice-notation expression such as '4d6k3', '1d6!3' or '3d6>=5'.

    Modes: single, max, min, median, average (exact expectation),
    simavg (mean of `iterations` random rolls), graph (see roll_histogram).

    Raises a hard error (exception) on invalid input.
    """

    selected = _parse_mode(mode)
    if selected is EvaluationMode.SIMULATED_GRAPH:
        return roll_histogram(text, iterations)

    try:
        parsed = parse_request(text)
        if selected is EvaluationMode.SIMULATED_AVERAGE:
            result = simulated_average(text, iterations, tree=parsed.tree)
        else:
            result = evaluate_tree(parsed.tree, SINGLE_PASS_RESOLVERS[selected]())
    except DiceError as e:
        # Fail-fast: surface stable error codes in the message.
        raise ValueError(str(e)) from None

    return {
        **_envelope(text, selected),
        "normalized_expression": parsed.normalized_expression,
        "value": result.value,
        "expression": result.expression,
        "warnings": [f"Ignored trailing input starting at '{t}' (position {t.position})" for t in parsed.trailing[:1]],
    }


@mcp.tool()
def roll_histogram(text: str, iterations: int | None = None):
    """Roll an expression many times and return how often each total came up."""

    try:
        histogram = simulated_graph(text, iterations)
    except DiceError as e:
        raise ValueError(str(e)) from None

    return {
        **_envelope(text, EvaluationMode.SIMULATED_GRAPH),
        "samples": histogram.samples,
        "mean": histogram.mean,
        "buckets": [{"value": b.value, "count": b.count, "bar": b.bar} for b in histogram.buckets],
    }


def run() -> None:
    logging.basicConfig(level=get_settings().log_level)
    logger.info("Starting mcp-dice-notation server")
    # Default transport is stdio.
    mcp.run()


if __name__ == "__main__":
    run()
