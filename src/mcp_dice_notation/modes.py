from __future__ import annotations

import logging
import math
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from .config import get_settings
from .dice import evaluate_tree
from .models import ParsedTerm, Result
from .parser import parse_request
from .resolvers import (
    AverageResolver,
    MaximumResolver,
    MedianResolver,
    MinimumResolver,
    RandomResolver,
    RollResolver,
)


logger = logging.getLogger(__name__)

ResolverFactory = Callable[[], RollResolver]


class EvaluationMode(str, Enum):
    SINGLE = "single"
    MAXIMUM = "max"
    MINIMUM = "min"
    MEDIAN = "median"
    AVERAGE = "average"
    SIMULATED_AVERAGE = "simavg"
    SIMULATED_GRAPH = "graph"


SINGLE_PASS_RESOLVERS: dict[EvaluationMode, ResolverFactory] = {
    EvaluationMode.SINGLE: RandomResolver,
    EvaluationMode.MAXIMUM: MaximumResolver,
    EvaluationMode.MINIMUM: MinimumResolver,
    EvaluationMode.MEDIAN: MedianResolver,
    EvaluationMode.AVERAGE: AverageResolver,
}


@dataclass(frozen=True)
class Bucket:
    value: float
    count: int
    bar: int


@dataclass(frozen=True)
class Histogram:
    buckets: list[Bucket]
    samples: int
    mean: float


def evaluate(text: str, resolver: RollResolver) -> Result:
    """Tokenize, parse and evaluate ``text`` once with ``resolver``."""
    return evaluate_tree(parse_request(text).tree, resolver)


def _sample(tree: ParsedTerm, resolver_factory: ResolverFactory, n: int, max_workers: int | None) -> list[Result]:
    if n < 1:
        raise ValueError(f"Iteration count must be a positive integer, got {n}.")

    def one(_: int) -> Result:
        return evaluate_tree(tree, resolver_factory())

    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        return list(pool.map(one, range(n)))


def evaluate_n(
    text: str,
    resolver_factory: ResolverFactory = RandomResolver,
    n: int | None = None,
    max_workers: int | None = None,
    tree: ParsedTerm | None = None,
) -> list[Result]:
    """Evaluate ``text`` ``n`` times concurrently over one shared parse tree.

    Each evaluation gets its own resolver from ``resolver_factory``. All
    results are returned together once every evaluation has finished. Pass
    ``tree`` to reuse a tree the caller already parsed.
    """

    settings = get_settings()
    n = settings.default_iterations if n is None else n
    workers = max_workers if max_workers is not None else settings.max_workers

    if tree is None:
        tree = parse_request(text).tree
    logger.debug("Sampling %r %d times", text, n)
    return _sample(tree, resolver_factory, n, workers)


def simulated_average(
    text: str,
    n: int | None = None,
    resolver_factory: ResolverFactory = RandomResolver,
    tree: ParsedTerm | None = None,
) -> Result:
    results = evaluate_n(text, resolver_factory, n, tree=tree)
    average = math.fsum(r.value for r in results) / len(results)
    return Result(average, f"Rolled ({text}) {len(results)} times and took the average.")


def build_histogram(values: list[float], height: int) -> Histogram:
    """Group equal values and scale the tallest bucket to ``height``."""

    counts = Counter(values)
    tallest = max(counts.values())
    buckets = [
        Bucket(value=value, count=count, bar=round(count / tallest * height))
        for value, count in sorted(counts.items())
    ]
    return Histogram(buckets=buckets, samples=len(values), mean=math.fsum(values) / len(values))


def simulated_graph(
    text: str,
    n: int | None = None,
    height: int | None = None,
    resolver_factory: ResolverFactory = RandomResolver,
    tree: ParsedTerm | None = None,
) -> Histogram:
    height = get_settings().histogram_height if height is None else height
    results = evaluate_n(text, resolver_factory, n, tree=tree)
    return build_histogram([r.value for r in results], height)


def run_mode(text: str, mode: EvaluationMode | str = EvaluationMode.SINGLE, iterations: int | None = None) -> Result:
    mode = EvaluationMode(mode)

    if mode in SINGLE_PASS_RESOLVERS:
        return evaluate(text, SINGLE_PASS_RESOLVERS[mode]())

    if mode is EvaluationMode.SIMULATED_AVERAGE:
        return simulated_average(text, iterations)

    histogram = simulated_graph(text, iterations)
    return Result(
        histogram.mean,
        f"Rolled ({text}) {histogram.samples} times into {len(histogram.buckets)} distinct values.",
    )
