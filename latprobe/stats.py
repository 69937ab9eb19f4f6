"""Descriptive statistics over latency samples (pure functions)."""

import math
from dataclasses import dataclass
from typing import Sequence


@dataclass(frozen=True)
class Stats:
    """Summary of a non-empty, ordered sequence of latency samples (ms)."""

    avg: float
    min: float
    max: float
    median: float
    p95: float
    p99: float
    stddev: float
    jitter: float
    samples: int


def nearest_rank(sorted_samples: Sequence[float], q: float) -> float:
    """Return the nearest-rank percentile of an already sorted sequence.

    Index is ``ceil(N * q) - 1``, clamped to ``[0, N - 1]``. No interpolation
    between neighbours, so on small N this differs from numpy-style
    percentiles: for ``[10, 20, 30, 40, 50]`` both p95 and p99 are 50.
    """
    n = len(sorted_samples)
    index = math.ceil(n * q) - 1
    index = min(max(index, 0), n - 1)
    return sorted_samples[index]


def jitter_ms(samples: Sequence[float]) -> float:
    """Mean absolute difference between consecutive samples.

    Order matters: pass samples in measurement order. A single sample has
    no consecutive pair and yields 0.0.
    """
    if len(samples) < 2:
        return 0.0
    deltas = [abs(samples[i] - samples[i - 1]) for i in range(1, len(samples))]
    return sum(deltas) / len(deltas)


def compute_stats(samples: Sequence[float]) -> Stats | None:
    """Compute descriptive statistics for latency samples.

    This is a pure function: the input is never mutated (sorting happens on
    a copy, because jitter and stddev need the original order).

    Args:
        samples: Elapsed times in milliseconds, in measurement order

    Returns:
        Stats, or None for an empty sequence. None means "no successful
        round", which callers must not confuse with zero latency.

    Examples:
        >>> compute_stats([10, 20, 30, 40]).median
        25.0
        >>> compute_stats([10, 15, 10]).jitter
        5.0
        >>> compute_stats([]) is None
        True
    """
    if not samples:
        return None

    ordered = list(samples)
    ranked = sorted(ordered)
    n = len(ranked)

    avg = sum(ordered) / n

    if n % 2 == 0:
        median = (ranked[n // 2 - 1] + ranked[n // 2]) / 2
    else:
        median = ranked[n // 2]

    # Population variance (divide by N)
    variance = sum((value - avg) ** 2 for value in ordered) / n

    return Stats(
        avg=avg,
        min=ranked[0],
        max=ranked[-1],
        median=float(median),
        p95=nearest_rank(ranked, 0.95),
        p99=nearest_rank(ranked, 0.99),
        stddev=math.sqrt(variance),
        jitter=jitter_ms(ordered),
        samples=n,
    )
