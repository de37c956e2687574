"""
Connection quality metrics derived from raw phase samples.

* jitter          -- mean absolute successive difference of latency samples
* stability score -- 0..100 from the coefficient of variation of throughput
* trend slope     -- least-squares slope of sample value against sample index
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from .stats import DetailedStats, round_half_up


@dataclass(frozen=True)
class QualityMetrics:
    """Secondary signals attached to a finished result."""

    jitter: float = 0.0
    stability_score: int = 0
    trend_slope: float = 0.0


def calculate_jitter(samples: Sequence[float]) -> float:
    """Mean absolute difference between consecutive samples (Ookla method)."""
    if len(samples) < 2:
        return 0.0
    diffs = [abs(samples[i] - samples[i - 1]) for i in range(1, len(samples))]
    return sum(diffs) / len(diffs)


def calculate_stability_score(stats: DetailedStats) -> int:
    """
    Map the coefficient of variation onto 0..100.

    CV <= 0.1 lands near 100, CV >= 0.5 clamps to 0.  A zero mean scores 0.
    """
    if stats.mean == 0:
        return 0
    cv = stats.std_dev / stats.mean
    score = max(0.0, min(100.0, 100 - cv * 200))
    return int(round_half_up(score))


def calculate_trend_slope(samples: Sequence[float]) -> float:
    """Ordinary least-squares slope of ``samples[i]`` against ``i``."""
    n = len(samples)
    if n < 2:
        return 0.0

    x_mean = (n - 1) / 2
    y_mean = sum(samples) / n

    numerator = 0.0
    denominator = 0.0
    for i, y in enumerate(samples):
        dx = i - x_mean
        numerator += dx * (y - y_mean)
        denominator += dx * dx

    return 0.0 if denominator == 0 else numerator / denominator


def combine_trends(download: float, upload: float, ping: float) -> float:
    # Rising ping is degradation, so it counts against the combined trend.
    return (download + upload - ping) / 3


def calculate_quality_metrics(
    ping: Sequence[float],
    download: Sequence[float],
    upload: Sequence[float],
    download_stats: DetailedStats,
) -> QualityMetrics:
    """Jitter from ping, stability from download, and the combined trend."""
    return QualityMetrics(
        jitter=calculate_jitter(ping),
        stability_score=calculate_stability_score(download_stats),
        trend_slope=combine_trends(
            calculate_trend_slope(download),
            calculate_trend_slope(upload),
            calculate_trend_slope(ping),
        ),
    )
