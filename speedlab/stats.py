"""
Descriptive statistics over raw measurement samples.

Pure functions and lightweight dataclasses -- no I/O, no side effects.
Everything here is deterministic and easy to unit-test.
"""
from __future__ import annotations

import math
from dataclasses import asdict, dataclass
from typing import Any, Dict, Sequence


# ---------------------------------------------------------------------------
# Dataclasses
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class DetailedStats:
    """Seven-number summary of a sample array."""

    mean: float = 0.0
    median: float = 0.0
    min: float = 0.0
    max: float = 0.0
    std_dev: float = 0.0
    p95: float = 0.0
    p99: float = 0.0

    def to_dict(self) -> Dict[str, float]:
        return {
            "mean": self.mean,
            "median": self.median,
            "min": self.min,
            "max": self.max,
            "stdDev": self.std_dev,
            "p95": self.p95,
            "p99": self.p99,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> DetailedStats:
        return cls(
            mean=float(data.get("mean", 0)),
            median=float(data.get("median", 0)),
            min=float(data.get("min", 0)),
            max=float(data.get("max", 0)),
            std_dev=float(data.get("stdDev", data.get("std_dev", 0))),
            p95=float(data.get("p95", 0)),
            p99=float(data.get("p99", 0)),
        )

    def rounded(self, digits: int = 3) -> Dict[str, float]:
        return {k: round(v, digits) for k, v in asdict(self).items()}


# ---------------------------------------------------------------------------
# Pure helper functions
# ---------------------------------------------------------------------------

def round_half_up(value: float, digits: int = 0) -> float:
    """Round .5 upwards (``round`` uses banker's rounding)."""
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def calculate_mean(samples: Sequence[float]) -> float:
    if not samples:
        return 0.0
    return sum(samples) / len(samples)


def calculate_median(samples: Sequence[float]) -> float:
    """Middle of the sorted copy; mean of the two middle values if even."""
    if not samples:
        return 0.0
    ordered = sorted(samples)
    n = len(ordered)
    mid = n // 2
    if n % 2:
        return ordered[mid]
    return (ordered[mid - 1] + ordered[mid]) / 2


def calculate_std_dev(samples: Sequence[float]) -> float:
    """Population standard deviation (divides by n)."""
    if not samples:
        return 0.0
    mean = calculate_mean(samples)
    variance = sum((s - mean) ** 2 for s in samples) / len(samples)
    return math.sqrt(variance)


def calculate_percentile(samples: Sequence[float], percentile: float) -> float:
    """
    Nearest-rank percentile: ``sorted[ceil(n * p / 100) - 1]``.

    No interpolation -- the result is always one of the samples.
    """
    if not samples:
        return 0.0
    ordered = sorted(samples)
    idx = math.ceil(len(ordered) * percentile / 100) - 1
    return ordered[max(0, min(idx, len(ordered) - 1))]


def calculate_detailed_stats(samples: Sequence[float]) -> DetailedStats:
    """Reduce *samples* to a :class:`DetailedStats`.  Empty input yields zeros."""
    if not samples:
        return DetailedStats()

    ordered = sorted(samples)
    return DetailedStats(
        mean=calculate_mean(samples),
        median=calculate_median(ordered),
        min=ordered[0],
        max=ordered[-1],
        std_dev=calculate_std_dev(samples),
        p95=calculate_percentile(ordered, 95),
        p99=calculate_percentile(ordered, 99),
    )


# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------

def format_speed(speed_mbps: float) -> str:
    """Human-readable speed string."""
    if speed_mbps >= 1000:
        return f"{speed_mbps / 1000:.2f} Gbps"
    return f"{speed_mbps:.1f} Mbps"


def format_latency(latency_ms: float) -> str:
    """Human-readable latency string."""
    if latency_ms >= 1000:
        return f"{latency_ms / 1000:.2f} s"
    return f"{latency_ms:.0f} ms"
