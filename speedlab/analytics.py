"""
History analytics.

Read-only views computed from a history (newest first) and "now":

* time-window averages over the last 24 h / 7 d / 30 d
* hour-of-day peak / off-peak analysis
* anomaly detection (> 2 standard deviations in the unfavourable direction)
* a fixed, ordered battery of insight rules

Insufficient history is never an error -- the view is simply ``None`` or
empty.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from .constants import (
    ANOMALY_MIN_HISTORY,
    ANOMALY_SCAN_DEPTH,
    ANOMALY_STD_THRESHOLD,
    MAX_ANOMALIES,
    MAX_INSIGHTS,
    PEAK_MIN_HISTORY,
)
from .models import Baseline, Result, now_ms
from .stats import calculate_mean, calculate_std_dev, round_half_up

_HOUR_MS = 60 * 60 * 1000
_DAY_MS = 24 * _HOUR_MS

WINDOWS: Tuple[Tuple[str, int], ...] = (
    ("last24h", _DAY_MS),
    ("last7d", 7 * _DAY_MS),
    ("last30d", 30 * _DAY_MS),
)

PERIODS: Tuple[Tuple[str, Callable[[int], bool]], ...] = (
    ("morning", lambda h: 6 <= h < 12),
    ("afternoon", lambda h: 12 <= h < 18),
    ("evening", lambda h: 18 <= h < 22),
    ("night", lambda h: h >= 22 or h < 6),
)


# ---------------------------------------------------------------------------
# Time windows
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class WindowAverage:
    count: int
    avg_download: float
    avg_upload: float
    avg_ping: float


def _window_average(results: Sequence[Result]) -> WindowAverage:
    return WindowAverage(
        count=len(results),
        avg_download=calculate_mean([r.download for r in results]),
        avg_upload=calculate_mean([r.upload for r in results]),
        avg_ping=calculate_mean([r.ping for r in results]),
    )


def time_window_averages(
    history: Sequence[Result],
    now: Optional[int] = None,
) -> Optional[Dict[str, WindowAverage]]:
    """Per-window averages keyed ``last24h`` / ``last7d`` / ``last30d``."""
    if not history:
        return None
    now = now_ms() if now is None else now
    return {
        name: _window_average([r for r in history if r.timestamp >= now - span])
        for name, span in WINDOWS
    }


# ---------------------------------------------------------------------------
# Peak analysis
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class HourlyAverage:
    hour: int
    avg_download: float
    avg_upload: float
    avg_ping: float
    test_count: int


@dataclass(frozen=True)
class PeakAnalysis:
    best_hour: HourlyAverage
    worst_hour: HourlyAverage
    speed_difference: float
    period_averages: Dict[str, float]
    hourly: List[HourlyAverage] = field(default_factory=list)


def local_hour(timestamp_ms: int) -> int:
    return datetime.fromtimestamp(timestamp_ms / 1000).hour


def hourly_averages(history: Sequence[Result]) -> List[HourlyAverage]:
    """Per hour-of-day averages, ordered by hour."""
    buckets: Dict[int, List[Result]] = {}
    for r in history:
        buckets.setdefault(local_hour(r.timestamp), []).append(r)

    return [
        HourlyAverage(
            hour=hour,
            avg_download=calculate_mean([r.download for r in results]),
            avg_upload=calculate_mean([r.upload for r in results]),
            avg_ping=calculate_mean([r.ping for r in results]),
            test_count=len(results),
        )
        for hour, results in sorted(buckets.items())
    ]


def peak_analysis(history: Sequence[Result]) -> Optional[PeakAnalysis]:
    """
    Best / worst hour by mean download plus period averages.

    Needs at least three results spread over at least two distinct hours.
    """
    if len(history) < PEAK_MIN_HISTORY:
        return None

    hourly = hourly_averages(history)
    if len(hourly) < 2:
        return None

    by_speed = sorted(hourly, key=lambda h: h.avg_download, reverse=True)
    best, worst = by_speed[0], by_speed[-1]

    periods = {}
    for name, in_period in PERIODS:
        hours = [h.avg_download for h in hourly if in_period(h.hour)]
        periods[name] = calculate_mean(hours)

    return PeakAnalysis(
        best_hour=best,
        worst_hour=worst,
        speed_difference=best.avg_download - worst.avg_download,
        period_averages=periods,
        hourly=hourly,
    )


# ---------------------------------------------------------------------------
# Anomalies
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Anomaly:
    id: str
    timestamp: int
    type: str
    message: str
    severity: str
    percent: int


def _percent(part: float, whole: float) -> int:
    return int(round_half_up(part / whole * 100)) if whole else 0


def detect_anomalies(history: Sequence[Result]) -> List[Anomaly]:
    """
    Flag recent results far from the history's overall distribution.

    Only drops (download, upload) and spikes (ping) count.  The newest
    results are scanned and the first few flags are returned.
    """
    if len(history) < ANOMALY_MIN_HISTORY:
        return []

    downloads = [r.download for r in history]
    uploads = [r.upload for r in history]
    pings = [r.ping for r in history]

    avg_down, std_down = calculate_mean(downloads), calculate_std_dev(downloads)
    avg_up, std_up = calculate_mean(uploads), calculate_std_dev(uploads)
    avg_ping, std_ping = calculate_mean(pings), calculate_std_dev(pings)
    k = ANOMALY_STD_THRESHOLD

    detected: List[Anomaly] = []
    for r in history[:ANOMALY_SCAN_DEPTH]:
        if r.download < avg_down - k * std_down:
            drop = _percent(avg_down - r.download, avg_down)
            detected.append(Anomaly(
                id=r.id,
                timestamp=r.timestamp,
                type="download_drop",
                message=f"Download dropped {drop}% below average",
                severity="critical" if drop > 50 else "warning",
                percent=drop,
            ))

        if r.upload < avg_up - k * std_up:
            drop = _percent(avg_up - r.upload, avg_up)
            detected.append(Anomaly(
                id=r.id,
                timestamp=r.timestamp,
                type="upload_drop",
                message=f"Upload dropped {drop}% below average",
                severity="critical" if drop > 50 else "warning",
                percent=drop,
            ))

        if r.ping > avg_ping + k * std_ping:
            spike = _percent(r.ping - avg_ping, avg_ping)
            detected.append(Anomaly(
                id=r.id,
                timestamp=r.timestamp,
                type="ping_spike",
                message=f"Ping spiked {spike}% above average",
                severity="critical" if spike > 100 else "warning",
                percent=spike,
            ))

    return detected[:MAX_ANOMALIES]


# ---------------------------------------------------------------------------
# Insights
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Insight:
    id: str
    title: str
    message: str
    kind: str  # tip | warning | success | info


@dataclass(frozen=True)
class InsightContext:
    history: Sequence[Result]
    baseline: Baseline
    peak: Optional[PeakAnalysis]
    anomalies: Sequence[Anomaly]
    now: int

    @property
    def latest(self) -> Result:
        return self.history[0]


def format_hour(hour: int) -> str:
    """12-hour clock label, e.g. ``9PM``."""
    suffix = "PM" if hour >= 12 else "AM"
    return f"{hour % 12 or 12}{suffix}"


def _plan_ratio(ctx: InsightContext) -> Optional[Insight]:
    avg_down = calculate_mean([r.download for r in ctx.history])
    performance = avg_down / ctx.baseline.expected_download * 100
    if performance >= 90:
        return Insight(
            "plan_ratio", "Great Performance",
            f"Your speeds average {round_half_up(performance):.0f}% of your ISP plan. "
            "You're getting excellent value!",
            "success",
        )
    if performance < 70:
        return Insight(
            "plan_ratio", "Below Expected",
            f"You're only getting {round_half_up(performance):.0f}% of your paid speed. "
            "Consider contacting your ISP.",
            "warning",
        )
    return None


def _peak_spread(ctx: InsightContext) -> Optional[Insight]:
    peak = ctx.peak
    if peak is None or peak.speed_difference <= 20:
        return None
    return Insight(
        "peak_spread", "Best Testing Time",
        f"Your speeds are {round_half_up(peak.speed_difference):.0f} Mbps faster around "
        f"{format_hour(peak.best_hour.hour)} vs {format_hour(peak.worst_hour.hour)}.",
        "tip",
    )


def _stability(ctx: InsightContext) -> Optional[Insight]:
    stats = ctx.latest.stats
    if stats is None:
        return None
    if stats.stability_score >= 85:
        return Insight(
            "stability", "Stable Connection",
            f"Your connection stability is excellent at {stats.stability_score}%. "
            "Great for video calls and gaming!",
            "success",
        )
    if stats.stability_score < 60:
        return Insight(
            "stability", "Unstable Connection",
            f"Stability score of {stats.stability_score}% may cause buffering. "
            "Try moving closer to your router.",
            "warning",
        )
    return None


def _jitter(ctx: InsightContext) -> Optional[Insight]:
    stats = ctx.latest.stats
    if stats is None:
        return None
    if stats.jitter > 10:
        return Insight(
            "jitter", "Gaming Alert",
            f"Jitter of {stats.jitter:.1f}ms may affect online gaming. "
            "Wired connection recommended.",
            "tip",
        )
    if stats.jitter <= 5:
        return Insight(
            "jitter", "Gaming Ready",
            f"Low jitter of {stats.jitter:.1f}ms is perfect for competitive gaming!",
            "success",
        )
    return None


def _critical_anomalies(ctx: InsightContext) -> Optional[Insight]:
    critical = sum(1 for a in ctx.anomalies if a.severity == "critical")
    if critical == 0:
        return None
    plural = "s" if critical > 1 else ""
    return Insight(
        "anomalies", "Issues Detected",
        f"{critical} significant speed drop{plural} detected recently. "
        "Check for network interference.",
        "warning",
    )


def _cadence(ctx: InsightContext) -> Optional[Insight]:
    if len(ctx.history) < 5:
        return None
    days = (ctx.now - ctx.history[-1].timestamp) / _DAY_MS
    if days <= 0:
        return None
    per_week = len(ctx.history) / days * 7
    if per_week < 7:
        return None
    return Insight(
        "cadence", "Good Testing Habit",
        f"You're testing {round_half_up(per_week, 1):.1f}x per week. "
        "This helps track patterns effectively!",
        "info",
    )


def _network_types(ctx: InsightContext) -> Optional[Insight]:
    groups: Dict[str, List[float]] = {}
    for r in ctx.history:
        groups.setdefault(r.network_type or "unknown", []).append(r.download)

    if len([t for t in groups if t != "unknown"]) < 2:
        return None

    averages = sorted(
        ((t, calculate_mean(v)) for t, v in groups.items()),
        key=lambda item: item[1],
        reverse=True,
    )
    (fast_type, fast_avg), (slow_type, slow_avg) = averages[0], averages[-1]
    if fast_avg - slow_avg <= 30:
        return None
    label = fast_type[:1].upper() + fast_type[1:]
    return Insight(
        "network_types", "Network Comparison",
        f"{label} performs {round_half_up(fast_avg - slow_avg):.0f} Mbps "
        f"faster than {slow_type}.",
        "info",
    )


# Evaluation order is part of the contract: the first MAX_INSIGHTS win.
INSIGHT_RULES: Tuple[Callable[[InsightContext], Optional[Insight]], ...] = (
    _plan_ratio,
    _peak_spread,
    _stability,
    _jitter,
    _critical_anomalies,
    _cadence,
    _network_types,
)


def generate_insights(
    history: Sequence[Result],
    baseline: Baseline,
    now: Optional[int] = None,
) -> List[Insight]:
    """Run every rule in order and keep the first few insights produced."""
    if not history:
        return []

    ctx = InsightContext(
        history=history,
        baseline=baseline,
        peak=peak_analysis(history),
        anomalies=detect_anomalies(history),
        now=now_ms() if now is None else now,
    )
    insights = []
    for rule in INSIGHT_RULES:
        insight = rule(ctx)
        if insight is not None:
            insights.append(insight)
    return insights[:MAX_INSIGHTS]
