"""
Grading and comparison helpers.

Two independent schemes live here:

* the measurement scheme -- each metric is graded against the user's
  :class:`~speedlab.models.Baseline` and the three letters are combined via
  grade points (used by the phased measurement);
* the point scheme -- absolute 0..100 scoring used by the HTTP query
  endpoint, which also emits the A-/B+/... variants.

They are deliberately not mixed.
"""
from __future__ import annotations

from typing import Dict, List, Tuple

from .models import Baseline, Result


LATENCY = "latency"
THROUGHPUT = "throughput"

GRADES = ("A+", "A", "B", "C", "D", "F")


# ---------------------------------------------------------------------------
# Measurement scheme
# ---------------------------------------------------------------------------

# (multiple of expected, letter) -- lower is better
_LATENCY_THRESHOLDS = [
    (0.5, "A+"),
    (0.75, "A"),
    (1.0, "B"),
    (1.5, "C"),
    (2.0, "D"),
]

# (multiple of expected, letter) -- higher is better
_THROUGHPUT_THRESHOLDS = [
    (1.2, "A+"),
    (1.0, "A"),
    (0.8, "B"),
    (0.6, "C"),
    (0.4, "D"),
]

GRADE_POINTS: Dict[str, float] = {
    "A+": 4.3,
    "A": 4.0,
    "B": 3.0,
    "C": 2.0,
    "D": 1.0,
    "F": 0.0,
}

_POINT_THRESHOLDS = [
    (4.2, "A+"),
    (3.5, "A"),
    (2.5, "B"),
    (1.5, "C"),
    (0.5, "D"),
]


def grade_one(actual: float, expected: float, kind: str) -> str:
    """Grade *actual* against *expected* for a ``latency`` or ``throughput`` metric."""
    if kind == LATENCY:
        for factor, letter in _LATENCY_THRESHOLDS:
            if actual <= expected * factor:
                return letter
        return "F"
    if kind == THROUGHPUT:
        for factor, letter in _THROUGHPUT_THRESHOLDS:
            if actual >= expected * factor:
                return letter
        return "F"
    raise ValueError(f"Unknown metric kind: {kind!r}")


def grade_points(grades: List[str]) -> float:
    """Average grade point of *grades*."""
    if not grades:
        return 0.0
    return sum(GRADE_POINTS[g] for g in grades) / len(grades)


def combine_grades(download_grade: str, upload_grade: str, ping_grade: str) -> str:
    """Average the three grade points and map the average back to a letter."""
    avg = grade_points([download_grade, upload_grade, ping_grade])
    for threshold, letter in _POINT_THRESHOLDS:
        if avg >= threshold:
            return letter
    return "F"


def grade_result(
    download: float,
    upload: float,
    ping: float,
    baseline: Baseline,
) -> Tuple[str, str, str, str]:
    """Return ``(download, upload, ping, overall)`` grades for one measurement."""
    dl = grade_one(download, baseline.expected_download, THROUGHPUT)
    ul = grade_one(upload, baseline.expected_upload, THROUGHPUT)
    pg = grade_one(ping, baseline.expected_ping, LATENCY)
    return dl, ul, pg, combine_grades(dl, ul, pg)


_CONDITIONS = {
    "B": ("Good", "blue"),
    "C": ("Fair", "yellow"),
    "D": ("Poor", "red"),
}


def condition_label(grade: str) -> Tuple[str, str]:
    """Return ``(label, color)`` describing a letter grade."""
    if grade.startswith("A"):
        return ("Excellent", "green")
    return _CONDITIONS.get(grade, ("Very Poor", "bold red"))


# ---------------------------------------------------------------------------
# Point scheme (query endpoint)
# ---------------------------------------------------------------------------

_DOWNLOAD_POINTS = [(500, 40), (250, 35), (100, 30), (50, 25), (25, 20), (10, 15)]
_UPLOAD_POINTS = [(100, 25), (50, 22), (25, 18), (10, 14)]
_PING_POINTS = [(10, 20), (20, 17), (30, 14), (50, 11)]
_JITTER_POINTS = [(2, 15), (5, 12), (10, 9)]

_SCORE_GRADES = [
    (95, "A+"),
    (90, "A"),
    (85, "A-"),
    (80, "B+"),
    (75, "B"),
    (70, "B-"),
    (65, "C+"),
    (60, "C"),
    (55, "C-"),
    (50, "D"),
]


def _at_least(value: float, table: List[Tuple[float, int]], floor: int) -> int:
    for threshold, points in table:
        if value >= threshold:
            return points
    return floor


def _at_most(value: float, table: List[Tuple[float, int]], floor: int) -> int:
    for threshold, points in table:
        if value <= threshold:
            return points
    return floor


def score_points(download: float, upload: float, ping: float, jitter: float) -> int:
    """Absolute 0..100 score: download 40, upload 25, ping 20, jitter 15."""
    return (
        _at_least(download, _DOWNLOAD_POINTS, 10)
        + _at_least(upload, _UPLOAD_POINTS, 10)
        + _at_most(ping, _PING_POINTS, 8)
        + _at_most(jitter, _JITTER_POINTS, 6)
    )


def score_grade(download: float, upload: float, ping: float, jitter: float) -> str:
    score = score_points(download, upload, ping, jitter)
    for threshold, letter in _SCORE_GRADES:
        if score >= threshold:
            return letter
    return "F"


# ---------------------------------------------------------------------------
# Baseline comparison
# ---------------------------------------------------------------------------

def compare_with_baseline(result: Result, baseline: Baseline) -> Dict[str, float]:
    """
    Deltas of *result* against *baseline* in native units.

    A positive ``ping_delta`` means worse (higher) latency than expected.
    """
    return {
        "download_delta": result.download - baseline.expected_download,
        "upload_delta": result.upload - baseline.expected_upload,
        "ping_delta": result.ping - baseline.expected_ping,
    }


def format_delta(value: float, unit: str, invert: bool = False) -> str:
    """
    Format a delta value with a +/- prefix and color hint.

    *invert*: True for metrics where lower is better (ping).
    """
    if abs(value) < 0.01:
        return "[dim](same)[/dim]"

    sign = "+" if value > 0 else ""
    is_good = (value < 0) if invert else (value > 0)
    color = "green" if is_good else "red"

    return f"[{color}]{sign}{value:.1f} {unit}[/{color}]"
