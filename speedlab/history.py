"""
History bookkeeping.

History is a plain list of :class:`~speedlab.models.Result`, newest first.
Every helper here returns a new list and never mutates its input, so callers
can keep the previous history around (e.g. to compare against the last run).
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from .constants import DEFAULT_HISTORY_LIMIT
from .models import Result, now_ms

_DAY_MS = 24 * 60 * 60 * 1000


# ---------------------------------------------------------------------------
# Retention
# ---------------------------------------------------------------------------

def add_result(
    history: Sequence[Result],
    result: Result,
    limit: int = DEFAULT_HISTORY_LIMIT,
) -> List[Result]:
    """Prepend *result* and drop the oldest entries beyond *limit*."""
    return [result, *history][:limit]


def record_result(
    history: Sequence[Result],
    result: Optional[Result],
    *,
    incognito: bool = False,
    limit: int = DEFAULT_HISTORY_LIMIT,
) -> List[Result]:
    """Add a finished run to *history* unless it was cancelled or incognito."""
    if result is None or incognito:
        return list(history)
    return add_result(history, result, limit)


def prune_history(
    history: Sequence[Result],
    max_age_days: Optional[float],
    now: Optional[int] = None,
) -> List[Result]:
    """Drop results older than *max_age_days*.  ``None`` or ``0`` keeps all."""
    if not max_age_days:
        return list(history)
    now = now_ms() if now is None else now
    cutoff = now - max_age_days * _DAY_MS
    return [r for r in history if r.timestamp >= cutoff]


def delete_result(history: Sequence[Result], result_id: str) -> List[Result]:
    return [r for r in history if r.id != result_id]


# ---------------------------------------------------------------------------
# Display helpers
# ---------------------------------------------------------------------------

def format_timestamp(timestamp_ms: int, fmt: str = "%Y-%m-%d %H:%M") -> str:
    """Local-time rendering of an epoch-ms timestamp."""
    return datetime.fromtimestamp(timestamp_ms / 1000).strftime(fmt)


def format_history_table(entries: Sequence[Result]) -> List[Dict[str, Any]]:
    """
    Transform results into a flat list of dicts suitable for tabular
    display.  Each dict has: id, timestamp, server, download, upload, ping,
    grade, jitter, stability.
    """
    rows = []
    for r in entries:
        rows.append({
            "id": r.id,
            "timestamp": format_timestamp(r.timestamp),
            "server": r.server_name or r.server_id or "?",
            "download": r.download,
            "upload": r.upload,
            "ping": r.ping,
            "grade": r.grade or "N/A",
            "jitter": r.stats.jitter if r.stats else None,
            "stability": r.stats.stability_score if r.stats else None,
        })
    return rows


def chart_series(history: Sequence[Result]) -> Dict[str, List[float]]:
    """Download / upload values ordered oldest to newest for charting."""
    ordered = list(reversed(history))
    return {
        "download": [r.download for r in ordered],
        "upload": [r.upload for r in ordered],
    }


def sparkline(values: List[float]) -> str:
    """Single-line Unicode sparkline chart."""
    if not values:
        return ""
    bars = "▁▂▃▄▅▆▇█"
    lo, hi = min(values), max(values)
    span = hi - lo if hi > lo else 1.0
    return "".join(
        bars[min(int((v - lo) / span * (len(bars) - 1)), len(bars) - 1)]
        for v in values
    )
