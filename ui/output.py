"""
Output formatting -- CSV and JSON history export, plain-text result.
"""
from __future__ import annotations

import csv
import io
import json
import os
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Sequence

from speedlab.models import Result

CSV_HEADER = [
    "Timestamp",
    "Date",
    "Time",
    "Download (Mbps)",
    "Upload (Mbps)",
    "Ping (ms)",
    "Grade",
    "Jitter",
    "Stability Score",
]

_NA = "N/A"


def _number(value: float) -> str:
    """Drop a trailing ``.0`` so ``23.0`` prints as ``23``."""
    return str(int(value)) if float(value).is_integer() else str(value)


# ---------------------------------------------------------------------------
# CSV
# ---------------------------------------------------------------------------

def format_csv_row(result: Result) -> List[str]:
    when = datetime.fromtimestamp(result.timestamp / 1000)
    stats = result.stats
    return [
        str(result.timestamp),
        when.strftime("%Y-%m-%d"),
        when.strftime("%H:%M:%S"),
        _number(result.download),
        _number(result.upload),
        _number(result.ping),
        stats.grade if stats else _NA,
        f"{stats.jitter:.1f}" if stats else _NA,
        str(stats.stability_score) if stats else _NA,
    ]


def export_csv(history: Sequence[Result]) -> str:
    """One row per result, in history order (newest first)."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for result in history:
        writer.writerow(format_csv_row(result))
    return buffer.getvalue().rstrip("\n")


def _optional(value: str, cast):
    return None if value == _NA else cast(value)


def parse_csv(text: str) -> List[Dict[str, Any]]:
    """Read an :func:`export_csv` document back into plain dicts."""
    reader = csv.reader(io.StringIO(text))
    header = next(reader, None)
    if header != CSV_HEADER:
        raise ValueError(f"Unexpected CSV header: {header}")

    rows = []
    for cells in reader:
        if not cells:
            continue
        rows.append({
            "timestamp": int(cells[0]),
            "download": float(cells[3]),
            "upload": float(cells[4]),
            "ping": float(cells[5]),
            "grade": _optional(cells[6], str),
            "jitter": _optional(cells[7], float),
            "stability_score": _optional(cells[8], int),
        })
    return rows


# ---------------------------------------------------------------------------
# JSON
# ---------------------------------------------------------------------------

def export_json(history: Sequence[Result]) -> str:
    """The raw history list, pretty-printed."""
    return json.dumps([r.to_dict() for r in history], indent=2, ensure_ascii=False)


def default_export_name(extension: str, today: Optional[date] = None) -> str:
    today = today or date.today()
    return f"speedlab-history-{today.isoformat()}.{extension}"


def save_text(text: str, filepath: str) -> None:
    """Write *text* to *filepath* atomically (write-tmp then rename)."""
    dir_path = os.path.dirname(filepath) or "."
    tmp = os.path.join(dir_path, f".tmp_{os.path.basename(filepath)}")

    try:
        with open(tmp, "w", encoding="utf-8") as fh:
            fh.write(text)
        os.replace(tmp, filepath)
    except OSError as exc:
        try:
            os.unlink(tmp)
        except OSError:
            pass
        raise OSError(f"Failed to save {filepath}: {exc}") from exc


# ---------------------------------------------------------------------------
# Plain text
# ---------------------------------------------------------------------------

def format_text_result(result: Result) -> str:
    sep = "=" * 50
    mid = "-" * 50
    lines = [
        sep,
        "SpeedLab Results",
        sep,
        f"Server: {result.server_name or 'Auto'}",
        mid,
        f"Download: {result.download:.1f} Mbps",
        f"Upload: {result.upload:.1f} Mbps",
        f"Ping: {result.ping:.0f} ms",
    ]
    if result.stats:
        lines.append(f"Jitter: {result.stats.jitter:.1f} ms")
        lines.append(f"Stability: {result.stats.stability_score}%")
        lines.append(f"Grade: {result.stats.grade}")
    lines.append(sep)
    return "\n".join(lines)
