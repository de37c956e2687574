"""
Result and baseline data models.

Serialisation keeps the camelCase keys of the stored history format
(``networkType``, ``downloadStats``, ``stdDev`` ...) so exported JSON can be
loaded back verbatim.
"""
from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from .constants import (
    DEFAULT_EXPECTED_DOWNLOAD,
    DEFAULT_EXPECTED_PING,
    DEFAULT_EXPECTED_UPLOAD,
)
from .stats import DetailedStats


def new_result_id() -> str:
    return uuid.uuid4().hex


def now_ms() -> int:
    return int(time.time() * 1000)


# ---------------------------------------------------------------------------
# Baseline
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Baseline:
    """Expected plan values used only for grading."""

    expected_download: float = DEFAULT_EXPECTED_DOWNLOAD
    expected_upload: float = DEFAULT_EXPECTED_UPLOAD
    expected_ping: float = DEFAULT_EXPECTED_PING

    def __post_init__(self) -> None:
        for name in ("expected_download", "expected_upload", "expected_ping"):
            value = getattr(self, name)
            if not isinstance(value, (int, float)) or value <= 0:
                raise ValueError(f"{name} must be a positive number, got {value!r}")

    def to_dict(self) -> Dict[str, float]:
        return {
            "ispDown": self.expected_download,
            "ispUp": self.expected_upload,
            "ispPing": self.expected_ping,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Baseline:
        """Missing keys fall back to the defaults, like the stored record does."""
        return cls(
            expected_download=float(data.get("ispDown", DEFAULT_EXPECTED_DOWNLOAD)),
            expected_upload=float(data.get("ispUp", DEFAULT_EXPECTED_UPLOAD)),
            expected_ping=float(data.get("ispPing", DEFAULT_EXPECTED_PING)),
        )


# ---------------------------------------------------------------------------
# Result
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ResultStats:
    """Statistics block present only on results of a completed measurement."""

    download_stats: DetailedStats
    upload_stats: DetailedStats
    ping_stats: DetailedStats
    jitter: float
    stability_score: int
    grade: str
    trend_slope: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "downloadStats": self.download_stats.to_dict(),
            "uploadStats": self.upload_stats.to_dict(),
            "pingStats": self.ping_stats.to_dict(),
            "jitter": self.jitter,
            "stabilityScore": self.stability_score,
            "grade": self.grade,
            "trendSlope": self.trend_slope,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> ResultStats:
        return cls(
            download_stats=DetailedStats.from_dict(data.get("downloadStats", {})),
            upload_stats=DetailedStats.from_dict(data.get("uploadStats", {})),
            ping_stats=DetailedStats.from_dict(data.get("pingStats", {})),
            jitter=float(data.get("jitter", 0)),
            stability_score=int(data.get("stabilityScore", 0)),
            grade=str(data.get("grade", "F")),
            trend_slope=float(data.get("trendSlope", 0)),
        )


@dataclass(frozen=True)
class Result:
    """One finished measurement -- the unit of history."""

    download: float
    upload: float
    ping: float
    id: str = field(default_factory=new_result_id)
    timestamp: int = field(default_factory=now_ms)
    network_type: Optional[str] = None
    location: Optional[str] = None
    server_id: Optional[str] = None
    server_name: Optional[str] = None
    dns_lookup_time: Optional[float] = None
    stats: Optional[ResultStats] = None

    @property
    def grade(self) -> Optional[str]:
        return self.stats.grade if self.stats else None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "timestamp": self.timestamp,
            "download": self.download,
            "upload": self.upload,
            "ping": self.ping,
        }
        optional = {
            "networkType": self.network_type,
            "location": self.location,
            "serverId": self.server_id,
            "serverName": self.server_name,
            "dnsLookupTime": self.dns_lookup_time,
        }
        data.update({k: v for k, v in optional.items() if v is not None})
        if self.stats is not None:
            data["stats"] = self.stats.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Result:
        """Build a Result from its stored form.  Raises on missing core keys."""
        stats = data.get("stats")
        return cls(
            id=str(data["id"]),
            timestamp=int(data["timestamp"]),
            download=float(data["download"]),
            upload=float(data["upload"]),
            ping=float(data["ping"]),
            network_type=data.get("networkType"),
            location=data.get("location"),
            server_id=data.get("serverId"),
            server_name=data.get("serverName"),
            dns_lookup_time=data.get("dnsLookupTime"),
            stats=ResultStats.from_dict(stats) if isinstance(stats, dict) else None,
        )
