"""
Key-value persistence for history and baseline.

Everything lives in one JSON object at ``~/.speedlab/store.json``; each key
holds a JSON-encoded string, mirroring a browser-style local store.  Values
that cannot be decoded are treated as absent.
"""
from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Dict, List, Optional

from .constants import BASELINE_KEY, HISTORY_KEY
from .models import Baseline, Result

LOGGER = logging.getLogger(__name__)

_DEFAULT_DIR = os.path.join(Path.home(), ".speedlab")
_DEFAULT_FILE = "store.json"


def _store_path() -> str:
    return os.path.join(_DEFAULT_DIR, _DEFAULT_FILE)


class JsonStore:
    """Tiny string key-value store backed by a single JSON file."""

    def __init__(self, path: Optional[str] = None) -> None:
        self.path = path or _store_path()

    # -- Raw access ---------------------------------------------------------

    def _read(self) -> Dict[str, str]:
        if not os.path.isfile(self.path):
            return {}
        try:
            with open(self.path, encoding="utf-8") as fh:
                data = json.load(fh)
        except (json.JSONDecodeError, OSError) as exc:
            LOGGER.warning("Ignoring unreadable store %s: %s", self.path, exc)
            return {}
        return data if isinstance(data, dict) else {}

    def get(self, key: str) -> Optional[str]:
        value = self._read().get(key)
        return value if isinstance(value, str) else None

    def set(self, key: str, value: str) -> None:
        data = self._read()
        data[key] = value
        self._write(data)

    def remove(self, key: str) -> None:
        data = self._read()
        if data.pop(key, None) is not None:
            self._write(data)

    def _write(self, data: Dict[str, str]) -> None:
        """Write-tmp then rename so a crash never leaves half a file."""
        os.makedirs(os.path.dirname(self.path) or ".", exist_ok=True)
        tmp = f"{self.path}.tmp"
        with open(tmp, "w", encoding="utf-8") as fh:
            json.dump(data, fh, indent=2, ensure_ascii=False)
        os.replace(tmp, self.path)


# ---------------------------------------------------------------------------
# History
# ---------------------------------------------------------------------------

def load_history(store: JsonStore) -> List[Result]:
    """Stored results, newest first.  Malformed state yields an empty list."""
    raw = store.get(HISTORY_KEY)
    if raw is None:
        return []
    try:
        entries = json.loads(raw)
        if not isinstance(entries, list):
            raise ValueError("history is not a list")
        return [Result.from_dict(e) for e in entries]
    except (ValueError, KeyError, TypeError, AttributeError) as exc:
        LOGGER.error("Failed to parse history: %s", exc)
        return []


def save_history(store: JsonStore, history: List[Result]) -> None:
    store.set(HISTORY_KEY, json.dumps([r.to_dict() for r in history]))


# ---------------------------------------------------------------------------
# Baseline
# ---------------------------------------------------------------------------

def load_baseline(store: JsonStore) -> Baseline:
    """Stored baseline, or the default plan if missing or malformed."""
    raw = store.get(BASELINE_KEY)
    if raw is None:
        return Baseline()
    try:
        data = json.loads(raw)
        if not isinstance(data, dict):
            raise ValueError("baseline is not an object")
        return Baseline.from_dict(data)
    except (ValueError, TypeError) as exc:
        LOGGER.error("Failed to parse baseline: %s", exc)
        return Baseline()


def save_baseline(store: JsonStore, baseline: Baseline) -> None:
    store.set(BASELINE_KEY, json.dumps(baseline.to_dict()))
