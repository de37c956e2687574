"""
User configuration file support.

Reads/writes ``~/.speedlab/config.json``.

Supported keys::

    profile = "standard"     # quick | standard | extended
    server = "auto"          # test server id
    network_type = "wifi"    # wifi | ethernet | mobile | unknown
    location = ""            # free-form tag stored on each result
    history_limit = 50       # results kept in history
    max_age_days = 0         # drop older results (0 = keep forever)
    incognito = false        # never record results
    log_level = "WARNING"
    log_file = ""            # optional rotating log file
"""
from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict

from .constants import DEFAULT_HISTORY_LIMIT, DEFAULT_PROFILE, DEFAULT_SERVER

LOGGER = logging.getLogger(__name__)

_CONFIG_DIR = os.path.join(Path.home(), ".speedlab")
_CONFIG_FILE = "config.json"


def _config_path() -> str:
    return os.path.join(_CONFIG_DIR, _CONFIG_FILE)


# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------

DEFAULTS: Dict[str, Any] = {
    "profile": DEFAULT_PROFILE,
    "server": DEFAULT_SERVER,
    "network_type": "wifi",
    "location": "",
    "history_limit": DEFAULT_HISTORY_LIMIT,
    "max_age_days": 0,
    "incognito": False,
    "log_level": "WARNING",
    "log_file": "",
}


# ---------------------------------------------------------------------------
# Read / Write
# ---------------------------------------------------------------------------

def load_config() -> Dict[str, Any]:
    """Load config from disk, returning defaults for missing keys."""
    path = _config_path()
    config = dict(DEFAULTS)

    if not os.path.isfile(path):
        return config

    try:
        with open(path, encoding="utf-8") as fh:
            user = json.load(fh)
        if isinstance(user, dict):
            config.update(user)
    except (json.JSONDecodeError, OSError) as exc:
        LOGGER.warning("Ignoring corrupt config %s: %s", path, exc)

    return config


def save_config(config: Dict[str, Any]) -> str:
    """Write *config* to disk.  Returns the file path."""
    path = _config_path()
    os.makedirs(os.path.dirname(path), exist_ok=True)

    with open(path, "w", encoding="utf-8") as fh:
        json.dump(config, fh, indent=2, ensure_ascii=False)

    return path


def get_config_value(key: str) -> Any:
    """Get a single config value."""
    return load_config().get(key, DEFAULTS.get(key))


def set_config_value(key: str, value: Any) -> str:
    """Set a single config value and persist.  Returns file path."""
    if key not in DEFAULTS:
        raise ValueError(f"Unknown config key: {key}")
    config = load_config()
    config[key] = value
    return save_config(config)


def config_path() -> str:
    """Return the config file path (for display purposes)."""
    return _config_path()
