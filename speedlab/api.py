"""
HTTP query endpoint.

A thin ``aiohttp.web`` application returning one result-shaped payload per
request::

    GET  /api/speed[?format=jsonp&callback=fn]
    POST /api/speed   {"serverId": "eu-west", "testType": "ping-only"}

Grades here use the absolute point scheme (:func:`speedlab.grading.score_grade`),
not the baseline-relative scheme of the phased measurement.
"""
from __future__ import annotations

import json
import logging
import random
import re
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from aiohttp import web

from .grading import score_grade
from .stats import round_half_up

LOGGER = logging.getLogger(__name__)

API_VERSION = "1.0.0"

UNITS = {"download": "Mbps", "upload": "Mbps", "ping": "ms", "jitter": "ms"}

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
}

_CALLBACK_RE = re.compile(r"^[A-Za-z_$][\w$.]*$")

Snapshot = Callable[[], Dict[str, Any]]

SNAPSHOT_KEY = web.AppKey("snapshot", object)


def _iso_now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def simulate_snapshot(rng: Optional[random.Random] = None) -> Dict[str, Any]:
    """One plausible measurement: download 50-200 Mbps, upload 20-50% of it."""
    rng = rng or random.Random()
    download = (50 + rng.random() * 150) * (0.9 + rng.random() * 0.2)
    upload = download * (0.2 + rng.random() * 0.3) * (0.9 + rng.random() * 0.2)
    ping = 5 + rng.random() * 45
    jitter = 0.5 + rng.random() * 9.5

    return {
        "download": round_half_up(download, 2),
        "upload": round_half_up(upload, 2),
        "ping": round_half_up(ping, 2),
        "jitter": round_half_up(jitter, 2),
        "timestamp": _iso_now(),
        "server": {"id": "auto", "name": "Auto (Best)", "location": "Nearest Server"},
    }


def _full_payload(results: Dict[str, Any]) -> Dict[str, Any]:
    grade = score_grade(results["download"], results["upload"], results["ping"], results["jitter"])
    return {**results, "grade": grade, "units": dict(UNITS)}


def _error(message: str, code: str, status: int = 400) -> web.Response:
    return web.json_response(
        {"success": False, "error": message, "code": code},
        status=status,
        headers={"Access-Control-Allow-Origin": "*"},
    )


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------

async def handle_get(request: web.Request) -> web.Response:
    snapshot: Snapshot = request.app[SNAPSHOT_KEY]
    response = {
        "success": True,
        "data": _full_payload(snapshot()),
        "meta": {
            "version": API_VERSION,
            "timestamp": _iso_now(),
            "testDuration": "~5 seconds",
        },
    }

    fmt = request.query.get("format", "json")
    callback = request.query.get("callback")
    if fmt == "jsonp" and callback:
        if not _CALLBACK_RE.match(callback):
            return _error("Invalid callback name", "INVALID_CALLBACK")
        return web.Response(
            text=f"{callback}({json.dumps(response)})",
            content_type="application/javascript",
            headers={"Access-Control-Allow-Origin": "*"},
        )

    return web.json_response(response, headers=CORS_HEADERS)


async def handle_post(request: web.Request) -> web.Response:
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        LOGGER.info("Rejected POST /api/speed with unparsable body")
        return _error("Invalid request body", "INVALID_BODY")

    if not isinstance(body, dict):
        return _error("Invalid request body", "INVALID_BODY")

    server_id = body.get("serverId")
    test_type = body.get("testType")
    if server_id is not None and not isinstance(server_id, str):
        return _error("serverId must be a string", "INVALID_FIELD")
    if test_type is not None and not isinstance(test_type, str):
        return _error("testType must be a string", "INVALID_FIELD")

    snapshot: Snapshot = request.app[SNAPSHOT_KEY]
    results = snapshot()
    if server_id and server_id != "auto":
        results["server"] = {**results["server"], "id": server_id, "name": f"Server {server_id}"}

    if test_type == "ping-only":
        data = {
            "ping": results["ping"],
            "jitter": results["jitter"],
            "timestamp": results["timestamp"],
            "server": results["server"],
        }
    else:
        data = _full_payload(results)

    return web.json_response(
        {"success": True, "data": data},
        headers={"Access-Control-Allow-Origin": "*"},
    )


async def handle_options(request: web.Request) -> web.Response:
    return web.Response(status=204, headers=CORS_HEADERS)


# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------

def create_app(snapshot: Optional[Snapshot] = None) -> web.Application:
    app = web.Application()
    app[SNAPSHOT_KEY] = snapshot or simulate_snapshot
    app.router.add_get("/api/speed", handle_get)
    app.router.add_post("/api/speed", handle_post)
    app.router.add_route("OPTIONS", "/api/speed", handle_options)
    return app


def run_server(host: str = "127.0.0.1", port: int = 8080) -> None:
    LOGGER.info("Serving /api/speed on http://%s:%d", host, port)
    web.run_app(create_app(), host=host, port=port, print=None)
