#!/usr/bin/env python3
"""
SpeedLab CLI -- phased network measurement and history analytics.

Usage::

    python speedlab_cli.py                        # rich dashboard, standard profile
    python speedlab_cli.py --profile quick        # 3 x 5 s phases
    python speedlab_cli.py --simple               # plain text
    python speedlab_cli.py --json                 # result as JSON to stdout
    python speedlab_cli.py --incognito            # measure without recording
    python speedlab_cli.py --history              # show past results
    python speedlab_cli.py --analytics            # averages, peaks, anomalies, insights
    python speedlab_cli.py --achievements         # unlocked achievements
    python speedlab_cli.py --export-csv out.csv   # export history
    python speedlab_cli.py --baseline 300 50 15   # set plan download/upload/ping
    python speedlab_cli.py --serve --port 8080    # HTTP query endpoint
"""
from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
import time
from typing import List, Optional

import aiohttp
from websockets.exceptions import WebSocketException

from speedlab.analytics import (
    detect_anomalies,
    generate_insights,
    peak_analysis,
    time_window_averages,
)
from speedlab.config import load_config
from speedlab.constants import (
    DEFAULT_SERVER,
    MAX_HISTORY_LIMIT,
    MIN_HISTORY_LIMIT,
    NETWORK_TYPES,
    PROFILE_DURATIONS,
    TEST_SERVERS,
)
from speedlab.history import delete_result, prune_history, record_result
from speedlab.logging_setup import configure_logging
from speedlab.measurement import MeasurementController
from speedlab.models import Baseline, Result
from speedlab.sources import (
    HttpThroughputSource,
    PhaseRouter,
    SampleSource,
    SimulatedSource,
    WebSocketLatencySource,
    measure_dns_lookup,
)
from speedlab.storage import (
    JsonStore,
    load_baseline,
    load_history,
    save_baseline,
    save_history,
)
from ui.dashboard import (
    ProgressDisplay,
    console,
    print_achievements,
    print_anomalies,
    print_final_results,
    print_header,
    print_history,
    print_insights,
    print_peak_analysis,
    print_phase_stats,
    print_time_windows,
)
from ui.output import (
    default_export_name,
    export_csv,
    export_json,
    format_text_result,
    save_text,
)

LOGGER = logging.getLogger("speedlab.cli")


# ---------------------------------------------------------------------------
# Parameter validation
# ---------------------------------------------------------------------------

def _validate(
    profile: str,
    history_limit: int,
    max_age_days: float,
    repeat: int,
    network_type: str,
) -> None:
    """Raise ``ValueError`` if any parameter is out of range."""
    if profile not in PROFILE_DURATIONS:
        raise ValueError(f"Profile must be one of {', '.join(PROFILE_DURATIONS)}")
    if not MIN_HISTORY_LIMIT <= history_limit <= MAX_HISTORY_LIMIT:
        raise ValueError(
            f"History limit must be between {MIN_HISTORY_LIMIT} and {MAX_HISTORY_LIMIT}"
        )
    if max_age_days < 0:
        raise ValueError("Max age must be >= 0 days")
    if repeat < 1:
        raise ValueError("--repeat must be >= 1")
    if network_type not in NETWORK_TYPES:
        raise ValueError(f"Network type must be one of {', '.join(NETWORK_TYPES)}")


def build_source(
    ws_url: Optional[str] = None,
    download_url: Optional[str] = None,
    upload_url: Optional[str] = None,
    seed: Optional[int] = None,
) -> SampleSource:
    """Real probes for every phase given a URL, simulated readings elsewhere."""
    simulated = SimulatedSource(seed=seed)
    routes = {}
    if ws_url:
        routes["ping"] = WebSocketLatencySource(ws_url)
    if download_url or upload_url:
        http = HttpThroughputSource(download_url or "", upload_url or "")
        if download_url:
            routes["download"] = http
        if upload_url:
            routes["upload"] = http
    if not routes:
        return simulated
    return PhaseRouter(routes, fallback=simulated)


# ---------------------------------------------------------------------------
# Core test runner
# ---------------------------------------------------------------------------

async def run_measurement(
    source: SampleSource,
    baseline: Baseline,
    *,
    profile: str,
    server_id: str = DEFAULT_SERVER,
    network_type: Optional[str] = None,
    location: Optional[str] = None,
    measure_dns: bool = False,
    show_ui: bool = True,
) -> Optional[Result]:
    """Execute one phased measurement with an optional live dashboard."""
    controller = MeasurementController(
        source,
        baseline,
        profile,
        dns_probe=measure_dns_lookup if measure_dns else None,
    )

    progress = ProgressDisplay() if show_ui else None
    if progress:
        controller.on_phase = progress.set_phase
        controller.on_progress = progress.update
        controller.on_live = progress.set_live
        progress.start()

    try:
        return await controller.start(
            network_type=network_type,
            location=location,
            server_id=server_id,
        )
    finally:
        if progress:
            progress.stop()


def _report(result: Result, baseline: Baseline, json_output: bool, simple: bool) -> None:
    if json_output:
        print(json.dumps(result.to_dict(), indent=2))
    elif simple:
        print(format_text_result(result))
    else:
        print_final_results(result, baseline)
        print_phase_stats(result)


def _show_analytics(history: List[Result], baseline: Baseline) -> None:
    now = int(time.time() * 1000)
    console.print("\n[bold]Performance over time[/bold]")
    print_time_windows(time_window_averages(history, now))
    console.print("\n[bold]Peak hours[/bold]")
    print_peak_analysis(peak_analysis(history))
    print_anomalies(detect_anomalies(history))
    insights = generate_insights(history, baseline, now)
    if insights:
        console.print("\n[bold]Insights[/bold]")
        print_insights(insights)


def _export(text: str, path: str, extension: str) -> None:
    target = path or default_export_name(extension)
    save_text(text, target)
    console.print(f"[green]History exported to:[/green] {target}")


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

def build_parser(config: dict) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="SpeedLab -- network performance measurement and analysis",
    )
    # Output modes
    parser.add_argument("--json", "-j", action="store_true", help="Output the result as JSON")
    parser.add_argument("--simple", "-s", action="store_true", help="Plain text output (no dashboard)")

    # Measurement
    parser.add_argument("--profile", "-p", default=config["profile"], help="quick, standard or extended")
    parser.add_argument("--server", default=config["server"], choices=[s["id"] for s in TEST_SERVERS], help="Test server id")
    parser.add_argument("--network-type", default=config["network_type"], help="wifi, ethernet, mobile or unknown")
    parser.add_argument("--location", default=config["location"], help="Location tag stored with the result")
    parser.add_argument("--incognito", action="store_true", default=config["incognito"], help="Do not record the result in history")
    parser.add_argument("--dns", action="store_true", help="Also time DNS lookups")
    parser.add_argument("--ws-url", metavar="URL", help="WebSocket endpoint for latency samples")
    parser.add_argument("--download-url", metavar="URL", help="HTTPS endpoint for download samples")
    parser.add_argument("--upload-url", metavar="URL", help="HTTPS endpoint for upload samples")
    parser.add_argument("--seed", type=int, help="Seed for simulated samples")

    # Repeat mode
    parser.add_argument("--repeat", type=int, default=1, metavar="N", help="Run the test N times (default: 1)")
    parser.add_argument("--interval", type=float, default=60.0, metavar="SECS", help="Seconds between repeated tests (default: 60)")

    # History & analytics
    parser.add_argument("--history", action="store_true", help="Show past test results and exit")
    parser.add_argument("--analytics", action="store_true", help="Show history analytics and exit")
    parser.add_argument("--achievements", action="store_true", help="Show achievements and exit")
    parser.add_argument("--export-csv", nargs="?", const="", metavar="FILE", help="Export history as CSV and exit")
    parser.add_argument("--export-json", nargs="?", const="", metavar="FILE", help="Export history as JSON and exit")
    parser.add_argument("--delete", metavar="ID", help="Delete one result (id or unique prefix) and exit")
    parser.add_argument("--clear-history", action="store_true", help="Delete all results and exit")
    parser.add_argument("--history-limit", type=int, default=config["history_limit"], metavar="N", help="Results kept in history")
    parser.add_argument("--max-age-days", type=float, default=config["max_age_days"], metavar="DAYS", help="Drop results older than this (0 = keep)")

    # Baseline
    parser.add_argument("--baseline", nargs=3, type=float, metavar=("DOWN", "UP", "PING"), help="Set expected plan values and exit")

    # Endpoint
    parser.add_argument("--serve", action="store_true", help="Run the HTTP query endpoint")
    parser.add_argument("--host", default="127.0.0.1", help="Endpoint bind address")
    parser.add_argument("--port", type=int, default=8080, help="Endpoint port")

    # Logging
    parser.add_argument("--log-level", default=config["log_level"], help="Logging level")
    parser.add_argument("--log-file", default=config["log_file"], help="Optional rotating log file")
    return parser


def _resolve_id(history: List[Result], prefix: str) -> Optional[str]:
    matches = [r.id for r in history if r.id.startswith(prefix)]
    return matches[0] if len(matches) == 1 else None


def main(argv: Optional[List[str]] = None) -> None:
    config = load_config()
    args = build_parser(config).parse_args(argv)
    configure_logging(args.log_level, args.log_file or None)

    try:
        _validate(
            profile=args.profile,
            history_limit=args.history_limit,
            max_age_days=args.max_age_days,
            repeat=args.repeat,
            network_type=args.network_type,
        )
        baseline = (
            Baseline(*args.baseline) if args.baseline else None
        )
    except ValueError as exc:
        console.print(f"[red]Error: {exc}[/red]")
        sys.exit(1)

    store = JsonStore()
    history = prune_history(load_history(store), args.max_age_days)[: args.history_limit]

    # -- One-shot modes -----------------------------------------------------
    if baseline is not None:
        save_baseline(store, baseline)
        console.print(
            f"[green]Baseline saved:[/green] {baseline.expected_download:g} / "
            f"{baseline.expected_upload:g} Mbps, {baseline.expected_ping:g} ms"
        )
        return

    baseline = load_baseline(store)

    if args.serve:
        from speedlab.api import run_server
        run_server(args.host, args.port)
        return

    if args.history:
        print_history(history)
        return

    if args.analytics:
        _show_analytics(history, baseline)
        return

    if args.achievements:
        print_achievements(history)
        return

    if args.export_csv is not None:
        _export(export_csv(history), args.export_csv, "csv")
        return

    if args.export_json is not None:
        _export(export_json(history), args.export_json, "json")
        return

    if args.clear_history:
        save_history(store, [])
        console.print("[green]History cleared.[/green]")
        return

    if args.delete:
        result_id = _resolve_id(history, args.delete)
        if result_id is None:
            console.print(f"[red]Error: no unique result matches {args.delete!r}[/red]")
            sys.exit(1)
        save_history(store, delete_result(history, result_id))
        console.print(f"[green]Deleted result {result_id}[/green]")
        return

    # -- Measurement (with repeat support) ----------------------------------
    show_ui = not args.json and not args.simple
    if show_ui:
        print_header()

    try:
        for run_idx in range(args.repeat):
            if args.repeat > 1 and show_ui:
                console.print(f"\n[bold cyan]--- Run {run_idx + 1}/{args.repeat} ---[/bold cyan]")

            source = build_source(args.ws_url, args.download_url, args.upload_url, args.seed)
            result = asyncio.run(
                run_measurement(
                    source,
                    baseline,
                    profile=args.profile,
                    server_id=args.server,
                    network_type=args.network_type,
                    location=args.location or None,
                    measure_dns=args.dns,
                    show_ui=show_ui,
                )
            )
            if result is None:
                continue

            _report(result, baseline, args.json, args.simple)
            history = record_result(
                history, result, incognito=args.incognito, limit=args.history_limit
            )
            if args.incognito:
                LOGGER.info("Incognito run; result %s not recorded", result.id)
            else:
                save_history(store, history)

            if run_idx < args.repeat - 1:
                if show_ui:
                    console.print(f"[dim]Next run in {args.interval:.0f}s...[/dim]")
                time.sleep(args.interval)

    except KeyboardInterrupt:
        console.print("\n[yellow]Test cancelled by user[/yellow]")
        sys.exit(1)
    except (OSError, asyncio.TimeoutError, aiohttp.ClientError, WebSocketException) as exc:
        LOGGER.debug("Measurement aborted", exc_info=True)
        console.print(f"\n[red]Error: {exc}[/red]")
        sys.exit(1)


if __name__ == "__main__":
    main()
