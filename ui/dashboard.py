"""
Rich-based terminal dashboard for SpeedLab results.

All number crunching lives in ``speedlab`` -- this module only does
presentation via the ``rich`` library.
"""
from __future__ import annotations

from typing import Dict, Optional, Sequence

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
)
from rich.table import Table

from speedlab.achievements import ACHIEVEMENTS, achievement_progress, unlocked_achievements
from speedlab.analytics import Anomaly, Insight, PeakAnalysis, WindowAverage, format_hour
from speedlab.grading import compare_with_baseline, condition_label, format_delta
from speedlab.history import chart_series, format_history_table, sparkline
from speedlab.models import Baseline, Result
from speedlab.stats import format_latency, format_speed

console = Console()

_PHASE_COLORS = {"ping": "green", "download": "red", "upload": "magenta"}
_INSIGHT_COLORS = {"success": "green", "warning": "yellow", "tip": "cyan", "info": "blue"}
_TIER_COLORS = {"bronze": "dark_orange3", "silver": "grey70", "gold": "gold1", "platinum": "cyan"}


def _live_text(phase: str, value: float) -> str:
    return format_latency(value) if phase == "ping" else format_speed(value)


# ---------------------------------------------------------------------------
# Print helpers
# ---------------------------------------------------------------------------

def print_header() -> None:
    console.print()
    console.print(
        Panel.fit(
            "[bold cyan]SpeedLab[/bold cyan]\n"
            "[dim]Network performance measurement and analysis[/dim]",
            border_style="cyan",
        )
    )
    console.print()


def print_final_results(result: Result, baseline: Optional[Baseline] = None) -> None:
    grade = result.grade or "N/A"
    label, color = condition_label(grade) if result.grade else ("Unrated", "dim")

    body = (
        f"[bold {color}]{grade}[/bold {color}]  [{color}]{label}[/{color}]\n\n"
        f"[bold white]   Download:[/bold white]  [bold red]{format_speed(result.download)}[/bold red]\n"
        f"[bold white]   Upload:[/bold white]    [bold magenta]{format_speed(result.upload)}[/bold magenta]\n"
        f"[bold white]   Ping:[/bold white]      [bold green]{format_latency(result.ping)}[/bold green]"
    )
    if result.stats:
        body += (
            f"\n\n[dim]Jitter: {result.stats.jitter:.1f} ms   "
            f"Stability: {result.stats.stability_score}%   "
            f"Trend: {result.stats.trend_slope:+.2f}[/dim]"
        )
    if result.dns_lookup_time is not None:
        body += f"\n[dim]DNS lookup: {result.dns_lookup_time:.0f} ms[/dim]"
    if baseline is not None:
        delta = compare_with_baseline(result, baseline)
        body += (
            "\n\nvs plan: "
            f"DL {format_delta(delta['download_delta'], 'Mbps')}  "
            f"UL {format_delta(delta['upload_delta'], 'Mbps')}  "
            f"Ping {format_delta(delta['ping_delta'], 'ms', invert=True)}"
        )

    console.print()
    console.print(
        Panel.fit(
            body,
            title=f"[bold]Results -- {result.server_name or 'Auto'}[/bold]",
            border_style="cyan",
        )
    )
    console.print()


def print_phase_stats(result: Result) -> None:
    """Detailed per-phase statistics table."""
    if result.stats is None:
        return
    table = Table(title="Phase Statistics", box=box.ROUNDED)
    table.add_column("Metric", style="bold")
    for name in ("Mean", "Median", "Min", "Max", "Std Dev", "P95", "P99"):
        table.add_column(name, justify="right")

    for title, stats in (
        ("Ping (ms)", result.stats.ping_stats),
        ("Download (Mbps)", result.stats.download_stats),
        ("Upload (Mbps)", result.stats.upload_stats),
    ):
        table.add_row(title, *(f"{v:.1f}" for v in stats.rounded(1).values()))
    console.print(table)


def print_history(entries: Sequence[Result]) -> None:
    if not entries:
        console.print("[dim]No test history yet.[/dim]")
        return

    table = Table(title=f"Test History ({len(entries)})", box=box.ROUNDED)
    table.add_column("ID", style="dim")
    table.add_column("Date")
    table.add_column("Server")
    table.add_column("Download", justify="right", style="red")
    table.add_column("Upload", justify="right", style="magenta")
    table.add_column("Ping", justify="right", style="green")
    table.add_column("Jitter", justify="right")
    table.add_column("Stability", justify="right")
    table.add_column("Grade", justify="center")

    for row in format_history_table(entries):
        table.add_row(
            row["id"][:8],
            row["timestamp"],
            row["server"],
            format_speed(row["download"]),
            format_speed(row["upload"]),
            format_latency(row["ping"]),
            f"{row['jitter']:.1f} ms" if row["jitter"] is not None else "N/A",
            f"{row['stability']}%" if row["stability"] is not None else "N/A",
            row["grade"],
        )
    console.print(table)

    series = chart_series(entries)
    console.print(f"  [red]DL[/red] {sparkline(series['download'])}")
    console.print(f"  [magenta]UL[/magenta] {sparkline(series['upload'])}")


def print_time_windows(windows: Optional[Dict[str, WindowAverage]]) -> None:
    if not windows:
        return
    table = Table(title="Averages", box=box.SIMPLE)
    table.add_column("Window", style="bold")
    table.add_column("Tests", justify="right")
    table.add_column("Download", justify="right")
    table.add_column("Upload", justify="right")
    table.add_column("Ping", justify="right")
    labels = {"last24h": "Last 24 h", "last7d": "Last 7 days", "last30d": "Last 30 days"}
    for key, avg in windows.items():
        table.add_row(
            labels.get(key, key),
            str(avg.count),
            format_speed(avg.avg_download),
            format_speed(avg.avg_upload),
            format_latency(avg.avg_ping),
        )
    console.print(table)


def print_peak_analysis(peak: Optional[PeakAnalysis]) -> None:
    if peak is None:
        console.print("[dim]Peak analysis needs 3+ tests across 2+ hours of the day.[/dim]")
        return
    console.print(
        f"  Best hour:  [green]{format_hour(peak.best_hour.hour)}[/green] "
        f"({format_speed(peak.best_hour.avg_download)})\n"
        f"  Worst hour: [red]{format_hour(peak.worst_hour.hour)}[/red] "
        f"({format_speed(peak.worst_hour.avg_download)})"
    )
    periods = "  ".join(
        f"{name.capitalize()}: {format_speed(value)}" for name, value in peak.period_averages.items()
    )
    console.print(f"  [dim]{periods}[/dim]")


def print_anomalies(anomalies: Sequence[Anomaly]) -> None:
    if not anomalies:
        return
    table = Table(title="Anomalies", box=box.SIMPLE)
    table.add_column("Result", style="dim")
    table.add_column("Type")
    table.add_column("Detail")
    table.add_column("Severity")
    for a in anomalies:
        color = "red" if a.severity == "critical" else "yellow"
        table.add_row(a.id[:8], a.type, a.message, f"[{color}]{a.severity}[/{color}]")
    console.print(table)


def print_insights(insights: Sequence[Insight]) -> None:
    for insight in insights:
        color = _INSIGHT_COLORS.get(insight.kind, "white")
        console.print(Panel(insight.message, title=insight.title, border_style=color))


def print_achievements(history: Sequence[Result]) -> None:
    progress = achievement_progress(history)
    unlocked = {a.id for a in unlocked_achievements(history)}

    table = Table(
        title=f"Achievements {progress['unlocked']}/{progress['total']} ({progress['percentage']}%)",
        box=box.ROUNDED,
    )
    table.add_column("", width=2)
    table.add_column("Name", style="bold")
    table.add_column("Description")
    table.add_column("Tier")
    for a in ACHIEVEMENTS:
        mark = "[green]✓[/green]" if a.id in unlocked else "[dim]·[/dim]"
        tier_color = _TIER_COLORS.get(a.tier, "white")
        table.add_row(mark, a.name, a.description, f"[{tier_color}]{a.tier}[/{tier_color}]")
    console.print(table)


# ---------------------------------------------------------------------------
# Progress display
# ---------------------------------------------------------------------------

class ProgressDisplay:
    """Manages a ``rich`` progress bar across the three measurement phases."""

    def __init__(self) -> None:
        self.progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold]{task.description}"),
            BarColumn(bar_width=40),
            TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
            TextColumn("[bold cyan]{task.fields[live]}[/bold cyan]"),
            TimeElapsedColumn(),
            console=console,
        )
        self._task_id = None

    def start(self, description: str = "Measuring") -> None:
        self.progress.start()
        self._task_id = self.progress.add_task(description, total=100, live="")

    def set_phase(self, phase: str) -> None:
        if self._task_id is None:
            return
        color = _PHASE_COLORS.get(phase, "white")
        self.progress.update(self._task_id, description=f"[{color}]{phase.upper()}[/{color}]", live="...")

    def update(self, phase: str, percent: float) -> None:
        if self._task_id is None:
            return
        self.progress.update(self._task_id, completed=percent)

    def set_live(self, phase: str, value: float) -> None:
        if self._task_id is None:
            return
        self.progress.update(self._task_id, live=_live_text(phase, value))

    def stop(self) -> None:
        self.progress.stop()
