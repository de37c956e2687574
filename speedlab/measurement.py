"""
Phased measurement controller.

A run goes ``idle -> ping -> download -> upload -> done``.  Each phase lasts
the profile's duration and polls the sample source every ``sample_interval``
seconds; every ``display_interval`` seconds the mean of the last few raw
samples is published as the live value.  The finished result is always built
from the full, unsmoothed raw buffers.

Phase completion is decided by wall-clock time elapsed since the phase
started, never by counting samples, so a slow source only means fewer
samples, not a longer phase.
"""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, List, Optional

from .constants import (
    DEFAULT_PROFILE,
    DEFAULT_SERVER,
    DISPLAY_INTERVAL,
    PHASES,
    PROFILE_DURATIONS,
    SAMPLE_INTERVAL,
    SMOOTHING_WINDOW,
    TEST_SERVERS,
)
from .grading import grade_result
from .models import Baseline, Result, ResultStats, now_ms
from .quality import calculate_quality_metrics
from .sources import SampleSource
from .stats import calculate_detailed_stats, round_half_up

LOGGER = logging.getLogger(__name__)

IDLE = "idle"
DONE = "done"
CANCELLED = "cancelled"


class _RunCancelled(Exception):
    pass


# ---------------------------------------------------------------------------
# Run state
# ---------------------------------------------------------------------------

@dataclass
class MeasurementRun:
    """All mutable state of one measurement run."""

    phase_duration: float
    phase: str = IDLE
    progress: float = 0.0
    buffers: Dict[str, List[float]] = field(
        default_factory=lambda: {p: [] for p in PHASES}
    )
    display: Dict[str, List[float]] = field(
        default_factory=lambda: {p: [] for p in PHASES}
    )
    live: Dict[str, float] = field(default_factory=lambda: {p: 0.0 for p in PHASES})

    def smoothed(self, phase: str, window: int = SMOOTHING_WINDOW) -> float:
        """Mean of the last *window* raw samples of *phase*."""
        recent = self.buffers[phase][-window:]
        return sum(recent) / len(recent) if recent else 0.0

    def discard(self) -> None:
        for phase in PHASES:
            self.buffers[phase].clear()
            self.display[phase].clear()


def server_name(server_id: Optional[str]) -> str:
    for server in TEST_SERVERS:
        if server["id"] == server_id:
            return server["name"]
    return "Auto"


def finalize_run(
    buffers: Dict[str, List[float]],
    baseline: Baseline,
    *,
    network_type: Optional[str] = None,
    location: Optional[str] = None,
    server_id: Optional[str] = None,
    dns_lookup_time: Optional[float] = None,
    timestamp: Optional[int] = None,
) -> Result:
    """Reduce the three raw phase buffers into a finished :class:`Result`."""
    download_stats = calculate_detailed_stats(buffers["download"])
    upload_stats = calculate_detailed_stats(buffers["upload"])
    ping_stats = calculate_detailed_stats(buffers["ping"])

    quality = calculate_quality_metrics(
        buffers["ping"], buffers["download"], buffers["upload"], download_stats
    )

    # Medians, not means: transient probe failures must not drag the result.
    _, _, _, grade = grade_result(
        download_stats.median, upload_stats.median, ping_stats.median, baseline
    )

    return Result(
        timestamp=now_ms() if timestamp is None else timestamp,
        download=round_half_up(download_stats.median, 1),
        upload=round_half_up(upload_stats.median, 1),
        ping=int(round_half_up(ping_stats.median)),
        network_type=network_type,
        location=location or None,
        server_id=server_id,
        server_name=server_name(server_id),
        dns_lookup_time=dns_lookup_time,
        stats=ResultStats(
            download_stats=download_stats,
            upload_stats=upload_stats,
            ping_stats=ping_stats,
            jitter=quality.jitter,
            stability_score=quality.stability_score,
            grade=grade,
            trend_slope=quality.trend_slope,
        ),
    )


# ---------------------------------------------------------------------------
# Controller
# ---------------------------------------------------------------------------

class MeasurementController:
    """
    Drive one phased measurement at a time against a :class:`SampleSource`.

    Callbacks (all optional, called synchronously from the run task):

    * ``on_phase(phase)``              -- a phase started
    * ``on_progress(phase, percent)``  -- overall progress 0..100
    * ``on_live(phase, value)``        -- smoothed live value
    """

    def __init__(
        self,
        source: SampleSource,
        baseline: Optional[Baseline] = None,
        profile: str = DEFAULT_PROFILE,
        *,
        phase_duration: Optional[float] = None,
        sample_interval: float = SAMPLE_INTERVAL,
        display_interval: float = DISPLAY_INTERVAL,
        smoothing_window: int = SMOOTHING_WINDOW,
        clock: Callable[[], float] = time.perf_counter,
        dns_probe: Optional[Callable[[], Awaitable[Optional[float]]]] = None,
    ) -> None:
        if profile not in PROFILE_DURATIONS:
            raise ValueError(
                f"Unknown profile {profile!r}; expected one of {sorted(PROFILE_DURATIONS)}"
            )
        self.source = source
        self.baseline = baseline or Baseline()
        self.profile = profile
        self.phase_duration = (
            PROFILE_DURATIONS[profile] if phase_duration is None else phase_duration
        )
        self.sample_interval = sample_interval
        self.display_interval = display_interval
        self.smoothing_window = smoothing_window
        self.clock = clock
        self.dns_probe = dns_probe

        self.on_phase: Optional[Callable[[str], None]] = None
        self.on_progress: Optional[Callable[[str, float], None]] = None
        self.on_live: Optional[Callable[[str, float], None]] = None

        self.state = IDLE
        self.run: Optional[MeasurementRun] = None
        self._running = False
        self._cancel = asyncio.Event()

    @property
    def running(self) -> bool:
        return self._running

    @property
    def total_duration(self) -> float:
        return self.phase_duration * len(PHASES)

    # -- Public API ---------------------------------------------------------

    async def start(
        self,
        *,
        network_type: Optional[str] = None,
        location: Optional[str] = None,
        server_id: Optional[str] = DEFAULT_SERVER,
    ) -> Optional[Result]:
        """
        Run all three phases and return the finished result.

        Returns ``None`` without touching the active run if a measurement is
        already in progress, or if the run was cancelled.
        """
        if self._running:
            LOGGER.info("Measurement already running; start request ignored")
            return None

        self._running = True
        self._cancel.clear()
        run = MeasurementRun(phase_duration=self.phase_duration)
        self.run = run
        dns_task = asyncio.create_task(self.dns_probe()) if self.dns_probe else None

        try:
            await self.source.open()
            for index, phase in enumerate(PHASES):
                await self._run_phase(run, index, phase)

            result = finalize_run(
                run.buffers,
                self.baseline,
                network_type=network_type,
                location=location,
                server_id=server_id,
                dns_lookup_time=self._dns_value(dns_task),
            )
            run.phase = DONE
            self.state = DONE
            LOGGER.info(
                "Measurement done: down %.1f Mbps / up %.1f Mbps / ping %d ms (grade %s)",
                result.download,
                result.upload,
                result.ping,
                result.grade,
            )
            return result

        except _RunCancelled:
            run.discard()
            self.state = CANCELLED
            LOGGER.info("Measurement cancelled during %s phase", run.phase)
            return None
        except asyncio.CancelledError:
            run.discard()
            self.state = CANCELLED
            raise
        except Exception:
            run.discard()
            self.state = IDLE
            LOGGER.exception("Measurement failed during %s phase", run.phase)
            raise
        finally:
            if dns_task is not None and not dns_task.done():
                dns_task.cancel()
            try:
                await self.source.close()
            except Exception:
                LOGGER.warning("Closing the sample source failed", exc_info=True)
            finally:
                self._running = False

    def cancel(self) -> bool:
        """Abort the active run.  Returns False if nothing was running."""
        if not self._running:
            return False
        self._cancel.set()
        return True

    # -- Internals ----------------------------------------------------------

    async def _run_phase(self, run: MeasurementRun, index: int, phase: str) -> None:
        run.phase = phase
        self.state = phase
        if self.on_phase:
            self.on_phase(phase)

        buffer = run.buffers[phase]
        start = self.clock()
        last_sample = start
        last_display = start

        while True:
            if self._cancel.is_set():
                raise _RunCancelled()
            now = self.clock()
            elapsed = now - start
            phase_progress = (
                min(100.0, elapsed / self.phase_duration * 100)
                if self.phase_duration > 0 else 100.0
            )
            finishing = phase_progress >= 100

            # Only sample inside the phase window; an empty phase gets one.
            due = now - last_sample >= self.sample_interval
            if (due and not finishing) or (finishing and not buffer):
                last_sample = now
                buffer.append(await self._sample(phase))

            if buffer and (now - last_display >= self.display_interval or finishing):
                last_display = now
                live = run.smoothed(phase, self.smoothing_window)
                run.display[phase].append(live)
                run.live[phase] = live
                if self.on_live:
                    self.on_live(phase, live)

            run.progress = (index * 100 + phase_progress) / len(PHASES)
            if self.on_progress:
                self.on_progress(phase, run.progress)

            if finishing:
                break

            # Sleep until the next sample is due, waking early on cancel.
            wake = min(last_sample + self.sample_interval, start + self.phase_duration)
            try:
                await asyncio.wait_for(
                    self._cancel.wait(), timeout=max(0.0, wake - self.clock())
                )
                raise _RunCancelled()
            except asyncio.TimeoutError:
                pass

        await self.source.end_phase(phase)

    async def _sample(self, phase: str) -> float:
        """One reading from the source, abandoned as soon as cancel() is called."""
        sample_task = asyncio.ensure_future(self.source.sample(phase))
        cancel_task = asyncio.ensure_future(self._cancel.wait())
        try:
            await asyncio.wait(
                {sample_task, cancel_task}, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            for task in (sample_task, cancel_task):
                task.cancel()
            await asyncio.gather(sample_task, cancel_task, return_exceptions=True)

        if self._cancel.is_set():
            raise _RunCancelled()
        return sample_task.result()

    @staticmethod
    def _dns_value(task: Optional[asyncio.Task]) -> Optional[float]:
        if task is None or not task.done() or task.cancelled():
            return None
        exc = task.exception()
        if exc is not None:
            LOGGER.warning("DNS timing probe failed: %s", exc)
            return None
        return task.result()
