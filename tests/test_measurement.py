"""Tests for speedlab.measurement -- the phased measurement controller."""

import asyncio
import time
import unittest

from speedlab.constants import PHASES
from speedlab.grading import GRADES
from speedlab.history import record_result
from speedlab.measurement import (
    CANCELLED,
    DONE,
    IDLE,
    MeasurementController,
    MeasurementRun,
    finalize_run,
    server_name,
)
from speedlab.models import Baseline, Result
from speedlab.sources import SampleSource, SimulatedSource

PHASE = 0.2
SAMPLE = 0.02
DISPLAY = 0.06


class RecordingSource(SampleSource):
    """Fixed readings per phase; records lifecycle calls."""

    def __init__(self, values=None, delay=0.0, fail_in=None):
        self.values = values or {"ping": 12.0, "download": 200.0, "upload": 40.0}
        self.delay = delay
        self.fail_in = fail_in
        self.calls = []

    async def open(self):
        self.calls.append("open")

    async def close(self):
        self.calls.append("close")

    async def end_phase(self, phase):
        self.calls.append(f"end:{phase}")

    async def sample(self, phase):
        if self.delay:
            await asyncio.sleep(self.delay)
        if phase == self.fail_in:
            raise ConnectionError("probe lost")
        return self.values[phase]


def _controller(source, **kwargs):
    kwargs.setdefault("phase_duration", PHASE)
    kwargs.setdefault("sample_interval", SAMPLE)
    kwargs.setdefault("display_interval", DISPLAY)
    return MeasurementController(source, Baseline(), **kwargs)


class TestMeasurementRun(unittest.TestCase):
    def test_smoothed_uses_last_samples(self):
        run = MeasurementRun(phase_duration=1.0)
        run.buffers["download"].extend([10.0, 20.0, 30.0, 40.0])
        self.assertAlmostEqual(run.smoothed("download", 3), 30.0)

    def test_smoothed_empty(self):
        self.assertEqual(MeasurementRun(phase_duration=1.0).smoothed("ping"), 0.0)

    def test_discard(self):
        run = MeasurementRun(phase_duration=1.0)
        run.buffers["ping"].append(1.0)
        run.display["ping"].append(1.0)
        run.discard()
        self.assertEqual(run.buffers["ping"], [])
        self.assertEqual(run.display["ping"], [])


class TestFinalizeRun(unittest.TestCase):
    def test_rounding_and_medians(self):
        buffers = {
            "ping": [12.0, 13.0],            # median 12.5 -> 13
            "download": [100.0, 100.5],      # median 100.25 -> 100.3
            "upload": [10.0, 30.0, 20.0],    # median 20
        }
        result = finalize_run(buffers, Baseline(), server_id="eu-west", timestamp=1000)
        self.assertEqual(result.ping, 13)
        self.assertAlmostEqual(result.download, 100.3)
        self.assertAlmostEqual(result.upload, 20.0)
        self.assertEqual(result.timestamp, 1000)
        self.assertEqual(result.server_name, "EU West")

    def test_stats_from_raw_buffers(self):
        buffers = {"ping": [10.0, 15.0, 12.0], "download": [300.0] * 5, "upload": [50.0] * 5}
        result = finalize_run(buffers, Baseline(300, 50, 15))
        self.assertAlmostEqual(result.stats.jitter, 4.0)
        self.assertEqual(result.stats.stability_score, 100)
        self.assertEqual(result.stats.download_stats.max, 300.0)
        # A, A, B -> (4.0 + 4.0 + 3.0) / 3 = 3.67 -> A
        self.assertEqual(result.grade, "A")

    def test_unknown_server(self):
        self.assertEqual(server_name("mars-1"), "Auto")
        self.assertEqual(server_name(None), "Auto")


class TestControllerConfig(unittest.TestCase):
    def test_unknown_profile(self):
        with self.assertRaises(ValueError):
            MeasurementController(SimulatedSource(), profile="turbo")

    def test_profile_duration(self):
        c = MeasurementController(SimulatedSource(), profile="quick")
        self.assertEqual(c.phase_duration, 5.0)
        self.assertEqual(c.total_duration, 15.0)

    def test_default_baseline(self):
        c = MeasurementController(SimulatedSource())
        self.assertEqual(c.baseline, Baseline())
        self.assertEqual(c.state, IDLE)


class TestControllerRun(unittest.IsolatedAsyncioTestCase):
    async def test_completes_within_duration(self):
        source = RecordingSource()
        controller = _controller(source)

        start = time.perf_counter()
        result = await controller.start(network_type="wifi", location="Office")
        elapsed = time.perf_counter() - start

        self.assertIsInstance(result, Result)
        self.assertLess(elapsed, controller.total_duration + 0.5)
        self.assertEqual(controller.state, DONE)
        self.assertFalse(controller.running)
        self.assertIn(result.grade, GRADES)
        self.assertEqual(result.download, 200.0)
        self.assertEqual(result.ping, 12)
        self.assertEqual(result.network_type, "wifi")
        self.assertEqual(result.location, "Office")
        for phase in PHASES:
            self.assertTrue(controller.run.buffers[phase])

    async def test_source_lifecycle(self):
        source = RecordingSource()
        await _controller(source).start()
        self.assertEqual(source.calls[0], "open")
        self.assertEqual(source.calls[-1], "close")
        self.assertEqual(
            [c for c in source.calls if c.startswith("end:")],
            ["end:ping", "end:download", "end:upload"],
        )

    async def test_appends_exactly_one_result(self):
        history = []
        result = await _controller(RecordingSource()).start()
        history = record_result(history, result)
        self.assertEqual(len(history), 1)
        self.assertIs(history[0], result)

    async def test_incognito_leaves_history_unchanged(self):
        existing = [Result(download=1.0, upload=1.0, ping=1.0)]
        result = await _controller(RecordingSource()).start()
        history = record_result(existing, result, incognito=True)
        self.assertEqual(history, existing)

    async def test_progress_monotone_and_complete(self):
        controller = _controller(RecordingSource())
        seen = []
        phases = []
        controller.on_progress = lambda phase, pct: seen.append(pct)
        controller.on_phase = phases.append

        await controller.start()

        self.assertEqual(phases, list(PHASES))
        self.assertTrue(seen)
        self.assertEqual(seen, sorted(seen))
        self.assertAlmostEqual(seen[-1], 100.0)
        self.assertGreaterEqual(seen[0], 0.0)

    async def test_live_values_are_smoothed(self):
        controller = _controller(RecordingSource())
        live = []
        controller.on_live = lambda phase, value: live.append((phase, value))

        await controller.start()

        downloads = [v for p, v in live if p == "download"]
        self.assertTrue(downloads)
        for value in downloads:
            self.assertAlmostEqual(value, 200.0)
        # Display cadence is coarser than the sample cadence.
        self.assertLess(len(controller.run.display["ping"]), len(controller.run.buffers["ping"]))

    async def test_concurrent_start_is_ignored(self):
        controller = _controller(RecordingSource())
        task = asyncio.create_task(controller.start())
        await asyncio.sleep(0.05)

        active = controller.run
        before = list(active.buffers["ping"])
        second = await controller.start()

        self.assertIsNone(second)
        self.assertIs(controller.run, active)
        self.assertEqual(active.buffers["ping"][: len(before)], before)
        self.assertIsInstance(await task, Result)

    async def test_cancel(self):
        controller = _controller(RecordingSource())
        task = asyncio.create_task(controller.start())
        await asyncio.sleep(0.1)

        self.assertTrue(controller.cancel())
        result = await task

        self.assertIsNone(result)
        self.assertEqual(controller.state, CANCELLED)
        self.assertFalse(controller.running)
        for phase in PHASES:
            self.assertEqual(controller.run.buffers[phase], [])

    async def test_cancel_interrupts_stalled_sample(self):
        source = RecordingSource(delay=5.0)
        controller = _controller(source)
        task = asyncio.create_task(controller.start())
        await asyncio.sleep(0.1)

        controller.cancel()
        result = await asyncio.wait_for(task, timeout=1.0)

        self.assertIsNone(result)
        self.assertEqual(controller.state, CANCELLED)
        self.assertFalse(controller.running)
        self.assertEqual(source.calls[-1], "close")

    async def test_cancel_when_idle(self):
        self.assertFalse(_controller(RecordingSource()).cancel())

    async def test_restart_after_cancel(self):
        controller = _controller(RecordingSource())
        task = asyncio.create_task(controller.start())
        await asyncio.sleep(0.05)
        controller.cancel()
        self.assertIsNone(await task)

        self.assertIsInstance(await controller.start(), Result)

    async def test_slow_source_does_not_extend_phases(self):
        delay = 0.15
        source = RecordingSource(delay=delay)
        controller = _controller(source)

        start = time.perf_counter()
        result = await controller.start()
        elapsed = time.perf_counter() - start

        self.assertIsInstance(result, Result)
        # At most one in-flight sample overruns each phase.
        self.assertLess(elapsed, controller.total_duration + len(PHASES) * delay + 0.5)
        self.assertLessEqual(len(controller.run.buffers["download"]), 3)

    async def test_phase_end_samples_only_an_empty_buffer(self):
        controller = _controller(RecordingSource(), phase_duration=0.1, sample_interval=0.5)
        await controller.start()
        for phase in PHASES:
            self.assertEqual(len(controller.run.buffers[phase]), 1)

    async def test_close_failure_releases_controller(self):
        class BrokenClose(RecordingSource):
            async def close(self):
                raise OSError("socket already gone")

        controller = _controller(BrokenClose())
        self.assertIsInstance(await controller.start(), Result)
        self.assertFalse(controller.running)
        self.assertIsInstance(await controller.start(), Result)

    async def test_source_failure_propagates(self):
        source = RecordingSource(fail_in="download")
        controller = _controller(source)

        with self.assertRaises(ConnectionError):
            await controller.start()

        self.assertFalse(controller.running)
        self.assertEqual(controller.state, IDLE)
        self.assertEqual(source.calls[-1], "close")
        self.assertEqual(controller.run.buffers["ping"], [])

    async def test_dns_probe(self):
        async def probe():
            return 23.0

        result = await _controller(RecordingSource(), dns_probe=probe).start()
        self.assertEqual(result.dns_lookup_time, 23.0)

    async def test_failing_dns_probe_is_ignored(self):
        async def probe():
            raise OSError("no resolver")

        result = await _controller(RecordingSource(), dns_probe=probe).start()
        self.assertIsInstance(result, Result)
        self.assertIsNone(result.dns_lookup_time)

    async def test_simulated_source_ranges(self):
        result = await _controller(SimulatedSource(seed=7)).start()
        self.assertGreaterEqual(result.ping, 5)
        self.assertLessEqual(result.ping, 30)
        self.assertGreaterEqual(result.download, 60)
        self.assertLessEqual(result.download, 260)
        self.assertGreaterEqual(result.upload, 20)
        self.assertLessEqual(result.upload, 130)


if __name__ == "__main__":
    unittest.main()
