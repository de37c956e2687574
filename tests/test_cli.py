"""Tests for the speedlab_cli entry point -- validation and one-shot modes."""

import os
import tempfile
import unittest
from unittest import mock

from speedlab.config import DEFAULTS
from speedlab.constants import DEFAULT_HISTORY_LIMIT, MAX_HISTORY_LIMIT, MIN_HISTORY_LIMIT
from speedlab.models import Baseline, Result
from speedlab.sources import PhaseRouter, SimulatedSource, WebSocketLatencySource
from speedlab.storage import JsonStore, load_baseline, load_history, save_history


class TestValidation(unittest.TestCase):
    """Test the _validate function from speedlab_cli.py."""

    def _validate(self, **kwargs):
        # Import here to avoid triggering side effects at module level
        from speedlab_cli import _validate
        defaults = {
            "profile": "standard",
            "history_limit": DEFAULT_HISTORY_LIMIT,
            "max_age_days": 0,
            "repeat": 1,
            "network_type": "wifi",
        }
        defaults.update(kwargs)
        return _validate(**defaults)

    def test_defaults_valid(self):
        # Should not raise
        self._validate()

    def test_unknown_profile(self):
        with self.assertRaises(ValueError):
            self._validate(profile="turbo")

    def test_history_limit_too_low(self):
        with self.assertRaises(ValueError):
            self._validate(history_limit=MIN_HISTORY_LIMIT - 1)

    def test_history_limit_too_high(self):
        with self.assertRaises(ValueError):
            self._validate(history_limit=MAX_HISTORY_LIMIT + 1)

    def test_history_limit_boundaries(self):
        self._validate(history_limit=MIN_HISTORY_LIMIT)
        self._validate(history_limit=MAX_HISTORY_LIMIT)

    def test_negative_max_age(self):
        with self.assertRaises(ValueError):
            self._validate(max_age_days=-1)

    def test_repeat_zero(self):
        with self.assertRaises(ValueError):
            self._validate(repeat=0)

    def test_unknown_network_type(self):
        with self.assertRaises(ValueError):
            self._validate(network_type="carrier-pigeon")


class TestBuildSource(unittest.TestCase):
    def test_simulated_by_default(self):
        from speedlab_cli import build_source
        self.assertIsInstance(build_source(), SimulatedSource)

    def test_websocket_latency(self):
        from speedlab_cli import build_source
        source = build_source(ws_url="wss://example.net:8080/ws")
        self.assertIsInstance(source, PhaseRouter)
        self.assertIsInstance(source.routes["ping"], WebSocketLatencySource)
        self.assertNotIn("download", source.routes)
        self.assertIsInstance(source.fallback, SimulatedSource)


class TestMain(unittest.TestCase):
    """Drive main() against a throwaway store."""

    def setUp(self):
        self._tmpdir = tempfile.TemporaryDirectory()
        self.path = os.path.join(self._tmpdir.name, "store.json")
        self.store = JsonStore(self.path)
        patches = [
            mock.patch("speedlab_cli.load_config", return_value=dict(DEFAULTS)),
            mock.patch("speedlab_cli.configure_logging"),
            mock.patch("speedlab_cli.JsonStore", side_effect=lambda: JsonStore(self.path)),
        ]
        for p in patches:
            p.start()
            self.addCleanup(p.stop)

    def tearDown(self):
        self._tmpdir.cleanup()

    def _main(self, *argv):
        from speedlab_cli import main
        main(list(argv))

    def test_set_baseline(self):
        self._main("--baseline", "500", "100", "8")
        self.assertEqual(load_baseline(self.store), Baseline(500, 100, 8))

    def test_invalid_baseline(self):
        with self.assertRaises(SystemExit) as ctx:
            self._main("--baseline", "0", "100", "8")
        self.assertEqual(ctx.exception.code, 1)

    def test_invalid_profile(self):
        with self.assertRaises(SystemExit):
            self._main("--profile", "turbo")

    def test_clear_history(self):
        save_history(self.store, [Result(download=1.0, upload=1.0, ping=1.0)])
        self._main("--clear-history")
        self.assertEqual(load_history(self.store), [])

    def test_delete_by_prefix(self):
        save_history(self.store, [
            Result(download=1.0, upload=1.0, ping=1.0, id="abc123"),
            Result(download=2.0, upload=2.0, ping=2.0, id="xyz789"),
        ])
        self._main("--delete", "abc")
        self.assertEqual([r.id for r in load_history(self.store)], ["xyz789"])

    def test_delete_no_match(self):
        with self.assertRaises(SystemExit):
            self._main("--delete", "nothing")

    def test_export_csv(self):
        save_history(self.store, [Result(download=1.0, upload=1.0, ping=1.0)])
        out = os.path.join(self._tmpdir.name, "out.csv")
        self._main("--export-csv", out)
        with open(out, encoding="utf-8") as fh:
            lines = fh.read().splitlines()
        self.assertTrue(lines[0].startswith("Timestamp,Date,Time"))
        self.assertEqual(len(lines), 2)

    def test_measurement_is_recorded(self):
        with mock.patch.dict("speedlab.measurement.PROFILE_DURATIONS", {"quick": 0.1}):
            self._main("--simple", "--profile", "quick", "--seed", "1")
        history = load_history(self.store)
        self.assertEqual(len(history), 1)
        self.assertIsNotNone(history[0].stats)
        self.assertEqual(history[0].network_type, "wifi")

    def test_incognito_measurement_not_recorded(self):
        with mock.patch.dict("speedlab.measurement.PROFILE_DURATIONS", {"quick": 0.1}):
            self._main("--simple", "--profile", "quick", "--incognito")
        self.assertEqual(load_history(self.store), [])


if __name__ == "__main__":
    unittest.main()
