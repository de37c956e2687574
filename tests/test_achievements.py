"""Tests for speedlab.achievements -- the achievement catalogue."""

import unittest

from speedlab.achievements import (
    ACHIEVEMENTS,
    TIERS,
    achievement_progress,
    unlocked_achievements,
)
from speedlab.models import Result, ResultStats
from speedlab.stats import DetailedStats


def _stats(grade="B", jitter=8.0, stability=70):
    return ResultStats(
        download_stats=DetailedStats(),
        upload_stats=DetailedStats(),
        ping_stats=DetailedStats(),
        jitter=jitter,
        stability_score=stability,
        grade=grade,
        trend_slope=0.0,
    )


def _result(download=50.0, ping=40.0, **kwargs):
    return Result(download=download, upload=10.0, ping=ping, **kwargs)


def _ids(history):
    return {a.id for a in unlocked_achievements(history)}


class TestCatalogue(unittest.TestCase):
    def test_sixteen_unique(self):
        self.assertEqual(len(ACHIEVEMENTS), 16)
        self.assertEqual(len({a.id for a in ACHIEVEMENTS}), 16)

    def test_tiers(self):
        for a in ACHIEVEMENTS:
            self.assertIn(a.tier, TIERS)

    def test_empty_history(self):
        self.assertEqual(unlocked_achievements([]), [])


class TestPredicates(unittest.TestCase):
    def test_first_test(self):
        self.assertEqual(_ids([_result()]), {"first_test"})

    def test_speed_milestones(self):
        ids = _ids([_result(download=600.0)])
        self.assertIn("speed_demon", ids)
        self.assertIn("century_club", ids)
        self.assertNotIn("gigabit_glory", ids)

    def test_latency(self):
        ids = _ids([_result(ping=8.0)])
        self.assertIn("quick_reflexes", ids)
        self.assertIn("low_latency", ids)

    def test_test_counts(self):
        ids = _ids([_result() for _ in range(10)])
        self.assertIn("dedicated_tester", ids)
        self.assertNotIn("data_collector", ids)

    def test_gaming_ready_needs_stats(self):
        self.assertNotIn("gaming_ready", _ids([_result()]))
        self.assertIn("gaming_ready", _ids([_result(stats=_stats(jitter=2.0))]))

    def test_rock_solid(self):
        history = [_result(stats=_stats(stability=96)) for _ in range(3)]
        ids = _ids(history)
        self.assertIn("rock_solid", ids)
        self.assertIn("stable_connection", ids)

    def test_consistent_performer(self):
        history = [_result(stats=_stats(grade="A")) for _ in range(5)]
        self.assertIn("consistent_performer", _ids(history))

        history[2] = _result(stats=_stats(grade="B"))
        self.assertNotIn("consistent_performer", _ids(history))

    def test_network_explorer(self):
        history = [_result(network_type=t) for t in ("wifi", "ethernet", "mobile")]
        self.assertIn("network_explorer", _ids(history))
        self.assertNotIn("network_explorer", _ids(history[:2]))

    def test_home_mapper(self):
        history = [_result(location=loc) for loc in ("Office", "Kitchen", "Garage")]
        self.assertIn("home_mapper", _ids(history))

    def test_recomputed_from_history(self):
        history = [_result(download=600.0), _result()]
        self.assertIn("speed_demon", _ids(history))
        self.assertNotIn("speed_demon", _ids(history[1:]))


class TestProgress(unittest.TestCase):
    def test_progress(self):
        progress = achievement_progress([_result(download=150.0)])
        self.assertEqual(progress["total"], 16)
        self.assertEqual(progress["unlocked"], 2)
        self.assertEqual(progress["percentage"], 13)
        self.assertEqual(progress["by_tier"]["bronze"], 2)
        self.assertEqual(progress["by_tier"]["gold"], 0)


if __name__ == "__main__":
    unittest.main()
