"""Tests for speedlab.history -- retention and display helpers."""

import unittest

from speedlab.history import (
    add_result,
    chart_series,
    delete_result,
    format_history_table,
    prune_history,
    record_result,
    sparkline,
)
from speedlab.models import Result, ResultStats
from speedlab.stats import DetailedStats

DAY_MS = 24 * 60 * 60 * 1000


def _result(download=100.0, timestamp=0, id=None, **kwargs):
    if id is None:
        id = f"r{timestamp}-{download}"
    return Result(download=download, upload=50.0, ping=10.0, id=id, timestamp=timestamp, **kwargs)


class TestAddResult(unittest.TestCase):
    def test_newest_first(self):
        old = _result(timestamp=1)
        new = _result(timestamp=2)
        history = add_result([old], new)
        self.assertEqual(history, [new, old])

    def test_limit(self):
        history = [_result(timestamp=i) for i in range(5)]
        capped = add_result(history, _result(timestamp=99), limit=3)
        self.assertEqual(len(capped), 3)
        self.assertEqual(capped[0].timestamp, 99)

    def test_does_not_mutate_input(self):
        history = [_result(timestamp=1)]
        add_result(history, _result(timestamp=2))
        self.assertEqual(len(history), 1)


class TestRecordResult(unittest.TestCase):
    def test_records(self):
        self.assertEqual(len(record_result([], _result())), 1)

    def test_cancelled_run(self):
        history = [_result(timestamp=1)]
        self.assertEqual(record_result(history, None), history)

    def test_incognito(self):
        history = [_result(timestamp=1)]
        self.assertEqual(record_result(history, _result(timestamp=2), incognito=True), history)


class TestPruneAndDelete(unittest.TestCase):
    def test_prune_by_age(self):
        now = 100 * DAY_MS
        history = [_result(timestamp=now - DAY_MS), _result(timestamp=now - 10 * DAY_MS)]
        pruned = prune_history(history, 7, now=now)
        self.assertEqual(len(pruned), 1)
        self.assertEqual(pruned[0].timestamp, now - DAY_MS)

    def test_zero_keeps_all(self):
        history = [_result(timestamp=0)]
        self.assertEqual(prune_history(history, 0), history)

    def test_delete(self):
        a, b = _result(id="a"), _result(id="b")
        self.assertEqual(delete_result([a, b], "a"), [b])

    def test_delete_unknown_id(self):
        history = [_result(id="a")]
        self.assertEqual(delete_result(history, "zzz"), history)


class TestDisplayHelpers(unittest.TestCase):
    def test_table_rows(self):
        stats = ResultStats(
            download_stats=DetailedStats(),
            upload_stats=DetailedStats(),
            ping_stats=DetailedStats(),
            jitter=2.5,
            stability_score=91,
            grade="A",
            trend_slope=0.0,
        )
        rows = format_history_table([
            _result(id="x", server_name="EU West", stats=stats),
            _result(id="y"),
        ])
        self.assertEqual(rows[0]["grade"], "A")
        self.assertEqual(rows[0]["server"], "EU West")
        self.assertEqual(rows[0]["stability"], 91)
        self.assertEqual(rows[1]["grade"], "N/A")
        self.assertIsNone(rows[1]["jitter"])

    def test_chart_series_oldest_first(self):
        history = [_result(download=300.0, timestamp=3), _result(download=100.0, timestamp=1)]
        self.assertEqual(chart_series(history)["download"], [100.0, 300.0])

    def test_sparkline(self):
        line = sparkline([1.0, 5.0, 9.0])
        self.assertEqual(len(line), 3)
        self.assertEqual(line[0], "▁")
        self.assertEqual(line[-1], "█")
        self.assertEqual(sparkline([]), "")


if __name__ == "__main__":
    unittest.main()
