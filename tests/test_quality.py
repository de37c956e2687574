"""Unit tests for speedlab.quality -- jitter, stability, and trend."""

import unittest

from speedlab.quality import (
    QualityMetrics,
    calculate_jitter,
    calculate_quality_metrics,
    calculate_stability_score,
    calculate_trend_slope,
    combine_trends,
)
from speedlab.stats import DetailedStats, calculate_detailed_stats


class TestCalculateJitter(unittest.TestCase):
    def test_empty(self):
        self.assertEqual(calculate_jitter([]), 0.0)

    def test_single(self):
        self.assertEqual(calculate_jitter([10.0]), 0.0)

    def test_three_samples(self):
        # |15-10| + |12-15| = 5 + 3 = 8 / 2 = 4
        self.assertAlmostEqual(calculate_jitter([10.0, 15.0, 12.0]), 4.0)

    def test_non_negative(self):
        self.assertGreaterEqual(calculate_jitter([30.0, 5.0, 18.0, 2.0]), 0.0)


class TestStabilityScore(unittest.TestCase):
    def test_constant_samples(self):
        stats = calculate_detailed_stats([100.0] * 10)
        self.assertEqual(calculate_stability_score(stats), 100)

    def test_zero_mean(self):
        self.assertEqual(calculate_stability_score(DetailedStats()), 0)

    def test_high_variation_clamps_to_zero(self):
        stats = DetailedStats(mean=10.0, std_dev=10.0)
        self.assertEqual(calculate_stability_score(stats), 0)

    def test_mid_range(self):
        # cv = 0.1 -> 100 - 20 = 80
        stats = DetailedStats(mean=100.0, std_dev=10.0)
        self.assertEqual(calculate_stability_score(stats), 80)

    def test_half_rounds_up(self):
        # cv = 7/16 -> 100 - 87.5 = 12.5 -> 13
        stats = DetailedStats(mean=16.0, std_dev=7.0)
        self.assertEqual(calculate_stability_score(stats), 13)


class TestTrendSlope(unittest.TestCase):
    def test_short_input(self):
        self.assertEqual(calculate_trend_slope([]), 0.0)
        self.assertEqual(calculate_trend_slope([5.0]), 0.0)

    def test_increasing(self):
        self.assertAlmostEqual(calculate_trend_slope([1.0, 2.0, 3.0, 4.0]), 1.0)

    def test_decreasing(self):
        self.assertLess(calculate_trend_slope([10.0, 8.0, 6.0]), 0)

    def test_flat(self):
        self.assertEqual(calculate_trend_slope([5.0, 5.0, 5.0]), 0.0)

    def test_rising_ping_counts_against(self):
        self.assertLess(combine_trends(0.0, 0.0, 3.0), 0)
        self.assertAlmostEqual(combine_trends(3.0, 3.0, 0.0), 2.0)


class TestQualityMetrics(unittest.TestCase):
    def test_combined(self):
        ping = [10.0, 15.0, 12.0]
        download = [100.0, 100.0, 100.0]
        upload = [50.0, 50.0, 50.0]
        metrics = calculate_quality_metrics(
            ping, download, upload, calculate_detailed_stats(download)
        )
        self.assertIsInstance(metrics, QualityMetrics)
        self.assertAlmostEqual(metrics.jitter, 4.0)
        self.assertEqual(metrics.stability_score, 100)
        # ping slope is 1.0, throughput flat
        self.assertAlmostEqual(metrics.trend_slope, -1.0 / 3)


if __name__ == "__main__":
    unittest.main()
