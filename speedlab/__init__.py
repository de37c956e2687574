"""SpeedLab -- phased network measurement, statistics, and history analytics."""

from .achievements import ACHIEVEMENTS, Achievement, achievement_progress, unlocked_achievements
from .analytics import (
    Anomaly,
    Insight,
    PeakAnalysis,
    WindowAverage,
    detect_anomalies,
    generate_insights,
    peak_analysis,
    time_window_averages,
)
from .grading import combine_grades, grade_one, score_grade
from .history import add_result, delete_result, prune_history, record_result
from .measurement import MeasurementController, MeasurementRun, finalize_run
from .models import Baseline, Result, ResultStats
from .quality import (
    QualityMetrics,
    calculate_jitter,
    calculate_stability_score,
    calculate_trend_slope,
)
from .sources import (
    HttpThroughputSource,
    PhaseRouter,
    SampleSource,
    SimulatedSource,
    WebSocketLatencySource,
)
from .stats import DetailedStats, calculate_detailed_stats

__all__ = [
    "ACHIEVEMENTS",
    "Achievement",
    "Anomaly",
    "Baseline",
    "DetailedStats",
    "HttpThroughputSource",
    "Insight",
    "MeasurementController",
    "MeasurementRun",
    "PeakAnalysis",
    "PhaseRouter",
    "QualityMetrics",
    "Result",
    "ResultStats",
    "SampleSource",
    "SimulatedSource",
    "WebSocketLatencySource",
    "WindowAverage",
    "achievement_progress",
    "add_result",
    "calculate_detailed_stats",
    "calculate_jitter",
    "calculate_stability_score",
    "calculate_trend_slope",
    "combine_grades",
    "delete_result",
    "detect_anomalies",
    "finalize_run",
    "generate_insights",
    "grade_one",
    "peak_analysis",
    "prune_history",
    "record_result",
    "score_grade",
    "time_window_averages",
    "unlocked_achievements",
]
