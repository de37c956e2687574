"""UI layer -- Rich dashboard and export formatters."""

from .dashboard import (
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
from .output import (
    CSV_HEADER,
    default_export_name,
    export_csv,
    export_json,
    format_text_result,
    parse_csv,
    save_text,
)

__all__ = [
    "CSV_HEADER",
    "ProgressDisplay",
    "console",
    "default_export_name",
    "export_csv",
    "export_json",
    "format_text_result",
    "parse_csv",
    "print_achievements",
    "print_anomalies",
    "print_final_results",
    "print_header",
    "print_history",
    "print_insights",
    "print_peak_analysis",
    "print_phase_stats",
    "print_time_windows",
    "save_text",
]
