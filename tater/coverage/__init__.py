"""Running cargo tarpaulin and collecting its output."""

from .ci import CiCommand, detect_ci_command, extract_tarpaulin_commands
from .reports import archive_report, find_reports
from .tarpaulin import TarpaulinOptions, TarpaulinRun, build_command, run_tarpaulin

__all__ = [
    "CiCommand",
    "TarpaulinOptions",
    "TarpaulinRun",
    "archive_report",
    "build_command",
    "detect_ci_command",
    "extract_tarpaulin_commands",
    "find_reports",
    "run_tarpaulin",
]
