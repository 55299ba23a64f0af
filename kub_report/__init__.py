from kub_report.errors import (
    ReportError,
    ConfigError,
    BoundaryUnavailable,
    FetchFailed,
    InvalidRange,
    LocatorExhausted,
)

# locating
from kub_report.locating import Block, BlockLocator, LocatorState, TieBreak

# reporting
from kub_report.reporting import ReportRow, TimelineReporter, write_report_csv, build_schedule

__all__ = [
    # errors
    "ReportError",
    "ConfigError",
    "BoundaryUnavailable",
    "FetchFailed",
    "InvalidRange",
    "LocatorExhausted",

    # locating
    "Block",
    "BlockLocator",
    "LocatorState",
    "TieBreak",

    # reporting
    "ReportRow",
    "TimelineReporter",
    "write_report_csv",
    "build_schedule",
]
