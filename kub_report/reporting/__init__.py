from .row import COLUMNS, ReportRow
from .reporter import TimelineReporter
from .csv_writer import write_report_csv
from kub_report.schedule import build_schedule

__all__ = [
    "COLUMNS",
    "ReportRow",
    "TimelineReporter",
    "write_report_csv",
    "build_schedule",
]
