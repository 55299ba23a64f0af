import csv
from typing import IO, Iterable, Union
from .row import COLUMNS, ReportRow


def write_report_csv(rows: Iterable[ReportRow], target: Union[str, IO[str]]) -> int:
    """Write rows under a header line. Returns the number of data rows written."""
    if isinstance(target, str):
        with open(target, "w", newline="") as f:
            return _write(rows, f)
    return _write(rows, target)


def _write(rows, f) -> int:
    w = csv.writer(f)
    w.writerow(COLUMNS)
    count = 0
    for row in rows:
        w.writerow(row.as_list())
        count += 1
    return count
