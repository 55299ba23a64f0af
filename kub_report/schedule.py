from typing import List
from kub_report.errors import InvalidRange
from kub_report.time_utils import DAY_SECONDS


def build_schedule(start: int, end: int, step: int = DAY_SECONDS) -> List[int]:
    """
    Evenly spaced timestamps [start, start+step, ...] up to and including end.
    """
    if start > end:
        raise InvalidRange(f"start {start} > end {end}")
    if step <= 0:
        raise InvalidRange(f"step must be positive, got {step}")

    return list(range(start, end + 1, step))
