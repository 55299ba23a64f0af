from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import List
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
from kub_report.errors import ConfigError

DAY_SECONDS = 24 * 60 * 60


def load_timezone(name: str) -> tzinfo:
    if name.upper() == "UTC":
        return timezone.utc
    try:
        return ZoneInfo(name)
    except ZoneInfoNotFoundError as e:
        raise ConfigError(f"Unknown timezone: {name}") from e


def parse_date(date_str: str) -> date:
    try:
        return datetime.strptime(date_str, "%Y-%m-%d").date()
    except ValueError as e:
        raise ConfigError(f"Invalid date (want YYYY-MM-DD): {date_str!r}") from e


# -----------------------------
# Date → unix timestamp of its 00:00 in tz
# -----------------------------
def date_to_timestamp(date_str: str, tz: tzinfo = timezone.utc) -> int:
    """
    date_str: 'YYYY-MM-DD'
    """
    dt = datetime.combine(parse_date(date_str), datetime.min.time(), tzinfo=tz)
    return int(dt.timestamp())


def day_starts(first_day: date, last_day: date, tz: tzinfo = timezone.utc) -> List[int]:
    """
    Local midnight of every day in [first_day, last_day].
    Consecutive entries are 23 or 25 hours apart across a DST change.
    """
    days = (last_day - first_day).days
    return [
        date_to_timestamp((first_day + timedelta(days=i)).isoformat(), tz)
        for i in range(days + 1)
    ]


def parse_rfc3339(value: str) -> int:
    """'2022-11-01T00:00:00+07:00' -> unix seconds. Naive strings are read as UTC."""
    dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(dt.timestamp())


def to_rfc3339(timestamp: int, tz: tzinfo = timezone.utc) -> str:
    return datetime.fromtimestamp(timestamp, tz).isoformat()


def to_date(timestamp: int, tz: tzinfo = timezone.utc) -> str:
    return datetime.fromtimestamp(timestamp, tz).strftime("%Y-%m-%d")
