"""Date and hour-slot helpers shared by availability, booking and sessions."""

import re
from datetime import date, datetime, timedelta
from typing import List, Optional, Union

_TIME_RE = re.compile(r"^(?:([01]?\d|2[0-3]):([0-5]\d)|(24):(00))$")


def normalize_date(value: Union[str, date, datetime, None]) -> Optional[str]:
    """Return ``YYYY-MM-DD`` for a date/datetime/ISO string, or None if invalid."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip()[:10]).isoformat()
        except ValueError:
            return None
    return None


def is_valid_time(value) -> bool:
    return isinstance(value, str) and bool(_TIME_RE.match(value.strip()))


def parse_hour(value: str) -> int:
    match = _TIME_RE.match(value.strip())
    if not match:
        raise ValueError(f"Invalid time: {value!r}")
    return int(match.group(1) or match.group(3))


def format_hour(hour: int) -> str:
    return f"{hour:02d}:00"


def default_end_time(start_time: str) -> str:
    return format_hour(parse_hour(start_time) + 1)


def hour_starts(start_time: str, end_time: str) -> List[str]:
    """Start times of the 1-hour sub-slots spanning [start_time, end_time)."""
    start_hour = parse_hour(start_time)
    end_hour = parse_hour(end_time)
    return [format_hour(h) for h in range(start_hour, end_hour)]


def session_hours(start_time: str, end_time: str, *, wrap_midnight: bool = False) -> int:
    start_hour = parse_hour(start_time)
    end_hour = parse_hour(end_time)
    if wrap_midnight and end_hour <= start_hour:
        return end_hour + 24 - start_hour
    return end_hour - start_hour


def session_start(date_str: str, start_time: str) -> datetime:
    return datetime.fromisoformat(f"{date_str}T{normalize_time(start_time)}:00")


def is_past_date(date_str: str, today: Optional[date] = None) -> bool:
    today = today or date.today()
    return date.fromisoformat(date_str) < today


def cutoff_instant(start: datetime, hours: int) -> datetime:
    return start - timedelta(hours=hours)


def is_on_the_hour(value: str) -> bool:
    match = _TIME_RE.match(value.strip())
    return bool(match) and (match.group(2) or match.group(4)) == "00"


def normalize_time(value: str) -> str:
    """Zero-pad ``H:MM`` to ``HH:MM``; raises ValueError on malformed input."""
    match = _TIME_RE.match(value.strip())
    if not match:
        raise ValueError(f"Invalid time: {value!r}")
    if match.group(3):
        return "24:00"
    return f"{int(match.group(1)):02d}:{match.group(2)}"
