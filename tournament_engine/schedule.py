from __future__ import annotations

import re
from datetime import UTC, date, datetime, time

from .errors import InvalidScheduleError

_DATE_SPLIT_PATTERN = re.compile(r"[/.\-]")


def parse_utc_time(raw: int | str) -> time:
    """Parse an ``HHMM`` UTC time of day such as ``1600`` or ``"0930"``."""
    value = str(raw).strip()
    if not value.isdigit() or len(value) > 4:
        raise InvalidScheduleError(
            f"Time must be in the form HHMM (ie, 1600 for 4PM UTC): {raw}"
        )
    number = int(value)
    hours, minutes = divmod(number, 100)
    if hours > 23 or minutes > 59:
        raise InvalidScheduleError(f"Time {value.zfill(4)} is not a valid UTC time")
    return time(hour=hours, minute=minutes, tzinfo=UTC)


def parse_calendar_date(raw: str, *, today: date | None = None) -> date:
    """Parse ``DD/MM/YYYY``, ``DD/MM`` or ``DD``.

    Missing fields are filled in from ``today`` (the current UTC date by
    default); an empty value means ``today`` itself.
    """
    reference = today or datetime.now(UTC).date()
    value = raw.strip()
    if not value:
        return reference
    parts = _DATE_SPLIT_PATTERN.split(value)
    if len(parts) > 3 or not all(part.isdigit() for part in parts):
        raise InvalidScheduleError(
            f"Date must be in the form DD/MM/YYYY, DD/MM, or DD: {raw}"
        )
    day = int(parts[0])
    month = int(parts[1]) if len(parts) > 1 else reference.month
    year = int(parts[2]) if len(parts) > 2 else reference.year
    if len(parts) > 2 and len(parts[2]) == 2:
        year += 2000
    try:
        return date(year, month, day)
    except ValueError as exc:
        raise InvalidScheduleError(f"{value} is not a valid calendar date") from exc


def combine_schedule(
    utc_time: int | str, calendar_date: str = "", *, today: date | None = None
) -> datetime:
    time_of_day = parse_utc_time(utc_time)
    day = parse_calendar_date(calendar_date, today=today)
    return datetime.combine(day, time_of_day)


def format_schedule(moment: datetime) -> str:
    moment = moment.astimezone(UTC)
    return f"{moment:%A} {moment.day} {moment:%B %Y}, {moment:%H:%M} UTC"


__all__ = [
    "combine_schedule",
    "format_schedule",
    "parse_calendar_date",
    "parse_utc_time",
]
