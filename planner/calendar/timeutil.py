"""Convert between form fields and event points in time.

All points in time are naive datetimes in the host's local timezone.
"""
import re
from datetime import date, datetime, time
from typing import NamedTuple

from planner.core.errors import ValidationError
from planner.models import Draft, Event

DATE_FORMAT = "%Y-%m-%d"
CLOCK_FORMAT = "%H:%M"
CLOCK_FORMAT_SECONDS = "%H:%M:%S"

_CLOCK = re.compile(r"^\d{2}:\d{2}(:\d{2})?$")


class NormalizedTimes(NamedTuple):
    start: datetime
    end: datetime | None
    all_day: bool
    date_key: str


def today() -> date:
    return datetime.now().date()


def _blank(value: str | None) -> bool:
    return value is None or not value.strip()


def parse_date(value: str | None) -> date:
    """Parse a ``YYYY-MM-DD`` date. Raises ValidationError("date required")."""
    if _blank(value):
        raise ValidationError("date required")
    try:
        return datetime.strptime(value.strip(), DATE_FORMAT).date()
    except ValueError:
        raise ValidationError("date required") from None


def parse_clock_time(value: str | None, field: str = "time") -> time | None:
    """Parse ``HH:MM`` (or ``HH:MM:SS``). Blank input means no time.

    Hours and minutes must be zero-padded so the value formats back the
    same way in ``to_draft``.
    """
    if _blank(value):
        return None
    if not _CLOCK.match(value.strip()):
        raise ValidationError(f"invalid {field}: {value!r}")
    for fmt in (CLOCK_FORMAT, CLOCK_FORMAT_SECONDS):
        try:
            return datetime.strptime(value.strip(), fmt).time()
        except ValueError:
            continue
    raise ValidationError(f"invalid {field}: {value!r}")


def parse_point_in_time(value) -> datetime:
    """Parse an ISO-8601 point in time reported by the grid widget.

    Offsets are converted to host local time and dropped, so the result is
    comparable with stored values.
    """
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str) and value.strip():
        try:
            dt = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            raise ValidationError(f"invalid point in time: {value!r}") from None
    else:
        raise ValidationError(f"invalid point in time: {value!r}")
    if dt.tzinfo is not None:
        dt = dt.astimezone().replace(tzinfo=None)
    return dt


def date_key_for(dt: datetime | date) -> str:
    """Fixed-width calendar date of a point in time, used to group and sort."""
    if isinstance(dt, datetime):
        dt = dt.date()
    return dt.strftime(DATE_FORMAT)


def to_event_times(
    date_value: str,
    start_time: str | None = None,
    end_time: str | None = None,
) -> NormalizedTimes:
    """
    Normalize form input into a timed interval or an all-day marker.

    With neither clock time the event is all-day and starts at midnight.
    An end time without a start time keeps the midnight start but makes
    the event timed.
    """
    day = parse_date(date_value)
    start_clock = parse_clock_time(start_time, "start time")
    end_clock = parse_clock_time(end_time, "end time")

    start = datetime.combine(day, start_clock or time.min)
    end = datetime.combine(day, end_clock) if end_clock is not None else None
    all_day = start_clock is None and end_clock is None

    return NormalizedTimes(start, end, all_day, date_key_for(day))


def _clock(dt: datetime) -> str:
    return dt.strftime(CLOCK_FORMAT_SECONDS if dt.second else CLOCK_FORMAT)


def to_draft(event: Event) -> Draft:
    """Populate an edit form from a stored event."""
    start = event.start_at
    return Draft(
        title=event.title or "",
        date=date_key_for(start),
        start_time="" if event.all_day else _clock(start),
        end_time=_clock(event.end_at) if event.end_at else "",
        location=event.location or "",
        notes=event.notes or "",
    )
