"""
Draft validation.

Turns a user-edited Draft into the EventFields the store persists, and
re-checks field sets assembled outside the form (drag reschedule).
"""

import json
from datetime import time

from planner.calendar.timeutil import date_key_for, to_event_times
from planner.core.errors import ValidationError
from planner.models import Draft, EventFields

# Measured as the session cookie encodes them, with non-ASCII escaped.
MAX_LENGTHS = {"title": 200, "location": 200, "notes": 1500}


def check_lengths(draft: Draft) -> None:
    """Reject free-text fields too long to carry in the session."""
    for field, limit in MAX_LENGTHS.items():
        value = getattr(draft, field) or ""
        if len(json.dumps(value)) - 2 > limit:
            raise ValidationError(f"{field} too long (at most {limit} characters)")


def validate(draft: Draft) -> EventFields:
    """
    Validate a draft and normalize its times.

    Checks, in order:
    1. Title is non-empty after trimming
    2. Date is present and parses as YYYY-MM-DD
    3. Start/end times parse as HH:MM when given
    4. End does not precede start (inverted input is rejected, not swapped)
    5. Free-text fields fit in the session (see MAX_LENGTHS)
    """
    title = (draft.title or "").strip()
    if not title:
        raise ValidationError("title required")

    times = to_event_times(draft.date, draft.start_time, draft.end_time)

    if times.end is not None and times.end < times.start:
        raise ValidationError("end must not precede start")

    check_lengths(draft)

    return EventFields(
        title=title,
        start_at=times.start,
        end_at=times.end,
        all_day=times.all_day,
        date_key=times.date_key,
        location=draft.location or "",
        notes=draft.notes or "",
    )


def check_fields(fields: EventFields) -> EventFields:
    """Assert the record invariants on fields built without a draft."""
    if not (fields.title or "").strip():
        raise ValidationError("title required")
    if fields.date_key != date_key_for(fields.start_at):
        raise ValidationError("date key does not match start")
    if fields.end_at is not None and fields.end_at < fields.start_at:
        raise ValidationError("end must not precede start")
    if fields.all_day:
        if fields.start_at.time() != time.min:
            raise ValidationError("all-day events start at midnight")
        if fields.end_at is not None:
            raise ValidationError("all-day events have no end")
    return fields
