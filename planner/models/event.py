"""Event model and the form-side schemas that feed it.

This module defines the persisted Event table together with the
non-persisted shapes that surround it: the Draft a user edits, the
validated EventFields handed to the store, and the CalendarItem the
month grid renders. Points in time are naive datetimes in the host's
local timezone; only the write timestamps are stored in UTC by the
database clock.
"""

from datetime import datetime
from uuid import UUID

from sqlmodel import Field, SQLModel


class Event(SQLModel, table=True):
    """A dated event owned by exactly one user.

    Attributes:
        id: Unique identifier, assigned by the store on create.
        user_id: Owner identity (Google ``sub``). Every store query
            filters on it.
        title: Display title, never empty.
        start_at: When the event starts. Midnight for all-day events.
        end_at: When the event ends, if known. Never before start_at.
        all_day: True when the user gave neither a start nor an end time.
        date_key: ``YYYY-MM-DD`` of start_at, used to group and sort.
        location: Free text, empty when not given.
        notes: Free text, empty when not given.
        created_at: Set by the database clock on insert.
        updated_at: Set by the database clock on insert and every update.
    """
    id: UUID | None = Field(default=None, primary_key=True)
    user_id: str = Field(index=True)
    title: str
    start_at: datetime = Field(index=True)
    end_at: datetime | None = None
    all_day: bool = Field(default=False)
    date_key: str = Field(index=True)
    location: str = Field(default="")
    notes: str = Field(default="")
    created_at: datetime | None = None
    updated_at: datetime | None = None


class Draft(SQLModel):
    """In-progress form fields for a single event.

    Times are ``HH:MM`` strings; an empty string means the field was left
    blank. Nothing here has been validated.
    """
    title: str = ""
    date: str = ""
    start_time: str = ""
    end_time: str = ""
    location: str = ""
    notes: str = ""


class EventFields(SQLModel):
    """Validated event content, without identity or write timestamps."""
    title: str
    start_at: datetime
    end_at: datetime | None = None
    all_day: bool = False
    date_key: str
    location: str = ""
    notes: str = ""


class CalendarItem(SQLModel):
    """What the month grid needs to place one event."""
    id: UUID
    title: str
    start: datetime
    end: datetime | None = None
    all_day: bool = False

    def as_feed(self) -> dict:
        """Serialize in the shape grid widgets expect as an event source."""
        return {
            "id": str(self.id),
            "title": self.title,
            "start": self.start.isoformat(),
            "end": self.end.isoformat() if self.end else None,
            "allDay": self.all_day,
        }
