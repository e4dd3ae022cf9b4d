"""Per-user event store."""
import logging
from datetime import UTC, datetime
from uuid import UUID, uuid4

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from planner.core.errors import EventNotFound, PermissionDenied, StoreError
from planner.models import Event, EventFields

logger = logging.getLogger(__name__)

# Fields a save may overwrite. id, user_id and created_at are never written
# after the insert.
WRITABLE_FIELDS = (
    "title",
    "start_at",
    "end_at",
    "all_day",
    "date_key",
    "location",
    "notes",
)


def normalize_timestamp(value) -> datetime | None:
    """
    Convert a stored write timestamp to an aware UTC datetime.

    The database clock may hand back a naive datetime (SQLite's
    CURRENT_TIMESTAMP is UTC without an offset), an aware one, epoch
    seconds, or an ISO string depending on the backend and driver.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, UTC)
    elif isinstance(value, str):
        try:
            dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            raise StoreError(f"Unreadable timestamp: {value!r}") from None
    else:
        raise StoreError(f"Unreadable timestamp: {value!r}")

    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


class EventStore:
    """
    Create, read, update and delete events for one user.

    Every statement is filtered on the owner's uid, so an event owned by
    another identity behaves exactly like one that does not exist.
    """

    def __init__(self, session: Session, uid: str):
        if not uid:
            raise PermissionDenied("No signed-in user")
        self.session = session
        self.uid = uid

    def _scoped(self):
        return select(Event).where(Event.user_id == self.uid)

    def _find(self, event_id: UUID) -> Event:
        statement = self._scoped().where(Event.id == event_id)
        event = self.session.exec(statement).first()
        if event is None:
            raise EventNotFound(event_id)
        return event

    def _detach(self, event: Event) -> Event:
        """Copy a row out of the session with its timestamps normalized."""
        data = event.model_dump()
        data["created_at"] = normalize_timestamp(data["created_at"])
        data["updated_at"] = normalize_timestamp(data["updated_at"])
        return Event.model_validate(data)

    def list(self) -> list[Event]:
        """All of the user's events, ascending by start."""
        statement = self._scoped().order_by(Event.start_at, Event.created_at)
        try:
            rows = self.session.exec(statement).all()
            return [self._detach(row) for row in rows]
        except SQLAlchemyError as e:
            logger.error(f"Failed to list events for {self.uid}: {e}")
            raise StoreError("Could not load events") from e

    def get(self, event_id: UUID) -> Event:
        try:
            return self._detach(self._find(event_id))
        except SQLAlchemyError as e:
            logger.error(f"Failed to read event {event_id} for {self.uid}: {e}")
            raise StoreError("Could not load event") from e

    def create(self, fields: EventFields) -> UUID:
        """Insert a new event. Returns the id assigned to it."""
        event_id = uuid4()
        event = Event(id=event_id, user_id=self.uid, **fields.model_dump())
        event.created_at = func.now()
        event.updated_at = func.now()
        try:
            self.session.add(event)
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error(f"Failed to create event for {self.uid}: {e}")
            raise StoreError("Could not save event") from e

        logger.info(f"Created event {event_id} for {self.uid}")
        return event_id

    def update(self, event_id: UUID, fields: EventFields) -> None:
        """Overwrite an event's content and refresh updated_at."""
        try:
            event = self._find(event_id)
            values = fields.model_dump()
            for name in WRITABLE_FIELDS:
                setattr(event, name, values[name])
            event.updated_at = func.now()
            self.session.add(event)
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error(f"Failed to update event {event_id} for {self.uid}: {e}")
            raise StoreError("Could not save event") from e

        logger.info(f"Updated event {event_id} for {self.uid}")

    def remove(self, event_id: UUID) -> None:
        """
        Delete an event.

        Removing an id that is already gone raises EventNotFound rather
        than succeeding silently.
        """
        try:
            event = self._find(event_id)
            self.session.delete(event)
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error(f"Failed to delete event {event_id} for {self.uid}: {e}")
            raise StoreError("Could not delete event") from e

        logger.info(f"Deleted event {event_id} for {self.uid}")
