"""Edit session state machine and the per-user mutation guard.

An EditSession tracks whether the user is idle, creating a new event, or
editing an existing one, and owns the Draft while they do. It is a plain
object so the routes can keep it in the signed session cookie between
requests (``to_dict`` / ``from_dict``).
"""
import logging
import threading
from contextlib import contextmanager
from datetime import date
from enum import Enum
from uuid import UUID

from planner.calendar.records import validate
from planner.calendar.store import EventStore
from planner.calendar.timeutil import date_key_for, to_draft, today
from planner.core.errors import BusyError, InvalidTransition
from planner.models import Draft, Event

logger = logging.getLogger(__name__)

EDIT_SESSION_KEY = "edit_session"

DRAFT_FIELDS = ("title", "date", "start_time", "end_time", "location", "notes")


class Mode(str, Enum):
    IDLE = "idle"
    CREATING = "creating"
    EDITING = "editing"


class EditSession:
    """
    Which event, if any, the user is working on.

    Transitions:
        idle/creating/editing -> creating   begin_create()
        idle/creating/editing -> editing    begin_edit(event)
        creating/editing -> idle            cancel(), successful save()
        editing -> idle                     confirmed delete

    A failed save leaves the mode and the draft untouched so the user can
    correct the form.
    """

    def __init__(
        self,
        mode: Mode = Mode.IDLE,
        event_id: UUID | None = None,
        draft: Draft | None = None,
        pending_delete: bool = False,
    ):
        self.mode = mode
        self.event_id = event_id
        self.draft = draft
        self.pending_delete = pending_delete

    def __repr__(self):
        return f"EditSession(mode={self.mode.value}, event_id={self.event_id})"

    @property
    def is_idle(self) -> bool:
        return self.mode is Mode.IDLE

    def _reset(self) -> None:
        self.mode = Mode.IDLE
        self.event_id = None
        self.draft = None
        self.pending_delete = False

    def begin_create(self, on_date: date | None = None) -> Draft:
        """Start a new event on the given date (today when not given)."""
        self.mode = Mode.CREATING
        self.event_id = None
        self.pending_delete = False
        self.draft = Draft(date=date_key_for(on_date or today()))
        return self.draft

    def begin_edit(self, event: Event) -> Draft:
        """Start editing a stored event."""
        self.mode = Mode.EDITING
        self.event_id = event.id
        self.pending_delete = False
        self.draft = to_draft(event)
        return self.draft

    def update_draft(self, **fields) -> Draft:
        if self.is_idle:
            raise InvalidTransition("Nothing is being edited")
        unknown = set(fields) - set(DRAFT_FIELDS)
        if unknown:
            raise ValueError(f"Unknown draft fields: {sorted(unknown)}")
        self.draft = self.draft.model_copy(
            update={k: (v if v is not None else "") for k, v in fields.items()}
        )
        return self.draft

    def cancel(self) -> None:
        self._reset()

    def save(self, store: EventStore) -> UUID:
        """
        Validate the draft and write it.

        ValidationError and StoreError propagate with the session unchanged.
        """
        if self.is_idle:
            raise InvalidTransition("Nothing to save")

        fields = validate(self.draft)
        if self.mode is Mode.CREATING:
            event_id = store.create(fields)
        else:
            store.update(self.event_id, fields)
            event_id = self.event_id

        self._reset()
        return event_id

    def request_delete(self) -> None:
        """Ask for confirmation before deleting the event being edited."""
        if self.mode is not Mode.EDITING:
            raise InvalidTransition("Only an event being edited can be deleted")
        self.pending_delete = True

    def dismiss_delete(self) -> None:
        self.pending_delete = False

    def confirm_delete(self, store: EventStore) -> UUID:
        if self.mode is not Mode.EDITING or not self.pending_delete:
            raise InvalidTransition("Delete was not requested")

        event_id = self.event_id
        store.remove(event_id)
        self._reset()
        return event_id

    def to_dict(self) -> dict:
        return {
            "mode": self.mode.value,
            "event_id": str(self.event_id) if self.event_id else None,
            "draft": self.draft.model_dump() if self.draft else None,
            "pending_delete": self.pending_delete,
        }

    @classmethod
    def from_dict(cls, data: dict | None) -> "EditSession":
        if not data:
            return cls()
        try:
            return cls(
                mode=Mode(data.get("mode", Mode.IDLE.value)),
                event_id=UUID(data["event_id"]) if data.get("event_id") else None,
                draft=Draft(**data["draft"]) if data.get("draft") else None,
                pending_delete=bool(data.get("pending_delete")),
            )
        except (ValueError, TypeError, KeyError) as e:
            logger.warning(f"Discarding unreadable edit session: {e}")
            return cls()


class MutationGuard:
    """One mutating action at a time per user.

    Held from the gateway call through the refetch that follows it; a
    second action for the same user while it is held raises BusyError.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._held: set[str] = set()

    @contextmanager
    def hold(self, uid: str):
        with self._lock:
            if uid in self._held:
                raise BusyError("Another change is still being saved")
            self._held.add(uid)
        try:
            yield
        finally:
            with self._lock:
                self._held.discard(uid)

    def is_held(self, uid: str) -> bool:
        with self._lock:
            return uid in self._held


mutation_guard = MutationGuard()
