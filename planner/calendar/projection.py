"""Views derived from a user's event set.

The list view groups events by date and the month grid places them as
CalendarItems. Both are rebuilt from a fresh ``EventStore.list()`` after
every change; nothing here edits an event in place.
"""
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, time
from uuid import UUID

from planner.calendar.records import check_fields
from planner.calendar.store import EventStore
from planner.calendar.timeutil import date_key_for
from planner.core.errors import StoreError, ValidationError
from planner.models import CalendarItem, Event, EventFields

logger = logging.getLogger(__name__)

UNSCHEDULED = "unscheduled"

_DATE_KEY = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def _group_key(event: Event) -> str:
    key = event.date_key
    if key and _DATE_KEY.match(key):
        return key
    return UNSCHEDULED


def group_by_date(events: list[Event]) -> list[tuple[str, list[Event]]]:
    """
    Partition events into (date_key, events) pairs.

    Groups are ascending by date_key, which sorts correctly as text because
    the key is fixed-width. Events without a usable key land in the
    UNSCHEDULED group, always last. Within a group events keep their
    chronological order by start.
    """
    groups: dict[str, list[Event]] = {}
    for event in events:
        groups.setdefault(_group_key(event), []).append(event)

    for members in groups.values():
        members.sort(key=lambda e: (e.start_at is None, e.start_at or datetime.min))

    ordered = sorted(key for key in groups if key != UNSCHEDULED)
    if UNSCHEDULED in groups:
        ordered.append(UNSCHEDULED)
    return [(key, groups[key]) for key in ordered]


def calendar_item(event: Event) -> CalendarItem | None:
    """Grid placement for an event, or None when it has no usable start."""
    if event.id is None or not isinstance(event.start_at, datetime):
        return None
    return CalendarItem(
        id=event.id,
        title=event.title,
        start=event.start_at,
        end=event.end_at,
        all_day=bool(event.all_day),
    )


def calendar_items(events: list[Event]) -> list[CalendarItem]:
    """Grid placements for every event that can be placed."""
    items = []
    for event in events:
        item = calendar_item(event)
        if item is None:
            logger.debug(f"Omitting event {event.id} from calendar: no start")
            continue
        items.append(item)
    return items


@dataclass(frozen=True)
class CalendarView:
    """Both presentations of one fetched event set."""

    events: tuple[Event, ...] = ()
    groups: tuple[tuple[str, tuple[Event, ...]], ...] = ()
    items: tuple[CalendarItem, ...] = ()

    def item(self, event_id: UUID) -> CalendarItem | None:
        for item in self.items:
            if item.id == event_id:
                return item
        return None

    def event(self, event_id: UUID) -> Event | None:
        for event in self.events:
            if event.id == event_id:
                return event
        return None


def build_view(events: list[Event]) -> CalendarView:
    return CalendarView(
        events=tuple(events),
        groups=tuple((key, tuple(members)) for key, members in group_by_date(events)),
        items=tuple(calendar_items(events)),
    )


class ViewCache:
    """Last successfully fetched view per user."""

    def __init__(self):
        self._views: dict[str, CalendarView] = {}

    def get(self, uid: str) -> CalendarView:
        return self._views.get(uid, CalendarView())

    def refresh(self, store: EventStore) -> tuple[CalendarView, str | None]:
        """
        Refetch the user's events and rebuild both views.

        Returns the view and a notice. When the fetch fails the previous
        view (or an empty one) is kept and the notice says so.
        """
        try:
            events = store.list()
        except StoreError as e:
            logger.warning(f"Keeping last known events for {store.uid}: {e}")
            return self.get(store.uid), f"Could not load events: {e.message}"

        view = build_view(events)
        self._views[store.uid] = view
        return view, None

    def forget(self, uid: str) -> None:
        self._views.pop(uid, None)


view_cache = ViewCache()


@dataclass
class MoveResult:
    """Outcome of a drag-reschedule.

    When ``ok`` is False, ``revert`` holds the pre-drag placement the grid
    must snap back to.
    """

    ok: bool
    item: CalendarItem | None = None
    revert: CalendarItem | None = None
    notice: str | None = None
    view: CalendarView = field(default_factory=CalendarView)

    def as_dict(self) -> dict:
        return {
            "ok": self.ok,
            "event": self.item.as_feed() if self.item else None,
            "revert": self.revert.as_feed() if self.revert else None,
            "notice": self.notice,
        }


def moved_fields(
    event: Event,
    new_start: datetime,
    new_end: datetime | None,
    all_day: bool,
) -> EventFields:
    """
    Field set for an event dropped at a new position.

    The grid's all-day flag wins: an all-day drop starts at midnight and
    has no end, a timed drop keeps the reported start and end.
    """
    if all_day:
        start = datetime.combine(new_start.date(), time.min)
        end = None
    else:
        start = new_start
        end = new_end
    return EventFields(
        title=event.title,
        start_at=start,
        end_at=end,
        all_day=all_day,
        date_key=date_key_for(start),
        location=event.location or "",
        notes=event.notes or "",
    )


def reschedule(
    store: EventStore,
    cache: ViewCache,
    event_id: UUID,
    new_start: datetime | None,
    new_end: datetime | None = None,
    all_day: bool = False,
) -> MoveResult:
    """Persist a drag on the month grid, or say where the event goes back to."""
    view = cache.get(store.uid)
    previous = view.item(event_id)

    if new_start is None:
        return MoveResult(
            ok=False, revert=previous, notice="Could not move event: no start", view=view
        )

    try:
        current = store.get(event_id)
        if previous is None:
            previous = calendar_item(current)
        fields = check_fields(moved_fields(current, new_start, new_end, all_day))
        store.update(event_id, fields)
    except (StoreError, ValidationError) as e:
        logger.warning(f"Move of event {event_id} failed, reverting: {e}")
        return MoveResult(
            ok=False, revert=previous, notice=f"Could not move event: {e.message}", view=view
        )

    view, notice = cache.refresh(store)
    return MoveResult(ok=True, item=view.item(event_id), notice=notice, view=view)
