"""Month grid routes: page, event feed, and the widget callbacks."""
import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse, JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from planner.calendar.projection import MoveResult, reschedule, view_cache
from planner.calendar.session import mutation_guard
from planner.calendar.store import EventStore
from planner.calendar.timeutil import date_key_for, parse_point_in_time
from planner.core.errors import BusyError, ValidationError
from planner.models import Identity
from planner.routes.deps import (
    current_identity,
    get_store,
    load_edit_session,
    save_edit_session,
    templates,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/calendar", tags=["calendar"])


class DateSelected(BaseModel):
    """Body of the widget's "date selected" callback."""
    date: str


class EventMoved(BaseModel):
    """Body of the widget's "event moved" callback."""
    model_config = ConfigDict(populate_by_name=True)

    start: str | None = None
    end: str | None = None
    all_day: bool = Field(default=False, alias="allDay")


@router.get("", response_class=HTMLResponse)
async def month_page(request: Request, identity: Identity = Depends(current_identity)):
    """Display the month grid. Events are loaded from the feed."""
    return templates.TemplateResponse(request, "calendar.html", {"identity": identity})


@router.get("/feed")
async def feed(store: EventStore = Depends(get_store)):
    """
    Event source for the grid widget.

    Always a JSON array. When the fetch fails the last known events are
    returned and the failure is reported in the ``X-Planner-Notice`` header.
    """
    view, notice = view_cache.refresh(store)
    headers = {"X-Planner-Notice": notice} if notice else None
    return JSONResponse([item.as_feed() for item in view.items], headers=headers)


@router.post("/date-selected")
async def date_selected(
    body: DateSelected,
    request: Request,
    identity: Identity = Depends(current_identity),
):
    """Selecting an empty date opens a new draft on that date."""
    try:
        on_date = parse_point_in_time(body.date).date()
    except ValidationError as e:
        return JSONResponse({"notice": e.message}, status_code=422)

    edit = load_edit_session(request)
    draft = edit.begin_create(on_date)
    save_edit_session(request, edit)
    logger.debug(f"Creating event on {date_key_for(on_date)} for {identity.uid}")
    return {"mode": edit.mode.value, "draft": draft.model_dump(), "form": "/events/draft"}


@router.post("/events/{event_id}/move")
async def event_moved(
    event_id: UUID,
    body: EventMoved,
    identity: Identity = Depends(current_identity),
    store: EventStore = Depends(get_store),
):
    """
    Persist a drag on the grid.

    Responds 200 with the saved placement, or 409 with the placement the
    grid must revert to and a notice.
    """
    previous = view_cache.get(identity.uid).item(event_id)
    try:
        new_start = parse_point_in_time(body.start) if body.start else None
        new_end = parse_point_in_time(body.end) if body.end else None
    except ValidationError as e:
        result = MoveResult(ok=False, revert=previous, notice=f"Could not move event: {e.message}")
        return JSONResponse(result.as_dict(), status_code=409)

    try:
        with mutation_guard.hold(identity.uid):
            result = reschedule(store, view_cache, event_id, new_start, new_end, body.all_day)
    except BusyError as e:
        result = MoveResult(ok=False, revert=previous, notice=e.message)

    return JSONResponse(result.as_dict(), status_code=200 if result.ok else 409)
