"""Event routes for the list view and the edit form."""
import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Form, HTTPException, Request
from fastapi.responses import HTMLResponse, RedirectResponse

from planner.calendar.projection import UNSCHEDULED, view_cache
from planner.calendar.records import check_lengths
from planner.calendar.session import EditSession, Mode, mutation_guard
from planner.calendar.store import EventStore
from planner.calendar.timeutil import parse_date
from planner.core.errors import (
    BusyError,
    EventNotFound,
    InvalidTransition,
    StoreError,
    ValidationError,
)
from planner.models import Identity
from planner.routes.deps import (
    current_identity,
    get_store,
    load_edit_session,
    save_edit_session,
    templates,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/events", tags=["events"])


def _draft_page(
    request: Request,
    edit: EditSession,
    identity: Identity,
    error: str | None = None,
    status_code: int = 200,
):
    return templates.TemplateResponse(
        request,
        "draft.html",
        {
            "identity": identity,
            "edit": edit,
            "draft": edit.draft,
            "editing": edit.mode is Mode.EDITING,
            "error": error,
        },
        status_code=status_code,
    )


@router.get("", response_class=HTMLResponse)
async def list_events(
    request: Request,
    identity: Identity = Depends(current_identity),
    store: EventStore = Depends(get_store),
):
    """
    Display the user's events grouped by date.

    The event set is refetched on every render. If the fetch fails the last
    known events are shown with a notice instead of an error page.
    """
    view, notice = view_cache.refresh(store)
    return templates.TemplateResponse(
        request,
        "events.html",
        {
            "identity": identity,
            "groups": view.groups,
            "unscheduled": UNSCHEDULED,
            "edit": load_edit_session(request),
            "notice": notice,
        },
    )


@router.get("/grouped")
async def grouped_events(store: EventStore = Depends(get_store)):
    """The grouped list as JSON."""
    view, notice = view_cache.refresh(store)
    return {
        "notice": notice,
        "groups": [
            {
                "date_key": key,
                "events": [event.model_dump(mode="json", exclude={"user_id"}) for event in members],
            }
            for key, members in view.groups
        ],
    }


@router.post("/new")
async def new_event(
    request: Request,
    date: str = Form(""),
    identity: Identity = Depends(current_identity),
):
    """Open a blank draft for the given date, or today."""
    try:
        on_date = parse_date(date) if date.strip() else None
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=e.message)

    edit = load_edit_session(request)
    edit.begin_create(on_date)
    save_edit_session(request, edit)
    return RedirectResponse("/events/draft", status_code=303)


@router.get("/draft", response_class=HTMLResponse)
async def show_draft(request: Request, identity: Identity = Depends(current_identity)):
    """Display the form for whatever is being created or edited."""
    edit = load_edit_session(request)
    if edit.is_idle:
        return RedirectResponse("/events", status_code=303)
    return _draft_page(request, edit, identity)


@router.post("/draft")
async def save_draft(
    request: Request,
    title: str = Form(""),
    date: str = Form(""),
    start_time: str = Form(""),
    end_time: str = Form(""),
    location: str = Form(""),
    notes: str = Form(""),
    identity: Identity = Depends(current_identity),
    store: EventStore = Depends(get_store),
):
    """
    Save the draft.

    Creates or updates depending on the edit session. A validation or store
    failure re-renders the form with the user's input intact.
    """
    edit = load_edit_session(request)
    if edit.is_idle:
        raise HTTPException(status_code=400, detail="Nothing is being edited")

    edit.update_draft(
        title=title,
        date=date,
        start_time=start_time,
        end_time=end_time,
        location=location,
        notes=notes,
    )
    try:
        check_lengths(edit.draft)
    except ValidationError as e:
        # Shown back to the user but not kept, so the cookie stays small
        return _draft_page(request, edit, identity, e.message, status_code=422)
    save_edit_session(request, edit)

    try:
        with mutation_guard.hold(identity.uid):
            edit.save(store)
            view_cache.refresh(store)
    except ValidationError as e:
        return _draft_page(request, edit, identity, e.message, status_code=422)
    except EventNotFound as e:
        return _draft_page(request, edit, identity, e.message, status_code=404)
    except StoreError as e:
        return _draft_page(request, edit, identity, e.message, status_code=502)
    except BusyError as e:
        return _draft_page(request, edit, identity, e.message, status_code=409)

    save_edit_session(request, edit)
    return RedirectResponse("/events", status_code=303)


@router.post("/cancel")
async def cancel_draft(request: Request, identity: Identity = Depends(current_identity)):
    """Discard the draft and go back to the list."""
    edit = load_edit_session(request)
    edit.cancel()
    save_edit_session(request, edit)
    return RedirectResponse("/events", status_code=303)


@router.get("/{event_id}/edit")
async def edit_event(
    event_id: UUID,
    request: Request,
    store: EventStore = Depends(get_store),
):
    """Open an existing event in the form."""
    try:
        event = store.get(event_id)
    except EventNotFound:
        raise HTTPException(status_code=404, detail="Event not found")
    except StoreError as e:
        raise HTTPException(status_code=502, detail=e.message)

    edit = load_edit_session(request)
    edit.begin_edit(event)
    save_edit_session(request, edit)
    return RedirectResponse("/events/draft", status_code=303)


def _editing(edit: EditSession, event_id: UUID) -> bool:
    return edit.mode is Mode.EDITING and edit.event_id == event_id


@router.get("/{event_id}/delete", response_class=HTMLResponse)
async def confirm_delete_page(
    event_id: UUID,
    request: Request,
    identity: Identity = Depends(current_identity),
):
    """
    Ask the user to confirm a delete.

    Only reachable for the event currently open in the form. Showing the
    page changes nothing; the delete happens on the confirming POST.
    """
    edit = load_edit_session(request)
    if not _editing(edit, event_id):
        raise HTTPException(status_code=400, detail="Open the event before deleting it")

    return templates.TemplateResponse(
        request,
        "confirm_delete.html",
        {"identity": identity, "event_id": event_id, "draft": edit.draft},
    )


@router.post("/{event_id}/delete")
async def delete_event(
    event_id: UUID,
    request: Request,
    confirm: bool = Form(False),
    identity: Identity = Depends(current_identity),
    store: EventStore = Depends(get_store),
):
    """
    Delete the event being edited once the user has confirmed.

    ``confirm=true`` requests and confirms the delete in one step. Without
    it nothing is deleted and the form is shown again.
    """
    edit = load_edit_session(request)
    if not _editing(edit, event_id):
        raise HTTPException(status_code=400, detail="Open the event before deleting it")

    if not confirm:
        edit.dismiss_delete()
        save_edit_session(request, edit)
        return RedirectResponse("/events/draft", status_code=303)

    try:
        with mutation_guard.hold(identity.uid):
            edit.request_delete()
            edit.confirm_delete(store)
            view_cache.refresh(store)
    except InvalidTransition as e:
        raise HTTPException(status_code=400, detail=e.message)
    except (StoreError, BusyError) as e:
        logger.warning(f"Delete of {event_id} abandoned: {e}")
        edit.dismiss_delete()
        save_edit_session(request, edit)
        status_code = 404 if isinstance(e, EventNotFound) else 409 if isinstance(e, BusyError) else 502
        return _draft_page(request, edit, identity, e.message, status_code=status_code)

    save_edit_session(request, edit)
    return RedirectResponse("/events", status_code=303)
