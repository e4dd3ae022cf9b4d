"""Request-scoped dependencies shared by the routers."""
from pathlib import Path

from fastapi import Depends, HTTPException, Request
from fastapi.templating import Jinja2Templates
from sqlmodel import Session

from planner.calendar.identity import identity_provider
from planner.calendar.session import EDIT_SESSION_KEY, EditSession
from planner.calendar.store import EventStore
from planner.core.database import get_session
from planner.models import Identity

templates = Jinja2Templates(directory=str(Path(__file__).resolve().parent.parent / "templates"))


def wants_json(request: Request) -> bool:
    """Check if the client prefers JSON response (AJAX request)."""
    accept = request.headers.get("accept", "")
    return "application/json" in accept


def current_identity(request: Request) -> Identity:
    """The signed-in user. Responds 401 when there is none."""
    identity = identity_provider.current(request.session)
    if identity is None:
        raise HTTPException(status_code=401, detail="Sign in required")
    return identity


def get_store(
    identity: Identity = Depends(current_identity),
    session: Session = Depends(get_session),
) -> EventStore:
    """Event store scoped to the signed-in user."""
    return EventStore(session, identity.uid)


def load_edit_session(request: Request) -> EditSession:
    return EditSession.from_dict(request.session.get(EDIT_SESSION_KEY))


def save_edit_session(request: Request, edit: EditSession) -> None:
    if edit.is_idle:
        request.session.pop(EDIT_SESSION_KEY, None)
    else:
        request.session[EDIT_SESSION_KEY] = edit.to_dict()
