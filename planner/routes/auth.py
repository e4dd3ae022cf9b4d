"""Sign-in and sign-out routes."""
from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse, RedirectResponse

from planner.calendar.identity import identity_provider
from planner.calendar.projection import view_cache
from planner.calendar.session import EDIT_SESSION_KEY
from planner.core.errors import AuthError
from planner.routes.deps import templates

router = APIRouter(prefix="/auth", tags=["auth"])


def reset_edit_session(session, identity) -> None:
    """A change of identity drops whatever the previous user was editing."""
    session.pop(EDIT_SESSION_KEY, None)
    if identity is not None:
        view_cache.forget(identity.uid)


identity_provider.on_identity_change(reset_edit_session)


def _signed_out_page(request: Request, notice: str | None = None, status_code: int = 200):
    return templates.TemplateResponse(
        request,
        "signed_out.html",
        {"notice": notice, "configured": identity_provider.configured},
        status_code=status_code,
    )


@router.get("/login")
async def login(request: Request):
    """
    Start Google sign-in.

    Redirects to the Google consent screen, or straight to the event list
    if the session is already signed in.
    """
    if identity_provider.current(request.session):
        return RedirectResponse("/events", status_code=303)

    try:
        url = identity_provider.authorization_url(request.session)
    except AuthError as e:
        return _signed_out_page(request, e.message, status_code=503)
    return RedirectResponse(url, status_code=303)


@router.get("/callback")
def callback(request: Request):
    """
    Finish Google sign-in.

    Exchanges the authorization code, verifies the ID token and stores the
    identity in the session. Failures land on the signed-out page with a
    notice and no partial identity.
    """
    try:
        identity_provider.sign_in(request.session, str(request.url))
    except AuthError as e:
        return _signed_out_page(request, e.message, status_code=401)
    return RedirectResponse("/events", status_code=303)


@router.post("/logout")
async def logout(request: Request):
    identity_provider.sign_out(request.session)
    return RedirectResponse("/auth/signed-out", status_code=303)


@router.get("/signed-out", response_class=HTMLResponse)
async def signed_out(request: Request):
    return _signed_out_page(request)


@router.get("/status")
async def auth_status(request: Request):
    """Whether the session is signed in, and as whom."""
    identity = identity_provider.current(request.session)
    return {
        "authenticated": identity is not None,
        "configured": identity_provider.configured,
        "uid": identity.uid if identity else None,
        "display_name": identity.greeting_name if identity else None,
    }
