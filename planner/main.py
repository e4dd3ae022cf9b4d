"""Planner: personal calendar web application."""
import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.exception_handlers import http_exception_handler
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import RedirectResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.sessions import SessionMiddleware

from planner.calendar.identity import identity_provider
from planner.core.config import settings
from planner.core.database import create_db_and_tables
from planner.routes import auth, calendar, events
from planner.routes.deps import wants_json

# Configure logging
log_dir = Path(settings.log_dir).expanduser()
log_dir.mkdir(parents=True, exist_ok=True)
log_file = log_dir / "latest.log"

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    filename=str(log_file),
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown lifecycle."""
    logger.info("Starting Planner application")
    create_db_and_tables()
    if not identity_provider.configured:
        logger.warning("GOOGLE_CLIENT_ID/GOOGLE_CLIENT_SECRET not set, sign-in disabled")
    yield
    logger.info("Planner application shut down")


app = FastAPI(
    title=settings.app_name,
    description="A personal calendar: sign in with Google, keep dated events, view them as a list or month grid",
    version="0.1.0",
    lifespan=lifespan,
)

# Configure CORS for external access
origins = (
    ["*"]
    if settings.allowed_origins == "*"
    else [o.strip() for o in settings.allowed_origins.split(",")]
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Session persistence is decided once here: a long-lived cookie, or one
# that ends with the browser session.
app.add_middleware(
    SessionMiddleware,
    secret_key=settings.secret_key,
    session_cookie="planner_session",
    max_age=settings.session_max_age if settings.remember_session else None,
    same_site="lax",
)

# Include routers
app.include_router(auth.router)
app.include_router(events.router)
app.include_router(calendar.router)


@app.exception_handler(StarletteHTTPException)
async def sign_in_redirect(request: Request, exc: StarletteHTTPException):
    """Send signed-out browsers to the landing page instead of a bare 401."""
    if exc.status_code == 401 and request.method == "GET" and not wants_json(request):
        return RedirectResponse("/auth/signed-out", status_code=303)
    return await http_exception_handler(request, exc)


@app.get("/")
async def root(request: Request):
    """Redirect root to the event list, or the sign-in page."""
    rp = request.scope.get("root_path", "")
    if identity_provider.current(request.session) is None:
        return RedirectResponse(f"{rp}/auth/signed-out")
    return RedirectResponse(f"{rp}/events")


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy", "app": settings.app_name}
