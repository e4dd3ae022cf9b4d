"""Database configuration and session management.

Events are kept in a single SQL table and partitioned per user by the
``user_id`` column; ``planner.calendar.store`` is the only module that
issues statements against it.

SQLite Configuration Choices:
    - **WAL (Write-Ahead Logging)**: lets page renders read the event table
      while a save from another tab is being written.

    - **Foreign Keys**: disabled by default in SQLite; enabled so any future
      child tables keep referential integrity.

    - **check_same_thread=False**: FastAPI runs sync dependencies in a thread
      pool, so a session may be used from a thread other than the one that
      opened the connection.
"""

from sqlalchemy import event as sa_event
from sqlmodel import Session, SQLModel, create_engine

from planner.core.config import settings

connect_args = (
    {"check_same_thread": False}
    if settings.database_url.startswith("sqlite")
    else {}
)

engine = create_engine(
    settings.database_url,
    connect_args=connect_args,
    echo=settings.debug,  # Log SQL statements when DEBUG=true
)


@sa_event.listens_for(engine, "connect")
def set_sqlite_pragma(dbapi_connection, connection_record):
    """Configure SQLite pragmas on each new connection.

    These settings are connection-level, not database-level, so they must
    be set each time a new connection is established from the pool.
    """
    if not settings.database_url.startswith("sqlite"):
        return
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_db_and_tables():
    """Create all database tables."""
    SQLModel.metadata.create_all(engine)


def get_session():
    """Dependency for getting database session."""
    with Session(engine) as session:
        yield session
