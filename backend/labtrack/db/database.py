"""Database setup — SQLModel/SQLAlchemy engine.

SQLite (default) runs in WAL mode so readers are not blocked while a
review transaction is writing. Any SQLAlchemy URL works; row locks
(``SELECT ... FOR UPDATE``) are honoured where the backend supports them.
"""

from __future__ import annotations

import os

from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlmodel import SQLModel, create_engine

from labtrack.config import settings


def get_database_url() -> str:
    """Get database URL, ensuring the data directory exists."""
    url = settings.database_url
    if url.startswith("sqlite:///"):
        db_path = url.replace("sqlite:///", "")
        db_dir = os.path.dirname(db_path)
        if db_dir:
            os.makedirs(db_dir, exist_ok=True)
    return url


def _set_sqlite_pragmas(dbapi_connection, connection_record):
    """Enable WAL mode and foreign keys for every SQLite connection."""
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA synchronous=NORMAL")  # Safe with WAL
    cursor.execute("PRAGMA busy_timeout=5000")    # 5s wait on lock
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def make_engine(url: str, **kwargs) -> Engine:
    """Create an engine; SQLite engines get the pragma hook."""
    if url.startswith("sqlite"):
        kwargs.setdefault("connect_args", {"check_same_thread": False})
    new_engine = create_engine(url, echo=False, **kwargs)
    if new_engine.dialect.name == "sqlite":
        event.listen(new_engine, "connect", _set_sqlite_pragmas)
    return new_engine


engine = make_engine(get_database_url())


def register_models() -> None:
    """Import all table classes so SQLModel metadata knows about them."""
    from labtrack.models.notification import Notification  # noqa: F401
    from labtrack.models.task import Project, Study, Task, TaskRequest  # noqa: F401
    from labtrack.models.user import User  # noqa: F401


def create_db_and_tables(target: Engine | None = None) -> None:
    """Create all tables defined by SQLModel metadata."""
    register_models()
    SQLModel.metadata.create_all(target or engine)
