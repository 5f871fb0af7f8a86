"""Unit of work — owns one Session and one transaction.

Usage:
    with UnitOfWork() as uow:
        workflow = build_request_workflow(uow)
        result = workflow.approve(request_id, reviewer)
    # committed here; any exception inside the block rolled everything back

Objects stay usable after commit (``expire_on_commit=False``) so callers can
build responses and events from them.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from labtrack.db.repositories import (
    SqlNotificationRepository,
    SqlProjectRepository,
    SqlStudyRepository,
    SqlTaskRepository,
    SqlTaskRequestRepository,
    SqlUserRepository,
)
from labtrack.errors import DatabaseError

logger = logging.getLogger(__name__)


class UnitOfWork:
    def __init__(self, bind: Engine | None = None) -> None:
        if bind is None:
            from labtrack.db.database import engine as bind
        self._bind = bind
        self.session: Session | None = None

    def __enter__(self) -> UnitOfWork:
        self.session = Session(self._bind, expire_on_commit=False)
        self.tasks = SqlTaskRepository(self.session)
        self.studies = SqlStudyRepository(self.session)
        self.projects = SqlProjectRepository(self.session)
        self.requests = SqlTaskRequestRepository(self.session)
        self.users = SqlUserRepository(self.session)
        self.notifications = SqlNotificationRepository(self.session)
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        assert self.session is not None
        try:
            if exc_type is None:
                self.commit()
            else:
                self.session.rollback()
                if isinstance(exc, SQLAlchemyError):
                    logger.error("Transaction rolled back: %s", exc)
                    raise DatabaseError("Database operation failed") from exc
        finally:
            self.session.close()

    def commit(self) -> None:
        assert self.session is not None
        try:
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error("Commit failed, rolled back: %s", e)
            raise DatabaseError("Database commit failed") from e


UnitOfWorkFactory = Callable[[], UnitOfWork]
