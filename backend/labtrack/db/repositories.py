"""Repository interfaces and their SQLModel implementations.

The workflow core (ProgressEngine, TaskRequestWorkflow, task actions)
depends only on the Protocols below. The Sql* classes operate on a
caller-owned Session and never commit; transaction boundaries belong to
``labtrack.db.unit_of_work.UnitOfWork``.

Guarded writes (``update_guarded`` / ``mark_reviewed``) are compare-and-swap
UPDATEs: they return False when another transaction got there first.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Protocol

from sqlalchemy import func, update
from sqlmodel import Session, select

from labtrack.models.notification import Notification
from labtrack.models.task import (
    Project,
    Study,
    Task,
    TaskRequest,
    TaskRequestStatus,
    TaskStatus,
    TaskType,
)
from labtrack.models.user import User

# === Ports ===


class TaskRepository(Protocol):
    def get(self, task_id: str, *, for_update: bool = False) -> Task | None: ...

    def add(self, task: Task) -> Task: ...

    def update_guarded(self, task: Task, changes: dict[str, Any]) -> bool: ...

    def count_research_tasks(self, study_id: str, *, completed_only: bool = False) -> int: ...


class StudyRepository(Protocol):
    def get(self, study_id: str, *, for_update: bool = False) -> Study | None: ...

    def list_for_project(self, project_id: str) -> list[Study]: ...

    def set_progress(self, study: Study, progress: float) -> None: ...


class ProjectRepository(Protocol):
    def get(self, project_id: str, *, for_update: bool = False) -> Project | None: ...

    def list_ids(self) -> list[str]: ...

    def set_progress(self, project: Project, progress: float) -> None: ...


class TaskRequestRepository(Protocol):
    def get(self, request_id: str, *, for_update: bool = False) -> TaskRequest | None: ...

    def add(self, request: TaskRequest) -> TaskRequest: ...

    def mark_reviewed(self, request: TaskRequest, changes: dict[str, Any]) -> bool: ...

    def list(self, *, requested_by_id: str | None = None) -> list[TaskRequest]: ...

    def count_pending(self, *, requested_by_id: str | None = None) -> int: ...


class UserRepository(Protocol):
    def get(self, user_id: str) -> User | None: ...


class NotificationRepository(Protocol):
    def add(self, notification: Notification) -> Notification: ...

    def get_for_user(self, notification_id: str, user_id: str) -> Notification | None: ...

    def list_for_user(self, user_id: str, limit: int) -> list[Notification]: ...

    def count_unread(self, user_id: str) -> int: ...

    def mark_read(self, notification: Notification) -> None: ...


# === SQL implementations ===


class SqlTaskRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def get(self, task_id: str, *, for_update: bool = False) -> Task | None:
        stmt = select(Task).where(Task.id == task_id)
        if for_update:
            stmt = stmt.with_for_update()
        return self._session.exec(stmt).first()

    def add(self, task: Task) -> Task:
        self._session.add(task)
        self._session.flush()
        return task

    def update_guarded(self, task: Task, changes: dict[str, Any]) -> bool:
        values = {**changes, "version": task.version + 1, "updated_at": datetime.now(timezone.utc)}
        result = self._session.execute(
            update(Task)
            .where(Task.id == task.id, Task.version == task.version)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            return False
        self._session.refresh(task)
        return True

    def count_research_tasks(self, study_id: str, *, completed_only: bool = False) -> int:
        stmt = (
            select(func.count())
            .select_from(Task)
            .where(
                Task.study_id == study_id,
                Task.task_type == TaskType.RESEARCH.value,
                Task.deleted_at.is_(None),  # type: ignore[union-attr]
            )
        )
        if completed_only:
            stmt = stmt.where(Task.status == TaskStatus.COMPLETED.value)
        return int(self._session.exec(stmt).one())


class SqlStudyRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def get(self, study_id: str, *, for_update: bool = False) -> Study | None:
        stmt = select(Study).where(Study.id == study_id)
        if for_update:
            stmt = stmt.with_for_update()
        return self._session.exec(stmt).first()

    def list_for_project(self, project_id: str) -> list[Study]:
        stmt = select(Study).where(
            Study.project_id == project_id,
            Study.deleted_at.is_(None),  # type: ignore[union-attr]
        )
        return list(self._session.exec(stmt).all())

    def set_progress(self, study: Study, progress: float) -> None:
        study.progress = progress
        study.updated_at = datetime.now(timezone.utc)
        self._session.add(study)
        self._session.flush()


class SqlProjectRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def get(self, project_id: str, *, for_update: bool = False) -> Project | None:
        stmt = select(Project).where(Project.id == project_id)
        if for_update:
            stmt = stmt.with_for_update()
        return self._session.exec(stmt).first()

    def list_ids(self) -> list[str]:
        stmt = select(Project.id).where(Project.deleted_at.is_(None))  # type: ignore[union-attr]
        return list(self._session.exec(stmt).all())

    def set_progress(self, project: Project, progress: float) -> None:
        project.progress = progress
        project.updated_at = datetime.now(timezone.utc)
        self._session.add(project)
        self._session.flush()


class SqlTaskRequestRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def get(self, request_id: str, *, for_update: bool = False) -> TaskRequest | None:
        stmt = select(TaskRequest).where(TaskRequest.id == request_id)
        if for_update:
            stmt = stmt.with_for_update()
        return self._session.exec(stmt).first()

    def add(self, request: TaskRequest) -> TaskRequest:
        self._session.add(request)
        self._session.flush()
        return request

    def mark_reviewed(self, request: TaskRequest, changes: dict[str, Any]) -> bool:
        values = {**changes, "updated_at": datetime.now(timezone.utc)}
        result = self._session.execute(
            update(TaskRequest)
            .where(
                TaskRequest.id == request.id,
                TaskRequest.status == TaskRequestStatus.PENDING.value,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            return False
        self._session.refresh(request)
        return True

    def list(self, *, requested_by_id: str | None = None) -> list[TaskRequest]:
        stmt = select(TaskRequest)
        if requested_by_id is not None:
            stmt = stmt.where(TaskRequest.requested_by_id == requested_by_id)
        stmt = stmt.order_by(TaskRequest.created_at.desc())  # type: ignore[attr-defined]
        return list(self._session.exec(stmt).all())

    def count_pending(self, *, requested_by_id: str | None = None) -> int:
        stmt = (
            select(func.count())
            .select_from(TaskRequest)
            .where(TaskRequest.status == TaskRequestStatus.PENDING.value)
        )
        if requested_by_id is not None:
            stmt = stmt.where(TaskRequest.requested_by_id == requested_by_id)
        return int(self._session.exec(stmt).one())


class SqlUserRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def get(self, user_id: str) -> User | None:
        return self._session.get(User, user_id)


class SqlNotificationRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def add(self, notification: Notification) -> Notification:
        self._session.add(notification)
        self._session.flush()
        return notification

    def get_for_user(self, notification_id: str, user_id: str) -> Notification | None:
        stmt = select(Notification).where(
            Notification.id == notification_id,
            Notification.user_id == user_id,
        )
        return self._session.exec(stmt).first()

    def list_for_user(self, user_id: str, limit: int) -> list[Notification]:
        stmt = (
            select(Notification)
            .where(Notification.user_id == user_id)
            .order_by(Notification.created_at.desc())  # type: ignore[attr-defined]
            .limit(limit)
        )
        return list(self._session.exec(stmt).all())

    def count_unread(self, user_id: str) -> int:
        stmt = (
            select(func.count())
            .select_from(Notification)
            .where(Notification.user_id == user_id, Notification.read == False)  # noqa: E712
        )
        return int(self._session.exec(stmt).one())

    def mark_read(self, notification: Notification) -> None:
        notification.read = True
        self._session.add(notification)
        self._session.flush()
