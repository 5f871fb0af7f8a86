"""Project, Study, Task and TaskRequest models.

Progress columns on Project and Study are caches maintained by
``labtrack.engines.progress``; nothing else writes them.

Task.version is bumped by every guarded write so that two transactions
racing on the same task cannot both succeed.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from uuid import uuid4

from sqlmodel import Field as SQLField
from sqlmodel import SQLModel


class TaskStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class TaskPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class TaskType(str, Enum):
    RESEARCH = "research"
    ADMIN = "admin"


class TaskRequestType(str, Enum):
    COMPLETION = "completion"
    REASSIGNMENT = "reassignment"


class TaskRequestStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


def _now() -> datetime:
    return datetime.now(timezone.utc)


class Project(SQLModel, table=True):
    """A research project grouping studies and administrative tasks."""

    id: str = SQLField(default_factory=lambda: str(uuid4()), primary_key=True)
    name: str
    description: str = ""
    progress: float = 0.0  # Mean of non-deleted study progress, 2 decimals
    created_by_id: str | None = SQLField(default=None, foreign_key="user_account.id")
    deleted_at: datetime | None = None
    created_at: datetime = SQLField(default_factory=_now)
    updated_at: datetime = SQLField(default_factory=_now)


class Study(SQLModel, table=True):
    """A study within a project. Research tasks hang off studies."""

    id: str = SQLField(default_factory=lambda: str(uuid4()), primary_key=True)
    project_id: str = SQLField(foreign_key="project.id", index=True)
    name: str
    description: str = ""
    progress: float = 0.0  # 100 * completed / total research tasks, 2 decimals
    created_by_id: str | None = SQLField(default=None, foreign_key="user_account.id")
    deleted_at: datetime | None = None
    created_at: datetime = SQLField(default_factory=_now)
    updated_at: datetime = SQLField(default_factory=_now)


class Task(SQLModel, table=True):
    """Atomic unit of work.

    Research tasks belong to a study; admin tasks have no study and may
    reference a project directly. Admin tasks never count towards progress.
    """

    id: str = SQLField(default_factory=lambda: str(uuid4()), primary_key=True)
    task_type: str = TaskType.RESEARCH.value
    study_id: str | None = SQLField(default=None, foreign_key="study.id", index=True)
    project_id: str | None = SQLField(default=None, foreign_key="project.id")  # admin tasks only
    name: str
    description: str = ""
    status: str = TaskStatus.PENDING.value
    priority: str = TaskPriority.MEDIUM.value
    assigned_to_id: str | None = SQLField(default=None, foreign_key="user_account.id", index=True)
    created_by_id: str = SQLField(foreign_key="user_account.id")
    completed_at: datetime | None = None
    completed_by_id: str | None = SQLField(default=None, foreign_key="user_account.id")
    due_date: datetime | None = None
    deleted_at: datetime | None = None
    version: int = 0
    created_at: datetime = SQLField(default_factory=_now)
    updated_at: datetime = SQLField(default_factory=_now)

    @property
    def counts_towards_progress(self) -> bool:
        return self.task_type == TaskType.RESEARCH and self.study_id is not None

    @property
    def is_closed(self) -> bool:
        return self.status in (TaskStatus.COMPLETED, TaskStatus.CANCELLED)


class TaskRequest(SQLModel, table=True):
    """A researcher's proposal to complete or reassign a task.

    Append-only history per task; a reviewed request is never modified again.
    ``task_version`` is the task version the request was filed against; the
    request can only be approved while the task is still at that version.
    """

    __tablename__ = "task_request"

    id: str = SQLField(default_factory=lambda: str(uuid4()), primary_key=True)
    task_id: str = SQLField(foreign_key="task.id", index=True)
    requested_by_id: str = SQLField(foreign_key="user_account.id", index=True)
    request_type: str  # TaskRequestType
    requested_assigned_to_id: str | None = SQLField(default=None, foreign_key="user_account.id")
    task_version: int = 0
    status: str = SQLField(default=TaskRequestStatus.PENDING.value, index=True)
    reviewed_by_id: str | None = SQLField(default=None, foreign_key="user_account.id")
    reviewed_at: datetime | None = None
    notes: str | None = None
    created_at: datetime = SQLField(default_factory=_now)
    updated_at: datetime = SQLField(default_factory=_now)
