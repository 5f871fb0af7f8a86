"""Direct task actions taken by managers outside the request workflow.

Every action that changes whether a research task counts as completed, or
whether it counts at all (create, complete, delete, restore), calls
``ProgressEngine.recompute`` in the same transaction, exactly like an
approved completion request does.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from labtrack.db.repositories import (
    ProjectRepository,
    StudyRepository,
    TaskRepository,
    UserRepository,
)
from labtrack.engines.progress import ProgressEngine, ProgressResult
from labtrack.errors import ConflictError, NotFoundError, ValidationError
from labtrack.models.task import Task, TaskPriority, TaskStatus, TaskType
from labtrack.models.user import User
from labtrack.security.rbac import Action, Resource, Role, parse_role, require

logger = logging.getLogger(__name__)


@dataclass
class TaskOutcome:
    task: Task
    progress: ProgressResult | None = None
    previous_assignee_id: str | None = None


class TaskActions:
    def __init__(
        self,
        tasks: TaskRepository,
        studies: StudyRepository,
        projects: ProjectRepository,
        users: UserRepository,
        progress: ProgressEngine,
    ) -> None:
        self._tasks = tasks
        self._studies = studies
        self._projects = projects
        self._users = users
        self._progress = progress

    def create_task(
        self,
        actor: User,
        *,
        name: str,
        task_type: str = TaskType.RESEARCH.value,
        study_id: str | None = None,
        project_id: str | None = None,
        description: str = "",
        priority: str = TaskPriority.MEDIUM.value,
        assigned_to_id: str | None = None,
        due_date: datetime | None = None,
    ) -> TaskOutcome:
        """Create a research task (needs a study) or an admin task (no study)."""
        require(actor, Resource.TASK, Action.CREATE, "Only managers can create tasks")
        if not name.strip():
            raise ValidationError("Task name is required")
        if priority not in {p.value for p in TaskPriority}:
            raise ValidationError(f"Invalid priority: {priority}")

        if task_type == TaskType.RESEARCH:
            if not study_id:
                raise ValidationError("Research tasks must have a studyId")
            study = self._studies.get(study_id)
            if study is None or study.deleted_at is not None:
                raise NotFoundError(f"Study {study_id} not found")
            project_id = None
        elif task_type == TaskType.ADMIN:
            if study_id:
                raise ValidationError("Admin tasks cannot belong to a study")
            if project_id and self._projects.get(project_id) is None:
                raise NotFoundError(f"Project {project_id} not found")
        else:
            raise ValidationError(f"Invalid task type: {task_type}")

        if assigned_to_id:
            self._require_active_researcher(assigned_to_id)

        task = self._tasks.add(Task(
            name=name.strip(),
            task_type=task_type,
            study_id=study_id,
            project_id=project_id,
            description=description,
            priority=priority,
            assigned_to_id=assigned_to_id,
            status=(TaskStatus.IN_PROGRESS if assigned_to_id else TaskStatus.PENDING).value,
            created_by_id=actor.id,
            due_date=due_date,
        ))
        progress = self._recompute_for(task)
        logger.info("Task %s (%s) created by %s", task.id, task_type, actor.id)
        return TaskOutcome(task=task, progress=progress)

    def complete_task(self, task_id: str, actor: User) -> TaskOutcome:
        """Manager completes a task directly, without a request."""
        require(actor, Resource.TASK, Action.COMPLETE, "Only managers can complete tasks directly")
        task = self._load_live_task(task_id)
        if task.status == TaskStatus.COMPLETED:
            raise ValidationError("Task is already completed")
        if task.status == TaskStatus.CANCELLED:
            raise ValidationError("Cannot complete a cancelled task")

        self._write(task, {
            "status": TaskStatus.COMPLETED.value,
            "completed_at": datetime.now(timezone.utc),
            "completed_by_id": actor.id,
        })
        progress = self._recompute_for(task)
        logger.info("Task %s completed directly by %s", task.id, actor.id)
        return TaskOutcome(task=task, progress=progress)

    def assign_task(self, task_id: str, assignee_id: str, actor: User) -> TaskOutcome:
        require(actor, Resource.TASK, Action.ASSIGN, "Only managers can assign tasks")
        task = self._load_live_task(task_id)
        self._require_active_researcher(assignee_id)

        previous = task.assigned_to_id
        changes: dict = {"assigned_to_id": assignee_id}
        if task.status == TaskStatus.PENDING:
            changes["status"] = TaskStatus.IN_PROGRESS.value
        self._write(task, changes)
        logger.info("Task %s assigned to %s by %s", task.id, assignee_id, actor.id)
        return TaskOutcome(task=task, previous_assignee_id=previous)

    def delete_task(self, task_id: str, actor: User) -> TaskOutcome:
        """Soft delete: the task leaves its study's progress aggregate."""
        require(actor, Resource.TASK, Action.DELETE, "Only managers can delete tasks")
        task = self._load_live_task(task_id)
        self._write(task, {"deleted_at": datetime.now(timezone.utc)})
        progress = self._recompute_for(task)
        logger.info("Task %s moved to trash by %s", task.id, actor.id)
        return TaskOutcome(task=task, progress=progress)

    def restore_task(self, task_id: str, actor: User) -> TaskOutcome:
        require(actor, Resource.TASK, Action.DELETE, "Only managers can restore tasks")
        task = self._tasks.get(task_id, for_update=True)
        if task is None:
            raise NotFoundError(f"Task {task_id} not found")
        if task.deleted_at is None:
            raise ValidationError("Task is not in trash")
        self._write(task, {"deleted_at": None})
        progress = self._recompute_for(task)
        logger.info("Task %s restored by %s", task.id, actor.id)
        return TaskOutcome(task=task, progress=progress)

    def _load_live_task(self, task_id: str) -> Task:
        task = self._tasks.get(task_id, for_update=True)
        if task is None or task.deleted_at is not None:
            raise NotFoundError(f"Task {task_id} not found")
        return task

    def _write(self, task: Task, changes: dict) -> None:
        if not self._tasks.update_guarded(task, changes):
            raise ConflictError(f"Task {task.id} was modified concurrently")

    def _recompute_for(self, task: Task) -> ProgressResult | None:
        if not task.counts_towards_progress:
            return None
        return self._progress.recompute(task.study_id)  # type: ignore[arg-type]

    def _require_active_researcher(self, user_id: str) -> User:
        user = self._users.get(user_id)
        if user is None:
            raise NotFoundError(f"User {user_id} not found")
        if parse_role(user.role) != Role.RESEARCHER or not user.is_active:
            raise ValidationError("Tasks can only be assigned to active researchers")
        return user


def build_task_actions(uow) -> TaskActions:
    progress = ProgressEngine(uow.tasks, uow.studies, uow.projects)
    return TaskActions(uow.tasks, uow.studies, uow.projects, uow.users, progress)
