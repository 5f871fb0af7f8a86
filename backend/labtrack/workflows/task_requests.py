"""Task-Request Workflow — researcher proposals, manager review.

A researcher who is the current assignee of a task may request that it be
completed or reassigned. A manager approves or rejects the request. Only an
approved completion (or a direct manager completion, see
``labtrack.workflows.tasks``) changes a task's status, and both paths run
the same ``ProgressEngine.recompute`` inside the reviewer's transaction.

Every method runs inside the caller's unit of work and never commits.
Each request records the task version it was filed against and can only be
approved while the task is still at that version. This holds whether the
reviewer reads the task before a competing review commits (the guarded
write misses) or after it (a row lock made it wait, and the version no
longer matches). Either way the loser raises ConflictError, which rolls its
transaction back untouched.

Several pending requests may exist for one task. Approving one leaves its
siblings pending; they can no longer be approved, only rejected.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from labtrack.db.repositories import TaskRepository, TaskRequestRepository, UserRepository
from labtrack.engines.progress import ProgressEngine, ProgressResult
from labtrack.errors import ConflictError, NotFoundError, ValidationError
from labtrack.models.task import (
    Task,
    TaskRequest,
    TaskRequestStatus,
    TaskRequestType,
    TaskStatus,
)
from labtrack.models.user import User
from labtrack.security.rbac import Action, Resource, Role, parse_role, require
from labtrack.workflows.request_states import check_transition

logger = logging.getLogger(__name__)


@dataclass
class RequestOutcome:
    """A request together with the task it targets, after the operation."""

    request: TaskRequest
    task: Task
    progress: ProgressResult | None = None
    previous_assignee_id: str | None = None


class TaskRequestWorkflow:
    """Creates and reviews TaskRequests through repository ports."""

    def __init__(
        self,
        tasks: TaskRepository,
        requests: TaskRequestRepository,
        users: UserRepository,
        progress: ProgressEngine,
    ) -> None:
        self._tasks = tasks
        self._requests = requests
        self._users = users
        self._progress = progress

    # === Researcher side ===

    def request_completion(self, task_id: str, requester: User, notes: str | None = None) -> RequestOutcome:
        """Ask a manager to mark a task completed.

        Raises:
            PermissionDeniedError: Requester is not a researcher.
            NotFoundError: Task does not exist.
            ValidationError: Requester is not the assignee, or the task is closed.
        """
        require(requester, Resource.TASK_REQUEST, Action.CREATE,
                "Only researchers can request task completion")
        task = self._load_owned_open_task(task_id, requester)

        request = self._requests.add(TaskRequest(
            task_id=task.id,
            requested_by_id=requester.id,
            request_type=TaskRequestType.COMPLETION.value,
            task_version=task.version,
            notes=notes,
        ))
        logger.info("Completion requested: request %s task %s by %s", request.id, task.id, requester.id)
        return RequestOutcome(request=request, task=task)

    def request_reassignment(
        self,
        task_id: str,
        requester: User,
        target_assignee_id: str,
        notes: str | None = None,
    ) -> RequestOutcome:
        """Ask a manager to hand a task to another researcher.

        Raises:
            PermissionDeniedError: Requester is not a researcher.
            NotFoundError: Task or target user does not exist.
            ValidationError: Ownership violation, closed task, or invalid target.
        """
        require(requester, Resource.TASK_REQUEST, Action.CREATE,
                "Only researchers can request task reassignment")
        if not target_assignee_id:
            raise ValidationError("Reassignment requires a target assignee")
        task = self._load_owned_open_task(task_id, requester)

        if target_assignee_id == requester.id:
            raise ValidationError("Cannot request reassignment to yourself")
        self._require_active_researcher(target_assignee_id)

        request = self._requests.add(TaskRequest(
            task_id=task.id,
            requested_by_id=requester.id,
            request_type=TaskRequestType.REASSIGNMENT.value,
            requested_assigned_to_id=target_assignee_id,
            task_version=task.version,
            notes=notes,
        ))
        logger.info(
            "Reassignment requested: request %s task %s from %s to %s",
            request.id, task.id, requester.id, target_assignee_id,
        )
        return RequestOutcome(request=request, task=task)

    # === Manager side ===

    def approve(self, request_id: str, reviewer: User) -> RequestOutcome:
        """Approve a pending request and apply its effect to the task.

        Completion: task → completed, completion fields set, progress
        recomputed. Reassignment: assignee → target, pending task → in_progress.

        Raises:
            PermissionDeniedError: Reviewer is not a manager.
            NotFoundError: Request or task does not exist.
            ConflictError: Request not pending, task closed or changed since the
                request was filed, or a lost race.
            ValidationError: Task cancelled, or reassignment target no longer valid.
        """
        require(reviewer, Resource.TASK_REQUEST, Action.REVIEW,
                "Only managers can approve task requests")
        request = self._load_request(request_id)
        check_transition(request, TaskRequestStatus.APPROVED)

        task = self._tasks.get(request.task_id, for_update=True)
        if task is None or task.deleted_at is not None:
            raise NotFoundError(f"Task {request.task_id} not found")

        now = datetime.now(timezone.utc)
        previous_assignee_id = task.assigned_to_id
        if request.request_type == TaskRequestType.COMPLETION:
            changes = self._completion_changes(task, reviewer, now)
        elif request.request_type == TaskRequestType.REASSIGNMENT:
            changes = self._reassignment_changes(task, request)
        else:
            raise ValidationError(f"Unknown request type: {request.request_type}")

        if task.version != request.task_version:
            raise ConflictError(f"Task {task.id} changed after request {request.id} was filed")
        if not self._tasks.update_guarded(task, changes):
            raise ConflictError(f"Task {task.id} was modified by another review")

        progress = None
        if request.request_type == TaskRequestType.COMPLETION and task.counts_towards_progress:
            progress = self._progress.recompute(task.study_id)  # type: ignore[arg-type]

        reviewed = self._requests.mark_reviewed(request, {
            "status": TaskRequestStatus.APPROVED.value,
            "reviewed_by_id": reviewer.id,
            "reviewed_at": now,
        })
        if not reviewed:
            raise ConflictError(f"Request {request.id} has already been processed")

        logger.info("Request %s (%s) approved by %s", request.id, request.request_type, reviewer.id)
        return RequestOutcome(
            request=request,
            task=task,
            progress=progress,
            previous_assignee_id=previous_assignee_id,
        )

    def reject(self, request_id: str, reviewer: User, notes: str | None = None) -> RequestOutcome:
        """Reject a pending request. The task is not touched.

        Raises:
            PermissionDeniedError: Reviewer is not a manager.
            NotFoundError: Request does not exist.
            ConflictError: Request not pending.
        """
        require(reviewer, Resource.TASK_REQUEST, Action.REVIEW,
                "Only managers can reject task requests")
        request = self._load_request(request_id)
        check_transition(request, TaskRequestStatus.REJECTED)

        task = self._tasks.get(request.task_id)
        if task is None:
            raise NotFoundError(f"Task {request.task_id} not found")

        reviewed = self._requests.mark_reviewed(request, {
            "status": TaskRequestStatus.REJECTED.value,
            "reviewed_by_id": reviewer.id,
            "reviewed_at": datetime.now(timezone.utc),
            "notes": notes or request.notes,
        })
        if not reviewed:
            raise ConflictError(f"Request {request.id} has already been processed")

        logger.info("Request %s (%s) rejected by %s", request.id, request.request_type, reviewer.id)
        return RequestOutcome(request=request, task=task)

    # === Queries ===

    def list_for(self, user: User) -> list[TaskRequest]:
        """Managers see every request; researchers only their own."""
        role = require(user, Resource.TASK_REQUEST, Action.READ)
        if role == Role.MANAGER:
            return self._requests.list()
        return self._requests.list(requested_by_id=user.id)

    def pending_count(self, user: User) -> int:
        role = require(user, Resource.TASK_REQUEST, Action.READ)
        if role == Role.MANAGER:
            return self._requests.count_pending()
        return self._requests.count_pending(requested_by_id=user.id)

    # === Helpers ===

    def _load_request(self, request_id: str) -> TaskRequest:
        request = self._requests.get(request_id, for_update=True)
        if request is None:
            raise NotFoundError(f"Request {request_id} not found")
        return request

    def _load_owned_open_task(self, task_id: str, requester: User) -> Task:
        task = self._tasks.get(task_id)
        if task is None or task.deleted_at is not None:
            raise NotFoundError(f"Task {task_id} not found")
        if task.assigned_to_id != requester.id:
            raise ValidationError("You can only submit requests for tasks assigned to you")
        if task.status == TaskStatus.COMPLETED:
            raise ValidationError("Task is already completed")
        if task.status == TaskStatus.CANCELLED:
            raise ValidationError("Task is cancelled")
        return task

    def _require_active_researcher(self, user_id: str) -> User:
        user = self._users.get(user_id)
        if user is None:
            raise NotFoundError(f"User {user_id} not found")
        if parse_role(user.role) != Role.RESEARCHER or not user.is_active:
            raise ValidationError("Tasks can only be reassigned to active researchers")
        return user

    @staticmethod
    def _completion_changes(task: Task, reviewer: User, now: datetime) -> dict:
        if task.status == TaskStatus.CANCELLED:
            raise ValidationError("Cannot complete a cancelled task")
        if task.status == TaskStatus.COMPLETED:
            raise ConflictError(f"Task {task.id} is already completed")
        return {
            "status": TaskStatus.COMPLETED.value,
            "completed_at": now,
            "completed_by_id": reviewer.id,
        }

    def _reassignment_changes(self, task: Task, request: TaskRequest) -> dict:
        if task.is_closed:
            raise ConflictError(f"Task {task.id} is already {task.status}")
        if not request.requested_assigned_to_id:
            raise ValidationError("Reassignment request missing target user")
        self._require_active_researcher(request.requested_assigned_to_id)
        changes: dict = {"assigned_to_id": request.requested_assigned_to_id}
        if task.status == TaskStatus.PENDING:
            changes["status"] = TaskStatus.IN_PROGRESS.value
        return changes


def build_request_workflow(uow) -> TaskRequestWorkflow:
    """Wire a workflow onto the repositories of an open unit of work."""
    progress = ProgressEngine(uow.tasks, uow.studies, uow.projects)
    return TaskRequestWorkflow(uow.tasks, uow.requests, uow.users, progress)
