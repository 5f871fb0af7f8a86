"""Post-commit side effects of task and task-request outcomes.

Called by the API layer only after the workflow's unit of work committed.
For every outcome the durable notifications are written first (awaited),
then the real-time events are scheduled on the bus.

    request created    → notify task creator        → task-request:created  → task creator
    request approved   → notify requester           → task-request:approved → requester
                         (+ new assignee)             task:completed (broadcast) | task:assigned → new assignee
    request rejected   → notify requester           → task-request:rejected → requester
    direct completion  → notify assignee (if any)   → task:completed (broadcast)
    direct assignment  → notify assignee            → task:assigned → assignee

The workflow result is already committed, so a notification that cannot be
stored is logged and skipped instead of failing the response.
"""

from __future__ import annotations

import logging

from labtrack.models.notification import NotificationPayload
from labtrack.models.task import Task, TaskRequestType
from labtrack.models.user import User
from labtrack.models.views import ProgressView, TaskRequestView, TaskView
from labtrack.notifications.dispatcher import NotificationDispatcher
from labtrack.realtime.bus import RealtimeBus
from labtrack.workflows.task_requests import RequestOutcome
from labtrack.workflows.tasks import TaskOutcome

logger = logging.getLogger(__name__)


def _task_payload(task: Task, actor: User, title: str, message: str, type_: str = "task") -> NotificationPayload:
    return NotificationPayload(
        type=type_,
        title=title,
        message=message,
        room_type="task",
        room_id=task.id,
        task_id=task.id,
        study_id=task.study_id,
        project_id=task.project_id,
        sender_id=actor.id,
        sender_name=actor.display_name,
        action_url=f"/tasks/{task.id}",
    )


def _snapshot(outcome: RequestOutcome | TaskOutcome) -> dict:
    data: dict = {"task": TaskView.model_validate(outcome.task).to_wire()}
    if isinstance(outcome, RequestOutcome):
        data["request"] = TaskRequestView.model_validate(outcome.request).to_wire()
    if outcome.progress is not None:
        data["progress"] = ProgressView.model_validate(outcome.progress).to_wire()
    return data


class EventPublisher:
    def __init__(self, dispatcher: NotificationDispatcher, bus: RealtimeBus | None = None) -> None:
        self._dispatcher = dispatcher
        self._bus = bus

    async def request_created(self, outcome: RequestOutcome, requester: User) -> None:
        task, request = outcome.task, outcome.request
        if request.request_type == TaskRequestType.COMPLETION:
            message = f'{requester.display_name} requested completion of "{task.name}"'
        else:
            message = f'{requester.display_name} requested reassignment of "{task.name}"'
        await self._notify(
            task.created_by_id,
            _task_payload(task, requester, "New task request", message, "task_request"),
        )
        self._emit("task-request:created", _snapshot(outcome), [task.created_by_id])

    async def request_approved(self, outcome: RequestOutcome, reviewer: User) -> None:
        task, request = outcome.task, outcome.request
        is_completion = request.request_type == TaskRequestType.COMPLETION

        await self._notify(
            request.requested_by_id,
            _task_payload(
                task, reviewer, "Request approved",
                f'{reviewer.display_name} approved your {request.request_type} request for "{task.name}"',
                "task_request",
            ),
        )
        if not is_completion and task.assigned_to_id:
            await self._notify(
                task.assigned_to_id,
                _task_payload(task, reviewer, "Task assigned", f'You have been assigned "{task.name}"'),
            )

        snapshot = _snapshot(outcome)
        self._emit("task-request:approved", snapshot, [request.requested_by_id])
        if is_completion:
            self._emit("task:completed", snapshot)
        elif task.assigned_to_id:
            self._emit("task:assigned", snapshot, [task.assigned_to_id])

    async def request_rejected(self, outcome: RequestOutcome, reviewer: User) -> None:
        task, request = outcome.task, outcome.request
        message = f'{reviewer.display_name} rejected your {request.request_type} request for "{task.name}"'
        if request.notes:
            message = f"{message}: {request.notes}"
        await self._notify(
            request.requested_by_id,
            _task_payload(task, reviewer, "Request rejected", message, "task_request"),
        )
        self._emit("task-request:rejected", _snapshot(outcome), [request.requested_by_id])

    async def task_completed(self, outcome: TaskOutcome, actor: User) -> None:
        task = outcome.task
        if task.assigned_to_id and task.assigned_to_id != actor.id:
            await self._notify(
                task.assigned_to_id,
                _task_payload(task, actor, "Task completed", f'"{task.name}" was marked completed'),
            )
        self._emit("task:completed", _snapshot(outcome))

    async def task_assigned(self, outcome: TaskOutcome, actor: User) -> None:
        task = outcome.task
        if not task.assigned_to_id:
            return
        await self._notify(
            task.assigned_to_id,
            _task_payload(task, actor, "Task assigned", f'You have been assigned "{task.name}"'),
        )
        self._emit("task:assigned", _snapshot(outcome), [task.assigned_to_id])

    async def _notify(self, recipient_id: str | None, payload: NotificationPayload) -> None:
        if not recipient_id:
            return
        try:
            await self._dispatcher.create_and_dispatch(recipient_id, payload)
        except Exception as e:
            logger.error("Notification for %s could not be stored: %s", recipient_id, e, exc_info=True)

    def _emit(self, event_type, payload: dict, target_user_ids: list[str] | None = None) -> None:
        if self._bus is not None:
            self._bus.dispatch(event_type, payload=payload, target_user_ids=target_user_ids)
