"""Task request API — researchers propose, managers review.

POST /api/v1/task-requests/completion — request completion of an assigned task
POST /api/v1/task-requests/reassignment — request handing a task to another researcher
POST /api/v1/task-requests/{id}/approve — approve and apply to the task
POST /api/v1/task-requests/{id}/reject — reject; the task is untouched
GET /api/v1/task-requests — list (managers: all, researchers: own)
GET /api/v1/task-requests/count — pending requests visible to the caller

Each write commits its unit of work before any notification or real-time
event is produced.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import Field

from labtrack.api.deps import get_current_user, get_publisher, get_uow_factory
from labtrack.db.unit_of_work import UnitOfWorkFactory
from labtrack.models.user import User
from labtrack.models.views import TaskRequestView, TaskView, WireModel
from labtrack.notifications.publisher import EventPublisher
from labtrack.workflows.task_requests import build_request_workflow

router = APIRouter(prefix="/api/v1/task-requests", tags=["task-requests"])


# === Request Models ===


class CompletionRequestBody(WireModel):
    task_id: str = Field(min_length=1)
    notes: str | None = Field(default=None, max_length=2000)


class ReassignmentRequestBody(WireModel):
    task_id: str = Field(min_length=1)
    requested_assigned_to_id: str = Field(min_length=1)
    notes: str | None = Field(default=None, max_length=2000)


class RejectBody(WireModel):
    notes: str | None = Field(default=None, max_length=2000)


def _request_data(request) -> dict:
    return TaskRequestView.model_validate(request).to_wire()


# === Endpoints ===


@router.post("/completion", status_code=201)
async def create_completion_request(
    body: CompletionRequestBody,
    user: User = Depends(get_current_user),
    uow_factory: UnitOfWorkFactory = Depends(get_uow_factory),
    publisher: EventPublisher = Depends(get_publisher),
) -> dict:
    with uow_factory() as uow:
        outcome = build_request_workflow(uow).request_completion(body.task_id, user, body.notes)
    await publisher.request_created(outcome, user)
    return {"data": _request_data(outcome.request)}


@router.post("/reassignment", status_code=201)
async def create_reassignment_request(
    body: ReassignmentRequestBody,
    user: User = Depends(get_current_user),
    uow_factory: UnitOfWorkFactory = Depends(get_uow_factory),
    publisher: EventPublisher = Depends(get_publisher),
) -> dict:
    with uow_factory() as uow:
        outcome = build_request_workflow(uow).request_reassignment(
            body.task_id, user, body.requested_assigned_to_id, body.notes,
        )
    await publisher.request_created(outcome, user)
    return {"data": _request_data(outcome.request)}


@router.post("/{request_id}/approve")
async def approve_request(
    request_id: str,
    user: User = Depends(get_current_user),
    uow_factory: UnitOfWorkFactory = Depends(get_uow_factory),
    publisher: EventPublisher = Depends(get_publisher),
) -> dict:
    with uow_factory() as uow:
        outcome = build_request_workflow(uow).approve(request_id, user)
    await publisher.request_approved(outcome, user)
    return {
        "data": {
            "request": _request_data(outcome.request),
            "task": TaskView.model_validate(outcome.task).to_wire(),
        }
    }


@router.post("/{request_id}/reject")
async def reject_request(
    request_id: str,
    body: RejectBody | None = None,
    user: User = Depends(get_current_user),
    uow_factory: UnitOfWorkFactory = Depends(get_uow_factory),
    publisher: EventPublisher = Depends(get_publisher),
) -> dict:
    notes = body.notes if body is not None else None
    with uow_factory() as uow:
        outcome = build_request_workflow(uow).reject(request_id, user, notes)
    await publisher.request_rejected(outcome, user)
    return {"data": _request_data(outcome.request)}


@router.get("")
async def list_requests(
    user: User = Depends(get_current_user),
    uow_factory: UnitOfWorkFactory = Depends(get_uow_factory),
) -> dict:
    with uow_factory() as uow:
        requests = build_request_workflow(uow).list_for(user)
        return {"data": [_request_data(r) for r in requests]}


@router.get("/count")
async def count_pending_requests(
    user: User = Depends(get_current_user),
    uow_factory: UnitOfWorkFactory = Depends(get_uow_factory),
) -> dict:
    with uow_factory() as uow:
        return {"count": build_request_workflow(uow).pending_count(user)}
