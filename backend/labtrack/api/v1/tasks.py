"""Task API — direct manager actions.

POST /api/v1/tasks — create a research or admin task
POST /api/v1/tasks/{id}/complete — complete without a request
POST /api/v1/tasks/{id}/assign — assign to an active researcher
DELETE /api/v1/tasks/{id} — move to trash
POST /api/v1/tasks/{id}/restore — restore from trash
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from fastapi import APIRouter, Depends
from pydantic import Field

from labtrack.api.deps import get_current_user, get_publisher, get_uow_factory
from labtrack.db.unit_of_work import UnitOfWorkFactory
from labtrack.models.user import User
from labtrack.models.views import TaskView, WireModel
from labtrack.notifications.publisher import EventPublisher
from labtrack.workflows.tasks import build_task_actions

router = APIRouter(prefix="/api/v1/tasks", tags=["tasks"])


class CreateTaskBody(WireModel):
    name: str = Field(min_length=1, max_length=255)
    task_type: Literal["research", "admin"] = "research"
    study_id: str | None = None
    project_id: str | None = None
    description: str = Field(default="", max_length=5000)
    priority: Literal["low", "medium", "high", "urgent"] = "medium"
    assigned_to_id: str | None = None
    due_date: datetime | None = None


class AssignBody(WireModel):
    assigned_to_id: str = Field(min_length=1)


def _task_data(task) -> dict:
    return {"data": TaskView.model_validate(task).to_wire()}


@router.post("", status_code=201)
async def create_task(
    body: CreateTaskBody,
    user: User = Depends(get_current_user),
    uow_factory: UnitOfWorkFactory = Depends(get_uow_factory),
    publisher: EventPublisher = Depends(get_publisher),
) -> dict:
    with uow_factory() as uow:
        outcome = build_task_actions(uow).create_task(user, **body.model_dump())
    if outcome.task.assigned_to_id:
        await publisher.task_assigned(outcome, user)
    return _task_data(outcome.task)


@router.post("/{task_id}/complete")
async def complete_task(
    task_id: str,
    user: User = Depends(get_current_user),
    uow_factory: UnitOfWorkFactory = Depends(get_uow_factory),
    publisher: EventPublisher = Depends(get_publisher),
) -> dict:
    with uow_factory() as uow:
        outcome = build_task_actions(uow).complete_task(task_id, user)
    await publisher.task_completed(outcome, user)
    return _task_data(outcome.task)


@router.post("/{task_id}/assign")
async def assign_task(
    task_id: str,
    body: AssignBody,
    user: User = Depends(get_current_user),
    uow_factory: UnitOfWorkFactory = Depends(get_uow_factory),
    publisher: EventPublisher = Depends(get_publisher),
) -> dict:
    with uow_factory() as uow:
        outcome = build_task_actions(uow).assign_task(task_id, body.assigned_to_id, user)
    await publisher.task_assigned(outcome, user)
    return _task_data(outcome.task)


@router.delete("/{task_id}")
async def delete_task(
    task_id: str,
    user: User = Depends(get_current_user),
    uow_factory: UnitOfWorkFactory = Depends(get_uow_factory),
) -> dict:
    with uow_factory() as uow:
        outcome = build_task_actions(uow).delete_task(task_id, user)
    return _task_data(outcome.task)


@router.post("/{task_id}/restore")
async def restore_task(
    task_id: str,
    user: User = Depends(get_current_user),
    uow_factory: UnitOfWorkFactory = Depends(get_uow_factory),
) -> dict:
    with uow_factory() as uow:
        outcome = build_task_actions(uow).restore_task(task_id, user)
    return _task_data(outcome.task)
