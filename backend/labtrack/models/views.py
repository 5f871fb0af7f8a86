"""Wire snapshots of entities.

Used both as REST response bodies and as real-time event payloads, so a
client can update its view from an event without a follow-up fetch.
Attributes are snake_case in Python and camelCase on the wire.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class UserView(WireModel):
    id: str
    email: str
    first_name: str
    last_name: str
    role: str
    is_active: bool


class TaskView(WireModel):
    id: str
    task_type: str
    study_id: str | None = None
    project_id: str | None = None
    name: str
    description: str = ""
    status: str
    priority: str
    assigned_to_id: str | None = None
    created_by_id: str
    completed_at: datetime | None = None
    completed_by_id: str | None = None
    due_date: datetime | None = None
    created_at: datetime
    updated_at: datetime


class TaskRequestView(WireModel):
    id: str
    task_id: str
    requested_by_id: str
    request_type: str
    requested_assigned_to_id: str | None = None
    status: str
    reviewed_by_id: str | None = None
    reviewed_at: datetime | None = None
    notes: str | None = None
    created_at: datetime
    updated_at: datetime


class NotificationView(WireModel):
    id: str
    type: str
    title: str
    message: str
    room_type: str | None = None
    room_id: str | None = None
    task_id: str | None = None
    study_id: str | None = None
    project_id: str | None = None
    sender_id: str | None = None
    sender_name: str | None = None
    action_url: str | None = None
    read: bool
    created_at: datetime


class ProgressView(WireModel):
    study_id: str
    study_progress: float
    project_id: str
    project_progress: float
