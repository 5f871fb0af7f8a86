"""Notification model — durable per-recipient record of a domain event."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Literal
from uuid import uuid4

from pydantic import BaseModel
from sqlmodel import Field as SQLField
from sqlmodel import SQLModel

NotificationType = Literal["task", "task_request", "message", "system"]
RoomType = Literal["project", "study", "task"]


class Notification(SQLModel, table=True):
    """Created once; only ``read`` is ever flipped afterwards."""

    id: str = SQLField(default_factory=lambda: str(uuid4()), primary_key=True)
    user_id: str = SQLField(foreign_key="user_account.id", index=True)
    type: str = "task"  # NotificationType
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
    read: bool = SQLField(default=False, index=True)
    created_at: datetime = SQLField(default_factory=lambda: datetime.now(timezone.utc))


class NotificationPayload(BaseModel):
    """What a caller hands to the dispatcher; the recipient is passed separately."""

    type: NotificationType = "task"
    title: str
    message: str
    room_type: RoomType | None = None
    room_id: str | None = None
    task_id: str | None = None
    study_id: str | None = None
    project_id: str | None = None
    sender_id: str | None = None
    sender_name: str | None = None
    action_url: str | None = None
