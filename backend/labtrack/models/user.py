"""User model — supplied by the external auth collaborator, read-only to the core."""

from __future__ import annotations

from datetime import datetime, timezone
from uuid import uuid4

from sqlmodel import Field as SQLField
from sqlmodel import SQLModel


class User(SQLModel, table=True):
    """An authenticated account with a single role."""

    __tablename__ = "user_account"

    id: str = SQLField(default_factory=lambda: str(uuid4()), primary_key=True)
    email: str = SQLField(unique=True, index=True)
    first_name: str = ""
    last_name: str = ""
    role: str = "researcher"  # Role: "manager" | "researcher"
    is_active: bool = True
    last_login_at: datetime | None = None
    created_at: datetime = SQLField(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = SQLField(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def display_name(self) -> str:
        name = f"{self.first_name} {self.last_name}".strip()
        return name or self.email
