"""Role-based access control.

A closed set of roles, resources and actions plus one total function
``is_allowed(role, resource, action)``. Ownership checks (is this researcher
the assignee?) are made by the workflows, not here.
"""

from __future__ import annotations

from enum import Enum

from labtrack.errors import PermissionDeniedError
from labtrack.models.user import User


class Role(str, Enum):
    MANAGER = "manager"
    RESEARCHER = "researcher"


class Resource(str, Enum):
    PROJECT = "project"
    STUDY = "study"
    TASK = "task"
    TASK_REQUEST = "task_request"
    NOTIFICATION = "notification"


class Action(str, Enum):
    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"
    COMPLETE = "complete"
    ASSIGN = "assign"
    REVIEW = "review"


_M = Role.MANAGER
_R = Role.RESEARCHER

PERMISSIONS: dict[tuple[Resource, Action], frozenset[Role]] = {
    (Resource.PROJECT, Action.READ): frozenset({_M, _R}),
    (Resource.STUDY, Action.READ): frozenset({_M, _R}),
    (Resource.TASK, Action.CREATE): frozenset({_M}),
    (Resource.TASK, Action.READ): frozenset({_M, _R}),
    (Resource.TASK, Action.UPDATE): frozenset({_M, _R}),
    (Resource.TASK, Action.COMPLETE): frozenset({_M}),  # researchers go through a request
    (Resource.TASK, Action.ASSIGN): frozenset({_M}),
    (Resource.TASK, Action.DELETE): frozenset({_M}),
    (Resource.TASK_REQUEST, Action.CREATE): frozenset({_R}),
    (Resource.TASK_REQUEST, Action.READ): frozenset({_M, _R}),
    (Resource.TASK_REQUEST, Action.REVIEW): frozenset({_M}),
    (Resource.NOTIFICATION, Action.READ): frozenset({_M, _R}),
    (Resource.NOTIFICATION, Action.UPDATE): frozenset({_M, _R}),
}


def parse_role(value: str) -> Role | None:
    """Map a stored role string onto Role; unknown strings map to None."""
    try:
        return Role(value.lower())
    except ValueError:
        return None


def is_allowed(role: Role | None, resource: Resource, action: Action) -> bool:
    """Total: unknown roles and absent (resource, action) pairs are denied."""
    if role is None:
        return False
    return role in PERMISSIONS.get((resource, action), frozenset())


def require(user: User, resource: Resource, action: Action, message: str | None = None) -> Role:
    """Raise PermissionDeniedError unless ``user`` may perform the action."""
    role = parse_role(user.role)
    if not user.is_active or not is_allowed(role, resource, action):
        raise PermissionDeniedError(
            message or f"Role '{user.role}' may not {action.value} {resource.value}"
        )
    assert role is not None
    return role
