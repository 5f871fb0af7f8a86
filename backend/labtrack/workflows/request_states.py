"""TaskRequest state machine — transition table + guard.

    pending ──approve──▶ approved   (terminal)
    pending ──reject───▶ rejected   (terminal)

Any other transition, including re-approving or re-rejecting a reviewed
request, raises ConflictError.
"""

from __future__ import annotations

from labtrack.errors import ConflictError
from labtrack.models.task import TaskRequest, TaskRequestStatus

# Key: (from_state, to_state) → trigger description
# Absent pair → illegal transition

LEGAL_TRANSITIONS: dict[tuple[str, str], str] = {
    (TaskRequestStatus.PENDING.value, TaskRequestStatus.APPROVED.value): "Manager approves",
    (TaskRequestStatus.PENDING.value, TaskRequestStatus.REJECTED.value): "Manager rejects",
}

TERMINAL_STATES = {TaskRequestStatus.APPROVED.value, TaskRequestStatus.REJECTED.value}


class IllegalRequestTransition(ConflictError):
    """Raised when a request is moved along a transition not in the table."""

    def __init__(self, request_id: str, from_state: str, to_state: str) -> None:
        self.request_id = request_id
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(
            f"Request {request_id} has already been processed "
            f"({from_state} → {to_state} is not allowed)"
        )


def check_transition(request: TaskRequest, to_state: TaskRequestStatus) -> None:
    """Validate a transition without applying it.

    Raises:
        IllegalRequestTransition: If the request is terminal or the pair is absent.
    """
    from_state = request.status
    target = to_state.value
    if from_state in TERMINAL_STATES or (from_state, target) not in LEGAL_TRANSITIONS:
        raise IllegalRequestTransition(request.id, from_state, target)
