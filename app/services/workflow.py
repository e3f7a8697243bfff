"""Feature request status workflow.

submitted -> analyzing -> reviewed -> approved|rejected -> in-progress -> completed
"""
from enum import Enum


class RequestStatus(str, Enum):
    SUBMITTED = "submitted"
    ANALYZING = "analyzing"
    REVIEWED = "reviewed"
    APPROVED = "approved"
    REJECTED = "rejected"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"


# Position along the forward path; rejected sits beside approved
_ORDER = {
    RequestStatus.SUBMITTED: 0,
    RequestStatus.ANALYZING: 1,
    RequestStatus.REVIEWED: 2,
    RequestStatus.APPROVED: 3,
    RequestStatus.REJECTED: 3,
    RequestStatus.IN_PROGRESS: 4,
    RequestStatus.COMPLETED: 5,
}

TERMINAL_STATUSES = frozenset([RequestStatus.REJECTED, RequestStatus.COMPLETED])

# Statuses the enrichment pipeline may still move
ENRICHABLE_STATUSES = (RequestStatus.SUBMITTED.value, RequestStatus.ANALYZING.value)


class InvalidTransitionError(ValueError):
    def __init__(self, current: str, target: str):
        super().__init__(f"Cannot move request from '{current}' to '{target}'")
        self.current = current
        self.target = target


def is_terminal(status: str) -> bool:
    return RequestStatus(status) in TERMINAL_STATUSES


def can_transition(current: str, target: str) -> bool:
    """Operator transitions: any forward move, or rejection, out of a non-terminal status"""
    current_status = RequestStatus(current)
    target_status = RequestStatus(target)

    if current_status in TERMINAL_STATUSES:
        return False
    if target_status == RequestStatus.REJECTED:
        return True
    return _ORDER[target_status] > _ORDER[current_status]


def validate_transition(current: str, target: str) -> None:
    if not can_transition(current, target):
        raise InvalidTransitionError(current, target)
