"""
Sync status state machines for paper intakes and inquiries
"""
from enum import Enum
from typing import Dict, FrozenSet

from mediation_intake.utils.exceptions import ConflictError


class SyncStatus(str, Enum):
    """Reconciliation state of a local record against the CRM"""
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"
    LINKED = "linked"
    SKIPPED = "skipped"


# pending is also allowed to stay pending: a reconciliation attempt that
# was interrupted before writing an outcome can be picked up again
INTAKE_TRANSITIONS: Dict[SyncStatus, FrozenSet[SyncStatus]] = {
    SyncStatus.PENDING: frozenset({
        SyncStatus.PENDING,
        SyncStatus.SUCCESS,
        SyncStatus.FAILED,
        SyncStatus.LINKED,
        SyncStatus.SKIPPED,
    }),
    SyncStatus.FAILED: frozenset({SyncStatus.PENDING, SyncStatus.SKIPPED}),
    SyncStatus.SUCCESS: frozenset(),
    SyncStatus.LINKED: frozenset(),
    SyncStatus.SKIPPED: frozenset(),
}

SYNCED_STATUSES = frozenset({SyncStatus.SUCCESS, SyncStatus.LINKED})


def can_transition(current: SyncStatus, target: SyncStatus) -> bool:
    return SyncStatus(target) in INTAKE_TRANSITIONS[SyncStatus(current)]


def ensure_transition(current: SyncStatus, target: SyncStatus) -> SyncStatus:
    """
    Validate a sync status change.

    Raises:
        ConflictError: If the move is not allowed from the current status
    """
    current = SyncStatus(current)
    target = SyncStatus(target)
    if not can_transition(current, target):
        raise ConflictError(
            f"Cannot change sync status from '{current.value}' to '{target.value}'"
        )
    return target


class InquiryStatus(str, Enum):
    SUBMITTED = "submitted"
    INTAKE_SCHEDULED = "intake-scheduled"
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    CLOSED = "closed"


INQUIRY_STATUS_ORDER = [
    InquiryStatus.SUBMITTED,
    InquiryStatus.INTAKE_SCHEDULED,
    InquiryStatus.SCHEDULED,
    InquiryStatus.IN_PROGRESS,
    InquiryStatus.COMPLETED,
]

TERMINAL_INQUIRY_STATUSES = frozenset({InquiryStatus.COMPLETED, InquiryStatus.CLOSED})


def ensure_inquiry_transition(current: InquiryStatus, target: InquiryStatus) -> InquiryStatus:
    """
    Inquiries move forward only. Any open inquiry may be closed;
    completed and closed are terminal.
    """
    current = InquiryStatus(current)
    target = InquiryStatus(target)

    if current == target:
        return target
    if current in TERMINAL_INQUIRY_STATUSES:
        raise ConflictError(f"Inquiry is already '{current.value}'")
    if target == InquiryStatus.CLOSED:
        return target
    if INQUIRY_STATUS_ORDER.index(target) < INQUIRY_STATUS_ORDER.index(current):
        raise ConflictError(
            f"Cannot move inquiry back from '{current.value}' to '{target.value}'"
        )
    return target


class MondaySyncStatus(str, Enum):
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"
    LINKED = "linked"


class InsightlySyncStatus(str, Enum):
    """Inquiry to Insightly Lead sync"""
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"
    LINKED = "linked"


class TaskType(str, Enum):
    NEW_INQUIRY = "new-inquiry"
    INTAKE_CALL = "intake-call"
    FOLLOW_UP = "follow-up"
    REVIEW_EVALS = "review-evals"


class TaskStatus(str, Enum):
    PENDING = "pending"
    DONE = "done"


class TaskPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
