"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  Complaint Status State Machine                                              ║
║                                                                              ║
║  open -> in_progress -> resolved -> closed                                   ║
║  escalated: brand / default hierarchy took over                              ║
║  resolved and closed are "settled": never overdue, never notified            ║
║  reopening (resolved|closed -> open) is allowed                              ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

import logging
from datetime import date
from enum import Enum
from typing import Any, Dict, Optional

from services.dates import parse_date
from services.errors import InvalidTransitionError

logger = logging.getLogger("complaint_status")


class ComplaintStatus(str, Enum):
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"
    CLOSED = "closed"
    ESCALATED = "escalated"


SETTLED_STATUSES = {ComplaintStatus.RESOLVED, ComplaintStatus.CLOSED}


# ════════════════════════════════════════════════════════════════════════════
# VALID STATE TRANSITIONS
# ════════════════════════════════════════════════════════════════════════════

VALID_COMPLAINT_TRANSITIONS = {
    ComplaintStatus.OPEN: [
        ComplaintStatus.IN_PROGRESS, ComplaintStatus.ESCALATED,
        ComplaintStatus.RESOLVED, ComplaintStatus.CLOSED,
    ],
    ComplaintStatus.IN_PROGRESS: [
        ComplaintStatus.OPEN, ComplaintStatus.ESCALATED,
        ComplaintStatus.RESOLVED, ComplaintStatus.CLOSED,
    ],
    ComplaintStatus.ESCALATED: [
        ComplaintStatus.IN_PROGRESS, ComplaintStatus.RESOLVED, ComplaintStatus.CLOSED,
    ],
    ComplaintStatus.RESOLVED: [ComplaintStatus.CLOSED, ComplaintStatus.OPEN],
    ComplaintStatus.CLOSED: [ComplaintStatus.OPEN],
}


def coerce_status(value: Any) -> Optional[ComplaintStatus]:
    if value is None or value == "":
        return None
    try:
        return ComplaintStatus(value)
    except ValueError:
        return None


def is_settled(status: Any) -> bool:
    return coerce_status(status) in SETTLED_STATUSES


def validate_transition(from_status: Any, to_status: Any) -> ComplaintStatus:
    """
    Returns the target status, or raises InvalidTransitionError.
    A record with an unknown stored status may move to any status.
    """
    target = ComplaintStatus(to_status)
    current = coerce_status(from_status)
    if current is None or current == target:
        return target

    allowed = VALID_COMPLAINT_TRANSITIONS[current]
    if target not in allowed:
        raise InvalidTransitionError(current.value, target.value, [s.value for s in allowed])

    logger.info(f"[STATE_MACHINE] complaint {current.value} -> {target.value}")
    return target


def is_overdue(complaint: Dict[str, Any], today: date) -> bool:
    """
    Derived flag, never persisted: not settled and the expected
    resolution day is before today.
    """
    if is_settled(complaint.get("status")):
        return False
    expected = parse_date(complaint.get("expectedResolutionDate"))
    return expected is not None and expected < today
