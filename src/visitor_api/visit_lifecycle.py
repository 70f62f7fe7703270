"""
Visit status state machine.

    scheduled --check-in--> checked-in --check-out--> checked-out
        |
        +-----cancel-----> cancelled

checked-out and cancelled are terminal. Each timestamp is stamped once, at
its transition.
"""

from datetime import datetime
from enum import Enum
from typing import Dict, Tuple

from .models import VisitStatus


class VisitAction(str, Enum):
    CHECK_IN = "check-in"
    CHECK_OUT = "check-out"
    CANCEL = "cancel"


TRANSITIONS: Dict[Tuple[VisitStatus, VisitAction], VisitStatus] = {
    (VisitStatus.SCHEDULED, VisitAction.CHECK_IN): VisitStatus.CHECKED_IN,
    (VisitStatus.CHECKED_IN, VisitAction.CHECK_OUT): VisitStatus.CHECKED_OUT,
    (VisitStatus.SCHEDULED, VisitAction.CANCEL): VisitStatus.CANCELLED,
}

_TIMESTAMP_FIELDS = {
    VisitAction.CHECK_IN: "check_in_time",
    VisitAction.CHECK_OUT: "check_out_time",
}


# PUBLIC_INTERFACE
class InvalidTransition(Exception):
    """Raised when an action is not allowed from the visit's current status."""

    def __init__(self, current: VisitStatus, action: VisitAction):
        self.current = current
        self.action = action
        super().__init__(f"Cannot {action.value} a visit that is {current.value}")


# PUBLIC_INTERFACE
def next_status(current, action: VisitAction) -> VisitStatus:
    """Return the status reached by `action` from `current` or raise InvalidTransition."""
    current = VisitStatus(current)
    try:
        return TRANSITIONS[(current, action)]
    except KeyError:
        raise InvalidTransition(current, action) from None


# PUBLIC_INTERFACE
def transition_changes(visit, action: VisitAction, now: datetime) -> Dict[str, object]:
    """
    Column updates for applying `action` to `visit` at `now`.
    Does not touch the visit; callers persist the changes.
    """
    changes: Dict[str, object] = {"status": next_status(visit.status, action).value}
    timestamp_field = _TIMESTAMP_FIELDS.get(action)
    if timestamp_field is not None:
        if getattr(visit, timestamp_field) is not None:
            raise InvalidTransition(VisitStatus(visit.status), action)
        changes[timestamp_field] = now
    return changes


def is_terminal(status) -> bool:
    return VisitStatus(status) in (VisitStatus.CHECKED_OUT, VisitStatus.CANCELLED)
