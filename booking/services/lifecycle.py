"""
lifecycle.py
------------
Booking state machine.

    CONFIRMED --check-in--> ACTIVE --check-out--> COMPLETED
        |                     |  \
        +--cancel--> CANCELLED   +--end passed, no check-out--> OVERDUE
                      ^          |
                      +--cancel--+
    OVERDUE --operator check-out--> COMPLETED

COMPLETED and CANCELLED are terminal.
"""

from ..exceptions import BookingValidationError
from ..models import BookingStatus

TRANSITIONS = {
    BookingStatus.CONFIRMED: (BookingStatus.ACTIVE, BookingStatus.CANCELLED),
    BookingStatus.ACTIVE: (BookingStatus.COMPLETED, BookingStatus.CANCELLED, BookingStatus.OVERDUE),
    BookingStatus.OVERDUE: (BookingStatus.COMPLETED,),
    BookingStatus.COMPLETED: (),
    BookingStatus.CANCELLED: (),
}

TERMINAL_STATUSES = tuple(status for status, targets in TRANSITIONS.items() if not targets)


def can_transition(current, target) -> bool:
    return target in TRANSITIONS.get(current, ())


def assert_transition(current, target):
    if not can_transition(current, target):
        raise BookingValidationError(
            f"Cannot move a {current} booking to {target}",
            code="invalid_transition",
            params={"current": current, "target": target},
        )
