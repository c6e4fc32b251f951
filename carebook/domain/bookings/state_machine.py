"""
Booking status transitions

Booking statuses: pending → confirmed → in-progress → completed
with cancelled/rejected as side exits. completed, cancelled and rejected are terminal.
"""

PENDING = "pending"
CONFIRMED = "confirmed"
IN_PROGRESS = "in-progress"
COMPLETED = "completed"
CANCELLED = "cancelled"
REJECTED = "rejected"

BOOKING_STATUSES = (PENDING, CONFIRMED, IN_PROGRESS, COMPLETED, CANCELLED, REJECTED)
TERMINAL_STATUSES = (COMPLETED, CANCELLED, REJECTED)

# Statuses that hold a provider's time slot
BLOCKING_STATUSES = (PENDING, CONFIRMED)

# Statuses from which either completion handshake may finish a booking
COMPLETABLE_STATUSES = (CONFIRMED, IN_PROGRESS)

VALID_TRANSITIONS = {
    PENDING: (CONFIRMED, REJECTED, CANCELLED),
    CONFIRMED: (IN_PROGRESS, COMPLETED, CANCELLED),
    IN_PROGRESS: (COMPLETED, CANCELLED),
    COMPLETED: (),
    CANCELLED: (),
    REJECTED: (),
}


def is_terminal(status: str) -> bool:
    return status in TERMINAL_STATUSES


def is_completable(status: str) -> bool:
    return status in COMPLETABLE_STATUSES


def validate_status_transition(current_status: str, new_status: str) -> bool:
    """
    Validate if a booking status transition is allowed

    Args:
        current_status: Current booking status
        new_status: Desired new status

    Returns:
        bool: True if transition is valid, False otherwise
    """
    return new_status in VALID_TRANSITIONS.get(current_status, ())
