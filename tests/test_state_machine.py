import pytest

from carebook.domain.bookings.state_machine import (
    BOOKING_STATUSES,
    TERMINAL_STATUSES,
    is_completable,
    is_terminal,
    validate_status_transition,
)


@pytest.mark.parametrize(
    "current,new",
    [
        ("pending", "confirmed"),
        ("pending", "rejected"),
        ("pending", "cancelled"),
        ("confirmed", "in-progress"),
        ("confirmed", "completed"),
        ("confirmed", "cancelled"),
        ("in-progress", "completed"),
        ("in-progress", "cancelled"),
    ],
)
def test_allowed_transitions(current, new):
    assert validate_status_transition(current, new)


@pytest.mark.parametrize(
    "current,new",
    [
        ("pending", "completed"),
        ("pending", "in-progress"),
        ("confirmed", "pending"),
        ("in-progress", "confirmed"),
        ("pending", "pending"),
    ],
)
def test_disallowed_transitions(current, new):
    assert not validate_status_transition(current, new)


@pytest.mark.parametrize("terminal", TERMINAL_STATUSES)
def test_terminal_statuses_never_move(terminal):
    assert is_terminal(terminal)
    assert not any(validate_status_transition(terminal, target) for target in BOOKING_STATUSES)


def test_completable_statuses():
    assert is_completable("confirmed")
    assert is_completable("in-progress")
    assert not is_completable("pending")
    assert not is_completable("completed")
