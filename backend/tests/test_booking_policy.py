from datetime import date

import pytest

from airman.models.booking import Booking, BookingStatus
from airman.models.user import UserRole
from airman.services.booking_policy import can_transition, is_terminal, is_valid_transition


def _booking(**overrides) -> Booking:
    values = dict(
        id="booking-1",
        tenant_id="tenant-1",
        student_id="student-1",
        instructor_id="instructor-1",
        status=BookingStatus.ASSIGNED,
        date=date(2026, 3, 1),
        start_time="10:00",
        end_time="11:00",
    )
    values.update(overrides)
    return Booking(**values)


def test_admin_may_transition_any_booking():
    booking = _booking(instructor_id=None)
    assert can_transition(UserRole.admin, "admin-1", booking, BookingStatus.CANCELLED) is True
    assert can_transition("admin", "admin-1", booking, BookingStatus.APPROVED) is True


def test_instructor_only_for_own_assigned_booking():
    booking = _booking()
    assert can_transition(UserRole.instructor, "instructor-1", booking, BookingStatus.COMPLETED) is True
    assert can_transition(UserRole.instructor, "instructor-2", booking, BookingStatus.COMPLETED) is False
    unassigned = _booking(instructor_id=None)
    assert can_transition(UserRole.instructor, "instructor-1", unassigned, BookingStatus.CANCELLED) is False


def test_student_only_for_own_booking():
    booking = _booking()
    assert can_transition(UserRole.student, "student-1", booking, BookingStatus.CANCELLED) is True
    assert can_transition(UserRole.student, "student-2", booking, BookingStatus.CANCELLED) is False


def test_requested_is_never_a_settable_target():
    assert can_transition(UserRole.admin, "admin-1", _booking(), BookingStatus.REQUESTED) is False


@pytest.mark.parametrize(
    "current, target, allowed",
    [
        (BookingStatus.REQUESTED, BookingStatus.ASSIGNED, True),
        (BookingStatus.REQUESTED, BookingStatus.APPROVED, True),
        (BookingStatus.REQUESTED, BookingStatus.CANCELLED, True),
        (BookingStatus.REQUESTED, BookingStatus.COMPLETED, False),
        (BookingStatus.APPROVED, BookingStatus.COMPLETED, True),
        (BookingStatus.ASSIGNED, BookingStatus.CANCELLED, True),
        (BookingStatus.ASSIGNED, BookingStatus.APPROVED, False),
        (BookingStatus.COMPLETED, BookingStatus.CANCELLED, False),
        (BookingStatus.CANCELLED, BookingStatus.ASSIGNED, False),
    ],
)
def test_state_machine(current, target, allowed):
    assert is_valid_transition(current, target) is allowed


def test_terminal_states():
    assert is_terminal(BookingStatus.COMPLETED)
    assert is_terminal(BookingStatus.CANCELLED)
    assert not is_terminal(BookingStatus.REQUESTED)
