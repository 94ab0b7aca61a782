from __future__ import annotations

from airman.models.booking import Booking, BookingStatus
from airman.models.user import UserRole

ALLOWED_TRANSITIONS: dict[BookingStatus, frozenset[BookingStatus]] = {
    BookingStatus.REQUESTED: frozenset({BookingStatus.ASSIGNED, BookingStatus.APPROVED, BookingStatus.CANCELLED}),
    BookingStatus.APPROVED: frozenset({BookingStatus.COMPLETED, BookingStatus.CANCELLED}),
    BookingStatus.ASSIGNED: frozenset({BookingStatus.COMPLETED, BookingStatus.CANCELLED}),
    BookingStatus.COMPLETED: frozenset(),
    BookingStatus.CANCELLED: frozenset(),
}

SETTABLE_STATUSES = frozenset(
    {BookingStatus.APPROVED, BookingStatus.ASSIGNED, BookingStatus.COMPLETED, BookingStatus.CANCELLED}
)

AUDIT_ACTION_BY_STATUS: dict[BookingStatus, str] = {
    BookingStatus.COMPLETED: "booking.complete",
    BookingStatus.CANCELLED: "booking.cancel",
    BookingStatus.APPROVED: "booking.approve",
    BookingStatus.ASSIGNED: "booking.approve",
}


def is_terminal(status: BookingStatus) -> bool:
    return not ALLOWED_TRANSITIONS[status]


def is_valid_transition(current: BookingStatus, target: BookingStatus) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


def can_transition(
    actor_role: UserRole | str,
    actor_id: str,
    booking: Booking,
    target_status: BookingStatus,
) -> bool:
    """Whether the actor may move ``booking`` to ``target_status``.

    Admins may act on any booking of their tenant, instructors only on
    bookings assigned to them and students only on their own. Whether the
    move itself is legal is decided by ``is_valid_transition``.
    """
    if target_status not in SETTABLE_STATUSES:
        return False
    role = UserRole(actor_role)
    if role == UserRole.admin:
        return True
    if role == UserRole.instructor:
        return booking.instructor_id is not None and booking.instructor_id == actor_id
    if role == UserRole.student:
        return booking.student_id == actor_id
    return False
