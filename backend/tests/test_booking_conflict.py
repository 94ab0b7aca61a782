from datetime import date

import pytest

from airman.models.booking import Booking, BookingStatus
from airman.models.user import UserRole
from airman.services.booking_conflict import has_conflict, has_conflict_in

BOOKING_DATE = date(2026, 3, 1)


@pytest.fixture()
def scheduled(db_session, make_tenant, make_user):
    tenant = make_tenant("conflict-test-tenant")
    instructor = make_user(tenant, UserRole.instructor, "conflict-instructor@example.com")
    student = make_user(tenant, UserRole.student, "conflict-student@example.com")
    existing = Booking(
        tenant_id=tenant.id,
        student_id=student.id,
        instructor_id=instructor.id,
        status=BookingStatus.ASSIGNED,
        date=BOOKING_DATE,
        start_time="10:00",
        end_time="11:00",
    )
    db_session.add(existing)
    db_session.commit()
    return {"tenant": tenant, "instructor": instructor, "student": student, "existing": existing}


def _check(db_session, scheduled, start, end, *, exclude=None, booking_date=BOOKING_DATE, tenant_id=None):
    kwargs = dict(
        tenant_id=tenant_id or scheduled["tenant"].id,
        instructor_id=scheduled["instructor"].id,
        booking_date=booking_date,
        start_time=start,
        end_time=end,
        exclude_booking_id=exclude,
    )
    in_store = has_conflict(db_session, **kwargs)
    in_memory = has_conflict_in([scheduled["existing"]], **kwargs)
    assert in_store == in_memory
    return in_store


def test_detects_overlapping_slot(db_session, scheduled):
    assert _check(db_session, scheduled, "10:30", "11:30") is True


def test_slot_after_existing_is_free(db_session, scheduled):
    assert _check(db_session, scheduled, "11:00", "12:00") is False


def test_slot_before_existing_is_free(db_session, scheduled):
    assert _check(db_session, scheduled, "09:00", "10:00") is False


def test_excluding_the_same_booking(db_session, scheduled):
    assert _check(db_session, scheduled, "10:00", "11:00", exclude=scheduled["existing"].id) is False


def test_other_dates_do_not_conflict(db_session, scheduled):
    assert _check(db_session, scheduled, "10:00", "11:00", booking_date=date(2026, 3, 2)) is False


def test_other_tenants_do_not_conflict(db_session, scheduled, make_tenant):
    other = make_tenant("conflict-other-tenant")
    assert _check(db_session, scheduled, "10:00", "11:00", tenant_id=other.id) is False


@pytest.mark.parametrize(
    "status, expected",
    [
        (BookingStatus.REQUESTED, False),
        (BookingStatus.CANCELLED, False),
        (BookingStatus.APPROVED, True),
        (BookingStatus.COMPLETED, True),
    ],
)
def test_only_committed_bookings_occupy_the_calendar(db_session, scheduled, status, expected):
    scheduled["existing"].status = status
    db_session.commit()
    assert _check(db_session, scheduled, "10:15", "10:45") is expected


def test_pure_check_with_injected_bookings():
    bookings = [
        Booking(
            id="b-1",
            tenant_id="t-1",
            student_id="s-1",
            instructor_id="i-1",
            status=BookingStatus.ASSIGNED,
            date=BOOKING_DATE,
            start_time="08:00",
            end_time="09:30",
        ),
        Booking(
            id="b-2",
            tenant_id="t-1",
            student_id="s-2",
            instructor_id="i-2",
            status=BookingStatus.ASSIGNED,
            date=BOOKING_DATE,
            start_time="09:00",
            end_time="10:00",
        ),
    ]
    common = dict(tenant_id="t-1", booking_date=BOOKING_DATE)
    assert has_conflict_in(bookings, instructor_id="i-1", start_time="09:00", end_time="09:15", **common) is True
    assert has_conflict_in(bookings, instructor_id="i-1", start_time="09:30", end_time="10:00", **common) is False
    assert has_conflict_in(bookings, instructor_id="i-3", start_time="08:00", end_time="12:00", **common) is False
