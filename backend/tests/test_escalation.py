from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
import logging
import threading

import pytest
from sqlalchemy import select

from airman.models.audit_log import AuditLog
from airman.models.booking import Booking, BookingStatus
from airman.models.notification import Notification, NotificationType
from airman.models.user import UserRole
from airman.services import escalation
from airman.services.escalation import EscalationScheduler, format_elapsed, run_escalation_sweep

NOW = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)
THRESHOLD = timedelta(hours=24)


@pytest.fixture()
def school(make_tenant, make_user):
    tenant = make_tenant("sweep-school")
    return {
        "tenant": tenant,
        "admin": make_user(tenant, UserRole.admin, "ops@example.com"),
        "student": make_user(tenant, UserRole.student, "pilot@example.com"),
        "instructor": make_user(tenant, UserRole.instructor, "cfi@example.com"),
    }


@pytest.fixture()
def add_booking(db_session):
    def _add(tenant, student, *, age: timedelta, **fields) -> Booking:
        booking = Booking(
            tenant_id=tenant.id,
            student_id=student.id,
            date=fields.pop("booking_date", date(2026, 3, 5)),
            start_time="10:00",
            end_time="11:00",
            created_at=NOW - age,
            **fields,
        )
        db_session.add(booking)
        db_session.commit()
        return booking

    return _add


class RecordingNotifier:
    def __init__(self, fail: bool = False):
        self.calls: list[dict] = []
        self.fail = fail

    def __call__(self, db, **kwargs):
        self.calls.append(kwargs)
        if self.fail:
            raise RuntimeError("notification transport down")
        return []


def _escalation_audits(db_session, booking_id: str) -> list[AuditLog]:
    return list(
        db_session.execute(
            select(AuditLog).where(AuditLog.resource_id == booking_id, AuditLog.action == "booking.escalate")
        ).scalars()
    )


def test_format_elapsed():
    assert format_elapsed(timedelta(hours=25, minutes=7)) == "25h 07m"
    assert format_elapsed(timedelta(seconds=-5)) == "0h 00m"


def test_stale_booking_is_escalated_once(db_session, school, add_booking):
    booking = add_booking(school["tenant"], school["student"], age=timedelta(hours=30))

    first = run_escalation_sweep(db_session, now=NOW, threshold=THRESHOLD)
    second = run_escalation_sweep(db_session, now=NOW + timedelta(hours=1), threshold=THRESHOLD)

    assert first.escalated_count == 1
    assert first.failed_count == 0
    assert second.escalated_count == 0

    db_session.refresh(booking)
    assert booking.escalated_at is not None
    assert booking.status == BookingStatus.REQUESTED

    audits = _escalation_audits(db_session, booking.id)
    assert len(audits) == 1
    assert audits[0].user_id is None
    assert audits[0].correlation_id == f"escalation-{booking.id}"
    assert audits[0].after_state["reason"] == "Unassigned for more than 24h 00m"

    notifications = list(db_session.execute(select(Notification)).scalars())
    assert len(notifications) == 1
    assert notifications[0].user_id == school["admin"].id
    assert notifications[0].notification_type == NotificationType.escalation
    assert notifications[0].title == f"Booking escalation: {booking.id}"
    assert "pilot@example.com" in notifications[0].message
    assert "30h 00m" in notifications[0].message


def test_sweep_skips_fresh_assigned_and_cancelled_bookings(db_session, school, add_booking):
    tenant, student = school["tenant"], school["student"]
    add_booking(tenant, student, age=timedelta(hours=2))
    add_booking(
        tenant,
        student,
        age=timedelta(hours=48),
        instructor_id=school["instructor"].id,
        status=BookingStatus.ASSIGNED,
    )
    add_booking(tenant, student, age=timedelta(hours=48), status=BookingStatus.CANCELLED)
    add_booking(tenant, student, age=timedelta(hours=48), escalated_at=NOW - timedelta(hours=10))

    result = run_escalation_sweep(db_session, now=NOW, threshold=THRESHOLD, notifier=RecordingNotifier())

    assert result.escalated_count == 0
    assert result.failed_count == 0


def test_requested_booking_with_preferred_instructor_is_not_escalated(db_session, school, add_booking):
    add_booking(school["tenant"], school["student"], age=timedelta(hours=48), instructor_id=school["instructor"].id)

    result = run_escalation_sweep(db_session, now=NOW, threshold=THRESHOLD, notifier=RecordingNotifier())

    assert result.escalated_count == 0


def test_notification_failure_keeps_escalation(db_session, school, add_booking, caplog):
    booking = add_booking(school["tenant"], school["student"], age=timedelta(hours=30))
    notifier = RecordingNotifier(fail=True)

    with caplog.at_level(logging.WARNING, logger="airman.services.escalation"):
        result = run_escalation_sweep(db_session, now=NOW, threshold=THRESHOLD, notifier=notifier)

    assert result.escalated_count == 1
    assert len(notifier.calls) == 1
    assert "Escalation notification failed" in caplog.text

    db_session.refresh(booking)
    assert booking.escalated_at is not None
    assert len(_escalation_audits(db_session, booking.id)) == 1

    retry = run_escalation_sweep(db_session, now=NOW, threshold=THRESHOLD, notifier=notifier)
    assert retry.escalated_count == 0
    assert len(notifier.calls) == 1


def test_failing_item_does_not_stop_the_sweep(db_session, school, add_booking, monkeypatch):
    broken = add_booking(school["tenant"], school["student"], age=timedelta(hours=40))
    healthy = add_booking(school["tenant"], school["student"], age=timedelta(hours=30))
    real_log_audit = escalation.log_audit

    def flaky_log_audit(db, **kwargs):
        if kwargs["resource_id"] == broken.id:
            raise RuntimeError("audit store unavailable")
        return real_log_audit(db, **kwargs)

    monkeypatch.setattr(escalation, "log_audit", flaky_log_audit)

    result = run_escalation_sweep(db_session, now=NOW, threshold=THRESHOLD, notifier=RecordingNotifier())

    assert result.escalated_count == 1
    assert result.failed_count == 1
    db_session.refresh(broken)
    db_session.refresh(healthy)
    assert broken.escalated_at is None
    assert healthy.escalated_at is not None


def test_selection_failure_propagates(db_session, monkeypatch):
    def broken_select(*args, **kwargs):
        raise RuntimeError("database unavailable")

    monkeypatch.setattr(escalation, "find_escalation_candidates", broken_select)

    with pytest.raises(RuntimeError, match="database unavailable"):
        run_escalation_sweep(db_session, now=NOW, threshold=THRESHOLD)


def test_sweep_can_be_scoped_to_one_tenant(db_session, school, add_booking, make_tenant, make_user):
    other = make_tenant("other-school")
    other_student = make_user(other, UserRole.student, "other-pilot@example.com")
    mine = add_booking(school["tenant"], school["student"], age=timedelta(hours=30))
    theirs = add_booking(other, other_student, age=timedelta(hours=30))

    result = run_escalation_sweep(
        db_session,
        now=NOW,
        threshold=THRESHOLD,
        tenant_id=school["tenant"].id,
        notifier=RecordingNotifier(),
    )

    assert result.escalated_count == 1
    db_session.refresh(mine)
    db_session.refresh(theirs)
    assert mine.escalated_at is not None
    assert theirs.escalated_at is None


def test_scheduler_rejects_non_positive_interval(session_factory):
    with pytest.raises(ValueError):
        EscalationScheduler(session_factory, interval_seconds=0)


def test_tick_now_uses_injected_clock(session_factory, db_session, school, add_booking):
    booking = add_booking(school["tenant"], school["student"], age=timedelta(hours=12))
    clock = {"now": NOW}
    notifier = RecordingNotifier()
    scheduler = EscalationScheduler(
        session_factory,
        interval_seconds=60,
        threshold=THRESHOLD,
        clock=lambda: clock["now"],
        notifier=notifier,
    )

    assert scheduler.tick_now().escalated_count == 0

    clock["now"] = NOW + timedelta(hours=13)
    assert scheduler.tick_now().escalated_count == 1
    assert notifier.calls[0]["tenant_id"] == school["tenant"].id

    db_session.refresh(booking)
    assert booking.escalated_at is not None


def test_tick_swallows_sweep_errors(session_factory, monkeypatch, caplog):
    def broken_sweep(*args, **kwargs):
        raise RuntimeError("sweep exploded")

    monkeypatch.setattr(escalation, "run_escalation_sweep", broken_sweep)
    scheduler = EscalationScheduler(session_factory, interval_seconds=60, threshold=THRESHOLD)

    with pytest.raises(RuntimeError):
        scheduler.tick_now()
    with caplog.at_level(logging.ERROR, logger="airman.services.escalation"):
        scheduler._tick()

    assert "Escalation sweep failed" in caplog.text


def test_scheduler_thread_sweeps_until_stopped(session_factory, school, add_booking):
    add_booking(school["tenant"], school["student"], age=timedelta(hours=30))
    notified = threading.Event()

    def notifier(db, **kwargs):
        notified.set()
        return []

    scheduler = EscalationScheduler(
        session_factory,
        interval_seconds=0.05,
        threshold=THRESHOLD,
        clock=lambda: NOW,
        notifier=notifier,
    )
    scheduler.start()
    try:
        assert scheduler.running
        assert notified.wait(timeout=5)
    finally:
        scheduler.stop(timeout=5)

    assert not scheduler.running


def test_zero_threshold_escalates_immediately(db_session, school, add_booking):
    booking = add_booking(school["tenant"], school["student"], age=timedelta(minutes=1))

    result = run_escalation_sweep(db_session, now=NOW, threshold=timedelta(0), notifier=RecordingNotifier())

    assert result.escalated_count == 1
    db_session.refresh(booking)
    assert booking.escalated_at is not None
