"""Booking lifecycle: request, assignment, status changes and calendar reads.

Every lookup is scoped by tenant. A booking that exists under another tenant
is reported exactly like a missing one.
"""
from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
import hashlib
import logging

from sqlalchemy import select, text, update
from sqlalchemy.orm import Session

from airman.core.exceptions import (
    NotFoundError,
    PermissionDeniedError,
    SchedulingConflictError,
    StateConflictError,
    ValidationError,
)
from airman.models.booking import Booking, BookingStatus
from airman.models.user import User, UserRole
from airman.services.audit import log_audit
from airman.services.booking_conflict import has_conflict
from airman.services.booking_policy import (
    AUDIT_ACTION_BY_STATUS,
    SETTABLE_STATUSES,
    can_transition,
    is_terminal,
    is_valid_transition,
)
from airman.services.intervals import parse_time_to_minutes
from airman.services.locks import KeyedLockRegistry

logger = logging.getLogger(__name__)

RESOURCE_TYPE = "booking"


def validate_time_window(start_time: str, end_time: str) -> tuple[int, int]:
    try:
        start = parse_time_to_minutes(start_time)
        end = parse_time_to_minutes(end_time)
    except ValueError as exc:
        raise ValidationError(str(exc), details={"start_time": start_time, "end_time": end_time}) from exc
    if start >= end:
        raise ValidationError(
            "start_time must be before end_time",
            details={"start_time": start_time, "end_time": end_time},
        )
    return start, end


def _utc_today() -> date:
    return datetime.now(timezone.utc).date()


def _coerce_date(value: date | str) -> date:
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError("Date must be in YYYY-MM-DD format", details={"date": value}) from exc


def _require_instructor(db: Session, *, tenant_id: str, instructor_id: str) -> User:
    instructor = db.execute(
        select(User).where(
            User.id == instructor_id,
            User.tenant_id == tenant_id,
            User.role == UserRole.instructor,
            User.is_active.is_(True),
        )
    ).scalar_one_or_none()
    if instructor is None:
        raise NotFoundError("Instructor", instructor_id)
    return instructor


def _assignment_lock_key(tenant_id: str, instructor_id: str, booking_date: date) -> int:
    digest = hashlib.sha256(f"{tenant_id}|{instructor_id}|{booking_date.isoformat()}".encode("utf-8")).digest()
    return int.from_bytes(digest[:8], "big", signed=True)


def _acquire_store_lock(db: Session, *, tenant_id: str, instructor_id: str, booking_date: date) -> None:
    # Serializes assignments across processes; released when the transaction ends.
    if db.get_bind().dialect.name != "postgresql":
        return
    db.execute(
        text("SELECT pg_advisory_xact_lock(:key)"),
        {"key": _assignment_lock_key(tenant_id, instructor_id, booking_date)},
    )


def get_booking(db: Session, *, tenant_id: str, booking_id: str, for_update: bool = False) -> Booking:
    query = select(Booking).where(Booking.id == booking_id, Booking.tenant_id == tenant_id)
    if for_update:
        query = query.with_for_update().execution_options(populate_existing=True)
    booking = db.execute(query).scalar_one_or_none()
    if booking is None:
        raise NotFoundError("Booking", booking_id)
    return booking


def _compare_and_set(db: Session, booking: Booking, *, expected_status: BookingStatus, values: dict) -> None:
    """Write ``values`` only while the stored status is still ``expected_status``.

    Row locks are a no-op on SQLite; the status guard holds on every backend.
    """
    result = db.execute(
        update(Booking)
        .where(
            Booking.id == booking.id,
            Booking.tenant_id == booking.tenant_id,
            Booking.status == expected_status,
        )
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise StateConflictError(
            "Booking was modified by another request",
            details={"expected_status": expected_status.value},
        )


def _scope_to_actor(query, *, actor_id: str, actor_role: UserRole):
    if actor_role == UserRole.student:
        return query.where(Booking.student_id == actor_id)
    if actor_role == UserRole.instructor:
        return query.where(Booking.instructor_id == actor_id)
    return query


def get_visible_booking(
    db: Session,
    *,
    tenant_id: str,
    booking_id: str,
    actor_id: str,
    actor_role: UserRole,
) -> Booking:
    query = select(Booking).where(Booking.id == booking_id, Booking.tenant_id == tenant_id)
    query = _scope_to_actor(query, actor_id=actor_id, actor_role=UserRole(actor_role))
    booking = db.execute(query).scalar_one_or_none()
    if booking is None:
        raise NotFoundError("Booking", booking_id)
    return booking


def create_booking(
    db: Session,
    *,
    tenant_id: str,
    student_id: str,
    booking_date: date | str,
    start_time: str,
    end_time: str,
    instructor_id: str | None = None,
    correlation_id: str | None = None,
) -> Booking:
    booking_date = _coerce_date(booking_date)
    validate_time_window(start_time, end_time)
    if instructor_id:
        _require_instructor(db, tenant_id=tenant_id, instructor_id=instructor_id)

    booking = Booking(
        tenant_id=tenant_id,
        student_id=student_id,
        instructor_id=instructor_id or None,
        status=BookingStatus.REQUESTED,
        date=booking_date,
        start_time=start_time,
        end_time=end_time,
    )
    db.add(booking)
    db.flush()
    log_audit(
        db,
        tenant_id=tenant_id,
        user_id=student_id,
        action="booking.create",
        resource_type=RESOURCE_TYPE,
        resource_id=booking.id,
        after_state=booking.snapshot(),
        correlation_id=correlation_id,
    )
    db.commit()
    db.refresh(booking)
    return booking


def approve_and_assign(
    db: Session,
    *,
    tenant_id: str,
    booking_id: str,
    instructor_id: str,
    actor_id: str,
    locks: KeyedLockRegistry,
    correlation_id: str | None = None,
) -> Booking:
    booking = get_booking(db, tenant_id=tenant_id, booking_id=booking_id)
    if booking.status != BookingStatus.REQUESTED:
        raise StateConflictError("Booking is not in REQUESTED status", details={"status": booking.status.value})
    _require_instructor(db, tenant_id=tenant_id, instructor_id=instructor_id)

    booking_date = booking.date
    with locks.hold((tenant_id, instructor_id, booking_date)):
        try:
            _acquire_store_lock(db, tenant_id=tenant_id, instructor_id=instructor_id, booking_date=booking_date)
            booking = get_booking(db, tenant_id=tenant_id, booking_id=booking_id, for_update=True)
            if booking.status != BookingStatus.REQUESTED:
                raise StateConflictError(
                    "Booking is not in REQUESTED status",
                    details={"status": booking.status.value},
                )
            if has_conflict(
                db,
                tenant_id=tenant_id,
                instructor_id=instructor_id,
                booking_date=booking.date,
                start_time=booking.start_time,
                end_time=booking.end_time,
                exclude_booking_id=booking.id,
            ):
                raise SchedulingConflictError(
                    details={
                        "instructor_id": instructor_id,
                        "date": booking.date.isoformat(),
                        "start_time": booking.start_time,
                        "end_time": booking.end_time,
                    }
                )

            before = {"status": booking.status.value, "instructor_id": booking.instructor_id}
            _compare_and_set(
                db,
                booking,
                expected_status=BookingStatus.REQUESTED,
                values={"instructor_id": instructor_id, "status": BookingStatus.ASSIGNED},
            )
            log_audit(
                db,
                tenant_id=tenant_id,
                user_id=actor_id,
                action="booking.assign",
                resource_type=RESOURCE_TYPE,
                resource_id=booking.id,
                before_state=before,
                after_state={"status": BookingStatus.ASSIGNED.value, "instructor_id": instructor_id},
                correlation_id=correlation_id,
            )
            db.commit()
        except Exception:
            db.rollback()
            raise

    db.refresh(booking)
    logger.info("Booking %s assigned to instructor %s", booking.id, instructor_id)
    return booking


def set_booking_status(
    db: Session,
    *,
    tenant_id: str,
    booking_id: str,
    new_status: BookingStatus | str,
    actor_id: str,
    actor_role: UserRole | str,
    correlation_id: str | None = None,
) -> Booking:
    try:
        target = BookingStatus(new_status)
    except ValueError as exc:
        raise ValidationError(f"Unknown booking status: {new_status}") from exc
    if target not in SETTABLE_STATUSES:
        raise ValidationError(f"Status cannot be set to {target.value}")

    try:
        booking = get_booking(db, tenant_id=tenant_id, booking_id=booking_id, for_update=True)
        if not can_transition(actor_role, actor_id, booking, target):
            raise PermissionDeniedError()
        observed = booking.status
        if not is_valid_transition(observed, target):
            raise StateConflictError(
                f"Invalid state transition from {observed.value} to {target.value}",
                details={
                    "status": observed.value,
                    "requested": target.value,
                    "terminal": is_terminal(observed),
                },
            )

        # Direct status edits do not change time or instructor, so no conflict re-check here.
        _compare_and_set(db, booking, expected_status=observed, values={"status": target})
        log_audit(
            db,
            tenant_id=tenant_id,
            user_id=actor_id,
            action=AUDIT_ACTION_BY_STATUS[target],
            resource_type=RESOURCE_TYPE,
            resource_id=booking.id,
            before_state={"status": observed.value},
            after_state={"status": target.value},
            correlation_id=correlation_id,
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(booking)
    return booking


def list_bookings(
    db: Session,
    *,
    tenant_id: str,
    actor_id: str,
    actor_role: UserRole | str,
    week_start: date | None = None,
) -> list[Booking]:
    query = select(Booking).where(Booking.tenant_id == tenant_id)
    query = _scope_to_actor(query, actor_id=actor_id, actor_role=UserRole(actor_role))
    if week_start is not None:
        query = query.where(Booking.date >= week_start, Booking.date < week_start + timedelta(days=7))
    query = query.order_by(Booking.date.asc(), Booking.start_time.asc())
    return list(db.execute(query).scalars())


def calendar_week(
    db: Session,
    *,
    tenant_id: str,
    actor_id: str,
    actor_role: UserRole | str,
    week_start: date | None = None,
) -> dict:
    start = week_start or _utc_today()
    bookings = list_bookings(db, tenant_id=tenant_id, actor_id=actor_id, actor_role=actor_role, week_start=start)
    days = [{"date": start + timedelta(days=offset), "bookings": []} for offset in range(7)]
    for booking in bookings:
        days[(booking.date - start).days]["bookings"].append(booking)
    return {"week_start": start, "week_end": start + timedelta(days=6), "days": days}
