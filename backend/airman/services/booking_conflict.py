"""Instructor double-booking detection.

The same rule runs in two places: as a SQL filter against the booking table
and as an in-memory check over already loaded bookings. Both use
``COMMITTED_STATUSES`` and the half-open overlap test, so a booking that
conflicts in one also conflicts in the other.
"""
from __future__ import annotations

from collections.abc import Iterable
from datetime import date

from sqlalchemy import and_, select
from sqlalchemy.orm import Session
from sqlalchemy.sql.elements import ColumnElement

from airman.models.booking import Booking, BookingStatus
from airman.services.intervals import time_ranges_overlap

# REQUESTED bookings are provisional and do not occupy the instructor's calendar.
COMMITTED_STATUSES = frozenset({BookingStatus.APPROVED, BookingStatus.ASSIGNED, BookingStatus.COMPLETED})


def conflict_clause(
    *,
    tenant_id: str,
    instructor_id: str,
    booking_date: date,
    start_time: str,
    end_time: str,
    exclude_booking_id: str | None = None,
) -> ColumnElement[bool]:
    conditions = [
        Booking.tenant_id == tenant_id,
        Booking.instructor_id == instructor_id,
        Booking.date == booking_date,
        Booking.status.in_(list(COMMITTED_STATUSES)),
        # HH:MM strings are zero-padded, so lexical order is time order.
        Booking.start_time < end_time,
        Booking.end_time > start_time,
    ]
    if exclude_booking_id:
        conditions.append(Booking.id != exclude_booking_id)
    return and_(*conditions)


def has_conflict(
    db: Session,
    *,
    tenant_id: str,
    instructor_id: str,
    booking_date: date,
    start_time: str,
    end_time: str,
    exclude_booking_id: str | None = None,
) -> bool:
    clause = conflict_clause(
        tenant_id=tenant_id,
        instructor_id=instructor_id,
        booking_date=booking_date,
        start_time=start_time,
        end_time=end_time,
        exclude_booking_id=exclude_booking_id,
    )
    return db.execute(select(Booking.id).where(clause).limit(1)).first() is not None


def is_conflicting(
    booking: Booking,
    *,
    tenant_id: str,
    instructor_id: str,
    booking_date: date,
    start_time: str,
    end_time: str,
    exclude_booking_id: str | None = None,
) -> bool:
    if exclude_booking_id and booking.id == exclude_booking_id:
        return False
    if booking.tenant_id != tenant_id or booking.instructor_id != instructor_id:
        return False
    if booking.date != booking_date or booking.status not in COMMITTED_STATUSES:
        return False
    return time_ranges_overlap(booking.start_time, booking.end_time, start_time, end_time)


def has_conflict_in(
    bookings: Iterable[Booking],
    *,
    tenant_id: str,
    instructor_id: str,
    booking_date: date,
    start_time: str,
    end_time: str,
    exclude_booking_id: str | None = None,
) -> bool:
    return any(
        is_conflicting(
            booking,
            tenant_id=tenant_id,
            instructor_id=instructor_id,
            booking_date=booking_date,
            start_time=start_time,
            end_time=end_time,
            exclude_booking_id=exclude_booking_id,
        )
        for booking in bookings
    )
