from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from airman.core.exceptions import NotFoundError, ValidationError
from airman.models.availability import InstructorAvailability
from airman.services.audit import log_audit
from airman.services.bookings import validate_time_window

RESOURCE_TYPE = "instructor_availability"


def list_availability(db: Session, *, tenant_id: str, instructor_id: str) -> list[InstructorAvailability]:
    query = (
        select(InstructorAvailability)
        .where(
            InstructorAvailability.tenant_id == tenant_id,
            InstructorAvailability.instructor_id == instructor_id,
        )
        .order_by(InstructorAvailability.day_of_week.asc(), InstructorAvailability.start_time.asc())
    )
    return list(db.execute(query).scalars())


def create_availability(
    db: Session,
    *,
    tenant_id: str,
    instructor_id: str,
    day_of_week: int,
    start_time: str,
    end_time: str,
    correlation_id: str | None = None,
) -> InstructorAvailability:
    # Slots may overlap each other and are not checked against bookings.
    if isinstance(day_of_week, bool) or not isinstance(day_of_week, int) or not 0 <= day_of_week <= 6:
        raise ValidationError("day_of_week must be an integer between 0 and 6", details={"day_of_week": day_of_week})
    validate_time_window(start_time, end_time)

    slot = InstructorAvailability(
        tenant_id=tenant_id,
        instructor_id=instructor_id,
        day_of_week=day_of_week,
        start_time=start_time,
        end_time=end_time,
    )
    db.add(slot)
    db.flush()
    log_audit(
        db,
        tenant_id=tenant_id,
        user_id=instructor_id,
        action="availability.create",
        resource_type=RESOURCE_TYPE,
        resource_id=slot.id,
        after_state={"day_of_week": day_of_week, "start_time": start_time, "end_time": end_time},
        correlation_id=correlation_id,
    )
    db.commit()
    db.refresh(slot)
    return slot


def delete_availability(
    db: Session,
    *,
    tenant_id: str,
    instructor_id: str,
    slot_id: str,
    correlation_id: str | None = None,
) -> InstructorAvailability:
    slot = db.execute(
        select(InstructorAvailability).where(
            InstructorAvailability.id == slot_id,
            InstructorAvailability.tenant_id == tenant_id,
            InstructorAvailability.instructor_id == instructor_id,
        )
    ).scalar_one_or_none()
    if slot is None:
        raise NotFoundError("Availability slot", slot_id)

    log_audit(
        db,
        tenant_id=tenant_id,
        user_id=instructor_id,
        action="availability.delete",
        resource_type=RESOURCE_TYPE,
        resource_id=slot.id,
        before_state={"day_of_week": slot.day_of_week, "start_time": slot.start_time, "end_time": slot.end_time},
        correlation_id=correlation_id,
    )
    db.delete(slot)
    db.commit()
    return slot
