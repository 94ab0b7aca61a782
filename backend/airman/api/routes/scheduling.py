from datetime import date

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from airman.api.deps import get_assignment_locks, get_correlation_id, get_current_user, get_db, require_roles
from airman.core.exceptions import ValidationError
from airman.models.user import User, UserRole
from airman.schemas.availability import AvailabilityCreate, AvailabilityOut
from airman.schemas.booking import (
    BookingAssign,
    BookingCreate,
    BookingOut,
    BookingStatusUpdate,
    CalendarWeekOut,
)
from airman.schemas.escalation import EscalationSweepOut
from airman.services import availability as availability_service
from airman.services import bookings as booking_service
from airman.services.escalation import run_escalation_sweep
from airman.services.locks import KeyedLockRegistry

router = APIRouter()


@router.get("/availability", response_model=list[AvailabilityOut])
def list_availability(
    instructor_id: str | None = Query(default=None, max_length=36),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[AvailabilityOut]:
    if current_user.role == UserRole.instructor:
        target_id = current_user.id
    elif instructor_id:
        target_id = instructor_id
    else:
        raise ValidationError("instructor_id is required")
    return availability_service.list_availability(db, tenant_id=current_user.tenant_id, instructor_id=target_id)


@router.post("/availability", response_model=AvailabilityOut, status_code=status.HTTP_201_CREATED)
def create_availability(
    payload: AvailabilityCreate,
    current_user: User = Depends(require_roles(UserRole.instructor)),
    db: Session = Depends(get_db),
    correlation_id: str | None = Depends(get_correlation_id),
) -> AvailabilityOut:
    return availability_service.create_availability(
        db,
        tenant_id=current_user.tenant_id,
        instructor_id=current_user.id,
        day_of_week=payload.day_of_week,
        start_time=payload.start_time,
        end_time=payload.end_time,
        correlation_id=correlation_id,
    )


@router.delete("/availability/{slot_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_availability(
    slot_id: str,
    current_user: User = Depends(require_roles(UserRole.instructor)),
    db: Session = Depends(get_db),
    correlation_id: str | None = Depends(get_correlation_id),
) -> Response:
    availability_service.delete_availability(
        db,
        tenant_id=current_user.tenant_id,
        instructor_id=current_user.id,
        slot_id=slot_id,
        correlation_id=correlation_id,
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/bookings", response_model=BookingOut, status_code=status.HTTP_201_CREATED)
def create_booking(
    payload: BookingCreate,
    current_user: User = Depends(require_roles(UserRole.student)),
    db: Session = Depends(get_db),
    correlation_id: str | None = Depends(get_correlation_id),
) -> BookingOut:
    return booking_service.create_booking(
        db,
        tenant_id=current_user.tenant_id,
        student_id=current_user.id,
        instructor_id=payload.instructor_id,
        booking_date=payload.date,
        start_time=payload.start_time,
        end_time=payload.end_time,
        correlation_id=correlation_id,
    )


@router.get("/bookings", response_model=list[BookingOut])
def list_bookings(
    week_start: date | None = Query(default=None),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[BookingOut]:
    return booking_service.list_bookings(
        db,
        tenant_id=current_user.tenant_id,
        actor_id=current_user.id,
        actor_role=current_user.role,
        week_start=week_start,
    )


@router.get("/bookings/{booking_id}", response_model=BookingOut)
def get_booking(
    booking_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> BookingOut:
    return booking_service.get_visible_booking(
        db,
        tenant_id=current_user.tenant_id,
        booking_id=booking_id,
        actor_id=current_user.id,
        actor_role=current_user.role,
    )


@router.patch("/bookings/{booking_id}/approve", response_model=BookingOut)
def approve_booking(
    booking_id: str,
    payload: BookingAssign,
    current_user: User = Depends(require_roles(UserRole.admin)),
    db: Session = Depends(get_db),
    locks: KeyedLockRegistry = Depends(get_assignment_locks),
    correlation_id: str | None = Depends(get_correlation_id),
) -> BookingOut:
    return booking_service.approve_and_assign(
        db,
        tenant_id=current_user.tenant_id,
        booking_id=booking_id,
        instructor_id=payload.instructor_id,
        actor_id=current_user.id,
        locks=locks,
        correlation_id=correlation_id,
    )


@router.patch("/bookings/{booking_id}/status", response_model=BookingOut)
def update_booking_status(
    booking_id: str,
    payload: BookingStatusUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    correlation_id: str | None = Depends(get_correlation_id),
) -> BookingOut:
    return booking_service.set_booking_status(
        db,
        tenant_id=current_user.tenant_id,
        booking_id=booking_id,
        new_status=payload.status,
        actor_id=current_user.id,
        actor_role=current_user.role,
        correlation_id=correlation_id,
    )


@router.get("/calendar", response_model=CalendarWeekOut)
def weekly_calendar(
    week_start: date | None = Query(default=None),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> CalendarWeekOut:
    return booking_service.calendar_week(
        db,
        tenant_id=current_user.tenant_id,
        actor_id=current_user.id,
        actor_role=current_user.role,
        week_start=week_start,
    )


@router.post("/escalations/run", response_model=EscalationSweepOut)
def run_escalations(
    current_user: User = Depends(require_roles(UserRole.admin)),
    db: Session = Depends(get_db),
) -> EscalationSweepOut:
    result = run_escalation_sweep(db, tenant_id=current_user.tenant_id)
    return EscalationSweepOut(escalated_count=result.escalated_count, failed_count=result.failed_count)
