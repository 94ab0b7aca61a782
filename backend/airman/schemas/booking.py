from datetime import date, datetime

from pydantic import BaseModel, Field, field_validator, model_validator

from airman.models.booking import BookingStatus
from airman.services.intervals import parse_time_to_minutes

TIME_FIELD_PATTERN = r"^\d{2}:\d{2}$"


class BookingCreate(BaseModel):
    instructor_id: str | None = Field(default=None, max_length=36)
    date: date
    start_time: str = Field(pattern=TIME_FIELD_PATTERN)
    end_time: str = Field(pattern=TIME_FIELD_PATTERN)

    @field_validator("start_time", "end_time")
    @classmethod
    def validate_clock_time(cls, value: str) -> str:
        parse_time_to_minutes(value)
        return value

    @field_validator("instructor_id")
    @classmethod
    def normalize_instructor_id(cls, value: str | None) -> str | None:
        if value is None:
            return None
        trimmed = value.strip()
        return trimmed or None

    @model_validator(mode="after")
    def validate_window(self) -> "BookingCreate":
        if parse_time_to_minutes(self.start_time) >= parse_time_to_minutes(self.end_time):
            raise ValueError("start_time must be before end_time")
        return self


class BookingAssign(BaseModel):
    instructor_id: str = Field(min_length=1, max_length=36)


class BookingStatusUpdate(BaseModel):
    status: BookingStatus

    @field_validator("status")
    @classmethod
    def validate_settable(cls, value: BookingStatus) -> BookingStatus:
        if value == BookingStatus.REQUESTED:
            raise ValueError("Status cannot be set back to REQUESTED")
        return value


class BookingOut(BaseModel):
    id: str
    tenant_id: str
    student_id: str
    instructor_id: str | None = None
    status: BookingStatus
    date: date
    start_time: str
    end_time: str
    escalated_at: datetime | None = None
    created_at: datetime
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}


class CalendarDayOut(BaseModel):
    date: date
    bookings: list[BookingOut]


class CalendarWeekOut(BaseModel):
    week_start: date
    week_end: date
    days: list[CalendarDayOut]
