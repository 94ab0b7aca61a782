from datetime import datetime

from pydantic import BaseModel, Field, field_validator, model_validator

from airman.services.intervals import parse_time_to_minutes


class AvailabilityCreate(BaseModel):
    day_of_week: int = Field(ge=0, le=6)
    start_time: str = Field(pattern=r"^\d{2}:\d{2}$")
    end_time: str = Field(pattern=r"^\d{2}:\d{2}$")

    @field_validator("start_time", "end_time")
    @classmethod
    def validate_clock_time(cls, value: str) -> str:
        parse_time_to_minutes(value)
        return value

    @model_validator(mode="after")
    def validate_window(self) -> "AvailabilityCreate":
        if parse_time_to_minutes(self.start_time) >= parse_time_to_minutes(self.end_time):
            raise ValueError("start_time must be before end_time")
        return self


class AvailabilityOut(BaseModel):
    id: str
    tenant_id: str
    instructor_id: str
    day_of_week: int
    start_time: str
    end_time: str
    created_at: datetime

    model_config = {"from_attributes": True}
