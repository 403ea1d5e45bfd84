from datetime import date, datetime
from pydantic import BaseModel, Field, field_validator, model_validator

from .occurrence import SessionOccurrence


def _check_start_time(value: str) -> str:
    try:
        hours, minutes = value.split(":")
        hours_int, minutes_int = int(hours), int(minutes)
    except ValueError as exc:
        raise ValueError("start_time must use HH:MM format") from exc
    if not (0 <= hours_int <= 23 and 0 <= minutes_int <= 59) or len(minutes) != 2:
        raise ValueError("start_time must use HH:MM format")
    return f"{hours_int:02d}:{minutes_int:02d}"


class RecurringSessionTemplateBase(BaseModel):
    tutor_id: int
    student_id: int | None = None
    group_id: int | None = None
    day_of_week: int = Field(ge=0, le=6)
    start_time: str
    duration_minutes: int = Field(default=60, gt=0)
    subject: str | None = None
    class_type: str = "individual"
    start_date: date
    end_date: date | None = None
    is_active: bool = True
    notes: str | None = None

    @field_validator("start_time")
    @classmethod
    def _normalize_start_time(cls, value: str) -> str:
        return _check_start_time(value)


class RecurringSessionTemplateCreate(RecurringSessionTemplateBase):
    generate_occurrences: bool = False

    @model_validator(mode="after")
    def _check_dates(self):
        if self.end_date and self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class RecurringSessionTemplateUpdate(BaseModel):
    student_id: int | None = None
    group_id: int | None = None
    day_of_week: int | None = Field(default=None, ge=0, le=6)
    start_time: str | None = None
    duration_minutes: int | None = Field(default=None, gt=0)
    subject: str | None = None
    start_date: date | None = None
    end_date: date | None = None
    is_active: bool | None = None
    notes: str | None = None

    @field_validator("start_time")
    @classmethod
    def _normalize_start_time(cls, value: str | None) -> str | None:
        if value is None:
            return value
        return _check_start_time(value)


class RecurringSessionTemplate(RecurringSessionTemplateBase):
    id: int
    created_by: int | None = None
    created_at: datetime | None = None

    class Config:
        from_attributes = True


class GenerateOccurrences(BaseModel):
    until: date | None = None


class GenerateOccurrencesResult(BaseModel):
    generated: int
    occurrences: list[SessionOccurrence]
