from datetime import date, datetime
from pydantic import BaseModel, model_validator


class SessionOccurrenceBase(BaseModel):
    tutor_id: int
    student_id: int | None = None
    group_id: int | None = None
    start_datetime: datetime
    end_datetime: datetime
    notes: str | None = None


class SessionOccurrenceCreate(SessionOccurrenceBase):
    @model_validator(mode="after")
    def _check_order(self):
        if self.end_datetime <= self.start_datetime:
            raise ValueError("end_datetime must be after start_datetime")
        return self


class SessionOccurrenceUpdate(BaseModel):
    status: str | None = None
    notes: str | None = None
    cancellation_reason: str | None = None


class SessionOccurrence(SessionOccurrenceBase):
    id: int
    template_id: int | None = None
    occurrence_date: date
    status: str
    source: str
    original_date: date | None = None
    cancellation_reason: str | None = None
    parent_flagged: bool = False
    parent_flag_comment: str | None = None
    parent_flagged_at: datetime | None = None

    class Config:
        from_attributes = True


class PendingChangeRequestSummary(BaseModel):
    id: int
    request_type: str
    requester_type: str
    reason: str | None = None
    proposed_start_datetime: datetime | None = None
    proposed_end_datetime: datetime | None = None
    proposed_date_message: str | None = None
    created_at: datetime | None = None

    class Config:
        from_attributes = True


class SessionOccurrenceWithRequest(SessionOccurrence):
    pending_change_request: PendingChangeRequestSummary | None = None


class SessionFlag(BaseModel):
    comment: str | None = None
