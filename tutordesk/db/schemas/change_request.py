from datetime import datetime
from typing import Literal
from pydantic import BaseModel, model_validator


class SessionChangeRequestCreate(BaseModel):
    session_occurrence_id: int
    request_type: Literal["cancel", "reschedule"]
    proposed_date_message: str | None = None
    reason: str | None = None


class TutorRescheduleRequestCreate(BaseModel):
    session_occurrence_id: int
    proposed_start_datetime: datetime
    proposed_end_datetime: datetime
    reason: str | None = None

    @model_validator(mode="after")
    def _check_order(self):
        if self.proposed_end_datetime <= self.proposed_start_datetime:
            raise ValueError("proposed_end_datetime must be after proposed_start_datetime")
        return self


class ChangeRequestApprove(BaseModel):
    admin_notes: str | None = None
    new_date_time: datetime | None = None


class ChangeRequestReject(BaseModel):
    admin_notes: str | None = None


class SessionChangeRequest(BaseModel):
    id: int
    session_occurrence_id: int
    parent_id: int | None = None
    tutor_id: int | None = None
    student_id: int | None = None
    group_id: int | None = None
    requester_type: str
    request_type: str
    original_date: datetime
    proposed_start_datetime: datetime | None = None
    proposed_end_datetime: datetime | None = None
    proposed_date_message: str | None = None
    reason: str | None = None
    status: str
    admin_notes: str | None = None
    processed_at: datetime | None = None
    processed_by: int | None = None
    created_at: datetime | None = None

    class Config:
        from_attributes = True
