from datetime import datetime
from enum import Enum as PyEnum
from sqlalchemy import DateTime, Enum, ForeignKey, Index, Integer, Text, func, text
from sqlalchemy.orm import Mapped, mapped_column, relationship
from ..session import Base


class ChangeRequestStatus(str, PyEnum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"
    # legacy terminal state, no longer produced
    acknowledged = "acknowledged"


class ChangeRequestType(str, PyEnum):
    cancel = "cancel"
    reschedule = "reschedule"


class RequesterType(str, PyEnum):
    parent = "parent"
    tutor = "tutor"


class SessionChangeRequest(Base):
    __tablename__ = "session_change_requests"
    __table_args__ = (
        Index(
            "uq_change_request_pending_occurrence",
            "session_occurrence_id",
            unique=True,
            postgresql_where=text("status = 'pending'"),
            sqlite_where=text("status = 'pending'"),
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    session_occurrence_id: Mapped[int] = mapped_column(
        ForeignKey("session_occurrences.id", ondelete="CASCADE"), nullable=False
    )
    parent_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"))
    tutor_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"))
    student_id: Mapped[int | None] = mapped_column(ForeignKey("students.id"))
    group_id: Mapped[int | None] = mapped_column(ForeignKey("student_groups.id"))
    requester_type: Mapped[RequesterType] = mapped_column(
        Enum(RequesterType), default=RequesterType.parent
    )
    request_type: Mapped[ChangeRequestType] = mapped_column(Enum(ChangeRequestType), nullable=False)
    original_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    proposed_start_datetime: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    proposed_end_datetime: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    proposed_date_message: Mapped[str | None] = mapped_column(Text)
    reason: Mapped[str | None] = mapped_column(Text)
    status: Mapped[ChangeRequestStatus] = mapped_column(
        Enum(ChangeRequestStatus), default=ChangeRequestStatus.pending
    )
    admin_notes: Mapped[str | None] = mapped_column(Text)
    processed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    processed_by: Mapped[int | None] = mapped_column(ForeignKey("users.id"))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    occurrence = relationship("SessionOccurrence", back_populates="change_requests")
    parent = relationship("User", foreign_keys=[parent_id])
    tutor = relationship("User", foreign_keys=[tutor_id])
    student = relationship("Student")
    group = relationship("StudentGroup")
