from datetime import date, datetime
from enum import Enum as PyEnum
from sqlalchemy import Boolean, Date, DateTime, Enum, ForeignKey, Integer, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship
from ..session import Base


class OccurrenceStatus(str, PyEnum):
    scheduled = "scheduled"
    confirmed = "confirmed"
    cancelled = "cancelled"
    completed = "completed"
    no_show = "no_show"


class OccurrenceSource(str, PyEnum):
    template = "template"
    manual = "manual"
    rescheduled = "rescheduled"


class SessionOccurrence(Base):
    __tablename__ = "session_occurrences"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    template_id: Mapped[int | None] = mapped_column(
        ForeignKey("recurring_session_templates.id", ondelete="CASCADE"), index=True
    )
    tutor_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    student_id: Mapped[int | None] = mapped_column(ForeignKey("students.id"))
    group_id: Mapped[int | None] = mapped_column(ForeignKey("student_groups.id"))
    occurrence_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    start_datetime: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_datetime: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    status: Mapped[OccurrenceStatus] = mapped_column(
        Enum(OccurrenceStatus), default=OccurrenceStatus.scheduled
    )
    source: Mapped[OccurrenceSource] = mapped_column(
        Enum(OccurrenceSource), default=OccurrenceSource.template
    )
    original_date: Mapped[date | None] = mapped_column(Date)
    cancellation_reason: Mapped[str | None] = mapped_column(Text)
    notes: Mapped[str | None] = mapped_column(Text)
    parent_flagged: Mapped[bool] = mapped_column(Boolean, default=False)
    parent_flag_comment: Mapped[str | None] = mapped_column(Text)
    parent_flagged_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    template = relationship("RecurringSessionTemplate", back_populates="occurrences")
    tutor = relationship("User")
    student = relationship("Student")
    group = relationship("StudentGroup")
    change_requests = relationship(
        "SessionChangeRequest",
        back_populates="occurrence",
        cascade="all, delete-orphan",
    )
