from datetime import date, datetime
from enum import Enum as PyEnum
from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from ..session import Base


class ClassType(str, PyEnum):
    individual = "individual"
    group = "group"


class RecurringSessionTemplate(Base):
    __tablename__ = "recurring_session_templates"
    __table_args__ = (
        CheckConstraint("day_of_week BETWEEN 0 AND 6", name="ck_template_day_of_week"),
        CheckConstraint("duration_minutes > 0", name="ck_template_duration_positive"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    tutor_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    student_id: Mapped[int | None] = mapped_column(ForeignKey("students.id"))
    group_id: Mapped[int | None] = mapped_column(ForeignKey("student_groups.id"))
    # 0=Sunday .. 6=Saturday
    day_of_week: Mapped[int] = mapped_column(Integer, nullable=False)
    start_time: Mapped[str] = mapped_column(String(5), nullable=False)
    duration_minutes: Mapped[int] = mapped_column(Integer, default=60)
    subject: Mapped[str | None] = mapped_column(String(128))
    class_type: Mapped[ClassType] = mapped_column(Enum(ClassType), default=ClassType.individual)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date | None] = mapped_column(Date)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    notes: Mapped[str | None] = mapped_column(Text)
    created_by: Mapped[int | None] = mapped_column(ForeignKey("users.id"))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    tutor = relationship("User", foreign_keys=[tutor_id])
    student = relationship("Student")
    group = relationship("StudentGroup")
    occurrences = relationship("SessionOccurrence", back_populates="template")
