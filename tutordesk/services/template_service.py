import logging
from datetime import date, datetime, time, timedelta, timezone
from typing import Any

from sqlalchemy.orm import Session

from ..config import get_settings
from ..core.timeutils import js_weekday, local_tz, utc_now
from ..db import models
from . import audit

logger = logging.getLogger(__name__)

# Changing any of these invalidates the occurrences already generated
_TIMING_FIELDS = {
    "day_of_week",
    "start_time",
    "duration_minutes",
    "start_date",
    "end_date",
    "student_id",
    "group_id",
    "is_active",
}

_REQUIRED_FIELDS = {"day_of_week", "start_time", "start_date", "duration_minutes", "is_active"}


class TemplateError(Exception):
    pass


def _validate_links(db: Session, values: dict[str, Any]) -> None:
    tutor_id = values.get("tutor_id")
    if tutor_id is not None:
        tutor = db.get(models.User, tutor_id)
        if not tutor or tutor.role != models.UserRole.tutor:
            raise TemplateError("Tutor not found")
    student_id = values.get("student_id")
    if student_id is not None and not db.get(models.Student, student_id):
        raise TemplateError("Student not found")
    group_id = values.get("group_id")
    if group_id is not None and not db.get(models.StudentGroup, group_id):
        raise TemplateError("Group not found")


def default_horizon(today: date | None = None) -> date:
    settings = get_settings()
    today = today or utc_now().astimezone(local_tz()).date()
    return today + timedelta(days=settings.generation_horizon_days)


def create_template(
    db: Session,
    values: dict[str, Any],
    *,
    actor_id: int | None,
    generate: bool = False,
) -> models.RecurringSessionTemplate:
    _validate_links(db, values)
    template = models.RecurringSessionTemplate(**values, created_by=actor_id)
    if template.end_date and template.end_date < template.start_date:
        raise TemplateError("end_date must not be before start_date")
    db.add(template)
    db.flush()
    audit.record(
        db,
        "session_created",
        "recurring_session_template",
        template.id,
        performed_by=actor_id,
        details={"day_of_week": template.day_of_week, "start_time": template.start_time},
    )
    db.commit()
    db.refresh(template)
    logger.info("Created recurring template", extra={"template_id": template.id})
    if generate:
        generate_occurrences(db, template, default_horizon())
    return template


def update_template(
    db: Session,
    template: models.RecurringSessionTemplate,
    changes: dict[str, Any],
    *,
    actor_id: int | None,
) -> models.RecurringSessionTemplate:
    cleared = sorted(key for key in _REQUIRED_FIELDS if key in changes and changes[key] is None)
    if cleared:
        raise TemplateError(f"{', '.join(cleared)} cannot be null")
    _validate_links(db, changes)
    timing_changed = False
    for key, value in changes.items():
        if getattr(template, key) != value:
            timing_changed = timing_changed or key in _TIMING_FIELDS
            setattr(template, key, value)
    if template.end_date and template.end_date < template.start_date:
        db.rollback()
        raise TemplateError("end_date must not be before start_date")
    audit.record(
        db,
        "session_updated",
        "recurring_session_template",
        template.id,
        performed_by=actor_id,
        details={key: str(value) for key, value in changes.items()},
    )
    db.commit()
    db.refresh(template)
    if timing_changed:
        removed = delete_future_occurrences(db, template)
        logger.info(
            "Template timing changed, regenerating occurrences",
            extra={"template_id": template.id, "removed": removed},
        )
        if template.is_active:
            generate_occurrences(db, template, default_horizon())
    return template


def delete_template(
    db: Session,
    template: models.RecurringSessionTemplate,
    *,
    actor_id: int | None,
) -> None:
    occurrences = (
        db.query(models.SessionOccurrence)
        .filter(models.SessionOccurrence.template_id == template.id)
        .all()
    )
    for occurrence in occurrences:
        db.delete(occurrence)
    audit.record(
        db,
        "session_deleted",
        "recurring_session_template",
        template.id,
        performed_by=actor_id,
        details={"occurrences_deleted": len(occurrences)},
    )
    db.delete(template)
    db.commit()
    logger.info(
        "Deleted recurring template",
        extra={"template_id": template.id, "occurrences_deleted": len(occurrences)},
    )


def generate_occurrences(
    db: Session,
    template: models.RecurringSessionTemplate,
    until: date,
    *,
    now: datetime | None = None,
) -> list[models.SessionOccurrence]:
    """Expand a template into dated occurrences up to ``until`` (inclusive).

    Dates already covered by an occurrence of the template, either on its
    current date or on the date it was rescheduled from, are skipped, so the
    call can be repeated safely. Slots whose start time has passed are never
    created.
    """
    if not template.is_active:
        return []

    tz = local_tz()
    now = now or utc_now()
    today = now.astimezone(tz).date()
    first_day = max(template.start_date, today)
    last_day = until
    if template.end_date and template.end_date < last_day:
        last_day = template.end_date
    if first_day > last_day:
        return []

    covered: set[date] = set()
    for occurrence_date, original_date in (
        db.query(
            models.SessionOccurrence.occurrence_date,
            models.SessionOccurrence.original_date,
        )
        .filter(models.SessionOccurrence.template_id == template.id)
        .all()
    ):
        covered.add(occurrence_date)
        if original_date:
            covered.add(original_date)

    hours, minutes = (int(part) for part in template.start_time.split(":"))
    duration = timedelta(minutes=template.duration_minutes or 60)
    current = first_day + timedelta(days=(template.day_of_week - js_weekday(first_day)) % 7)

    created = []
    while current <= last_day:
        if current not in covered:
            starts_at = datetime.combine(current, time(hours, minutes), tzinfo=tz).astimezone(
                timezone.utc
            )
            if starts_at > now:
                occurrence = models.SessionOccurrence(
                    template_id=template.id,
                    tutor_id=template.tutor_id,
                    student_id=template.student_id,
                    group_id=template.group_id,
                    occurrence_date=current,
                    start_datetime=starts_at,
                    end_datetime=starts_at + duration,
                    status=models.OccurrenceStatus.scheduled,
                    source=models.OccurrenceSource.template,
                )
                db.add(occurrence)
                created.append(occurrence)
        current += timedelta(days=7)

    db.commit()
    logger.info(
        "Generated session occurrences",
        extra={"template_id": template.id, "generated": len(created), "until": until.isoformat()},
    )
    return created


def delete_future_occurrences(
    db: Session,
    template: models.RecurringSessionTemplate,
    *,
    today: date | None = None,
) -> int:
    today = today or utc_now().astimezone(local_tz()).date()
    occurrences = (
        db.query(models.SessionOccurrence)
        .filter(models.SessionOccurrence.template_id == template.id)
        .filter(models.SessionOccurrence.occurrence_date >= today)
        .filter(models.SessionOccurrence.source == models.OccurrenceSource.template)
        .filter(models.SessionOccurrence.status == models.OccurrenceStatus.scheduled)
        .all()
    )
    for occurrence in occurrences:
        db.delete(occurrence)
    db.commit()
    return len(occurrences)


__all__ = [
    "TemplateError",
    "create_template",
    "default_horizon",
    "delete_future_occurrences",
    "delete_template",
    "generate_occurrences",
    "update_template",
]
