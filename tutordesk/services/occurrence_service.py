import logging
from datetime import datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from ..core.timeutils import as_utc, from_client, local_date, utc_now
from ..db import models
from . import audit, notification_service

logger = logging.getLogger(__name__)


class OccurrenceError(Exception):
    pass


def _occurrence_label(occurrence: models.SessionOccurrence) -> str:
    if occurrence.student:
        return occurrence.student.name
    if occurrence.group:
        return occurrence.group.name
    return "Unknown Student"


def parent_student_ids(db: Session, parent: models.User) -> list[int]:
    rows = db.query(models.Student.id).filter(models.Student.parent_user_id == parent.id).all()
    return [row[0] for row in rows]


def parent_group_ids(db: Session, student_ids: list[int]) -> list[int]:
    if not student_ids:
        return []
    rows = db.execute(
        select(models.student_group_members.c.group_id)
        .where(models.student_group_members.c.student_id.in_(student_ids))
        .distinct()
    ).all()
    return [row[0] for row in rows]


def parent_owns(db: Session, parent: models.User, occurrence: models.SessionOccurrence) -> bool:
    student_ids = parent_student_ids(db, parent)
    if occurrence.student_id is not None and occurrence.student_id in student_ids:
        return True
    if occurrence.group_id is not None:
        return occurrence.group_id in parent_group_ids(db, student_ids)
    return False


def attach_pending_requests(
    db: Session, occurrences: list[models.SessionOccurrence]
) -> list[models.SessionOccurrence]:
    ids = [occurrence.id for occurrence in occurrences]
    pending = {}
    if ids:
        requests = (
            db.query(models.SessionChangeRequest)
            .filter(models.SessionChangeRequest.session_occurrence_id.in_(ids))
            .filter(models.SessionChangeRequest.status == models.ChangeRequestStatus.pending)
            .all()
        )
        pending = {request.session_occurrence_id: request for request in requests}
    for occurrence in occurrences:
        setattr(occurrence, "pending_change_request", pending.get(occurrence.id))
    return occurrences


def list_occurrences(
    db: Session,
    *,
    tutor_id: int | None = None,
    from_dt: datetime | None = None,
    to_dt: datetime | None = None,
) -> list[models.SessionOccurrence]:
    query = db.query(models.SessionOccurrence)
    if tutor_id:
        query = query.filter(models.SessionOccurrence.tutor_id == tutor_id)
    if from_dt:
        query = query.filter(models.SessionOccurrence.start_datetime >= from_client(from_dt))
    if to_dt:
        query = query.filter(models.SessionOccurrence.start_datetime <= from_client(to_dt))
    occurrences = query.order_by(models.SessionOccurrence.start_datetime).all()
    return attach_pending_requests(db, occurrences)


def list_parent_occurrences(db: Session, parent: models.User) -> list[models.SessionOccurrence]:
    student_ids = parent_student_ids(db, parent)
    if not student_ids:
        return []
    group_ids = parent_group_ids(db, student_ids)
    condition = models.SessionOccurrence.student_id.in_(student_ids)
    if group_ids:
        condition = condition | models.SessionOccurrence.group_id.in_(group_ids)
    occurrences = (
        db.query(models.SessionOccurrence)
        .filter(condition)
        .order_by(models.SessionOccurrence.start_datetime)
        .all()
    )
    return attach_pending_requests(db, occurrences)


def create_manual_occurrence(
    db: Session, values: dict[str, Any], *, actor_id: int | None
) -> models.SessionOccurrence:
    tutor = db.get(models.User, values["tutor_id"])
    if not tutor or tutor.role != models.UserRole.tutor:
        raise OccurrenceError("Tutor not found")
    starts_at = from_client(values["start_datetime"])
    ends_at = from_client(values["end_datetime"])
    if ends_at <= starts_at:
        raise OccurrenceError("end_datetime must be after start_datetime")
    occurrence = models.SessionOccurrence(
        tutor_id=tutor.id,
        student_id=values.get("student_id"),
        group_id=values.get("group_id"),
        occurrence_date=local_date(starts_at),
        start_datetime=starts_at,
        end_datetime=ends_at,
        status=models.OccurrenceStatus.scheduled,
        source=models.OccurrenceSource.manual,
        notes=values.get("notes"),
    )
    db.add(occurrence)
    db.flush()
    audit.record(
        db,
        "session_created",
        "session_occurrence",
        occurrence.id,
        performed_by=actor_id,
        details={"start_datetime": starts_at.isoformat()},
    )
    db.commit()
    db.refresh(occurrence)
    return occurrence


def update_occurrence(
    db: Session,
    occurrence: models.SessionOccurrence,
    changes: dict[str, Any],
    *,
    actor_id: int | None,
) -> models.SessionOccurrence:
    was_cancelled = occurrence.status == models.OccurrenceStatus.cancelled
    if "status" in changes and changes["status"] is not None:
        try:
            occurrence.status = models.OccurrenceStatus(changes["status"])
        except ValueError as exc:
            raise OccurrenceError(f"Unknown status '{changes['status']}'") from exc
    if "notes" in changes:
        occurrence.notes = changes["notes"]
    if "cancellation_reason" in changes:
        occurrence.cancellation_reason = changes["cancellation_reason"]
    audit.record(
        db,
        "session_cancelled"
        if occurrence.status == models.OccurrenceStatus.cancelled and not was_cancelled
        else "session_updated",
        "session_occurrence",
        occurrence.id,
        performed_by=actor_id,
        details={key: value for key, value in changes.items() if value is not None},
    )
    db.commit()
    db.refresh(occurrence)
    return occurrence


def flag_occurrence(
    db: Session,
    occurrence: models.SessionOccurrence,
    parent: models.User,
    comment: str | None,
) -> models.SessionOccurrence:
    occurrence.parent_flagged = True
    occurrence.parent_flag_comment = comment or None
    occurrence.parent_flagged_at = utc_now()
    label = _occurrence_label(occurrence)
    created = notification_service.notify(
        db,
        notification_service.admin_ids(db),
        models.NotificationType.session_flagged,
        title="Session Flagged by Parent",
        message=(
            f"A session for {label} on "
            f"{notification_service.format_session_date(occurrence.start_datetime)} "
            f"has been flagged: \"{comment or 'No comment provided'}\""
        ),
        related_id=occurrence.id,
        related_type="session_occurrence",
    )
    db.commit()
    db.refresh(occurrence)
    logger.info(
        "Session flagged by parent",
        extra={"occurrence_id": occurrence.id, "parent_id": parent.id},
    )
    notification_service.deliver(created)
    return occurrence


def acknowledge_flag(db: Session, occurrence: models.SessionOccurrence) -> models.SessionOccurrence:
    if not occurrence.parent_flagged:
        raise OccurrenceError("Session is not flagged")
    occurrence.parent_flagged = False
    occurrence.parent_flag_comment = None
    occurrence.parent_flagged_at = None
    db.commit()
    db.refresh(occurrence)
    return occurrence


def list_flagged(db: Session) -> list[models.SessionOccurrence]:
    return (
        db.query(models.SessionOccurrence)
        .options(selectinload(models.SessionOccurrence.student))
        .filter(models.SessionOccurrence.parent_flagged.is_(True))
        .order_by(models.SessionOccurrence.parent_flagged_at.desc())
        .all()
    )


def has_started(occurrence: models.SessionOccurrence, now: datetime | None = None) -> bool:
    return as_utc(occurrence.start_datetime) <= (now or utc_now())


__all__ = [
    "OccurrenceError",
    "acknowledge_flag",
    "attach_pending_requests",
    "create_manual_occurrence",
    "flag_occurrence",
    "has_started",
    "list_flagged",
    "list_occurrences",
    "list_parent_occurrences",
    "parent_owns",
    "update_occurrence",
]
