"""Lifecycle of session change requests.

A parent or tutor submits a ``cancel`` or ``reschedule`` request against a
future, non-cancelled occurrence. An admin then approves or rejects it; only
``pending`` requests can be processed, and at most one request per occurrence
may be pending at a time.
"""
import logging
from datetime import datetime, timedelta

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from ..core.timeutils import as_utc, from_client, local_date, utc_now
from ..db import models
from ..db.models.change_request import ChangeRequestStatus, ChangeRequestType, RequesterType
from ..db.models.session_occurrence import OccurrenceSource, OccurrenceStatus
from . import audit, notification_service, occurrence_service

logger = logging.getLogger(__name__)

PENDING_CONSTRAINT = "uq_change_request_pending_occurrence"


class ChangeRequestError(Exception):
    def __init__(self, message: str, status_code: int = 400) -> None:
        super().__init__(message)
        self.status_code = status_code


def _is_pending_conflict(exc: IntegrityError) -> bool:
    constraint = getattr(getattr(exc.orig, "diag", None), "constraint_name", "")
    if constraint == PENDING_CONSTRAINT:
        return True
    return "session_change_requests.session_occurrence_id" in str(exc.orig)


def _request_type_text(request_type: ChangeRequestType) -> str:
    return "cancellation" if request_type == ChangeRequestType.cancel else "rescheduling"


def _session_label(occurrence: models.SessionOccurrence) -> str:
    if occurrence.student:
        return occurrence.student.name
    if occurrence.group:
        return occurrence.group.name
    return "Unknown Student"


def get_pending_request(
    db: Session, occurrence_id: int
) -> models.SessionChangeRequest | None:
    return (
        db.query(models.SessionChangeRequest)
        .filter(models.SessionChangeRequest.session_occurrence_id == occurrence_id)
        .filter(models.SessionChangeRequest.status == ChangeRequestStatus.pending)
        .first()
    )


def _check_requester(
    db: Session, occurrence: models.SessionOccurrence, requester: models.User
) -> RequesterType:
    if requester.role == models.UserRole.parent:
        if not occurrence_service.parent_owns(db, requester, occurrence):
            raise ChangeRequestError(
                "You can only request changes for your own children's sessions",
                status_code=403,
            )
        return RequesterType.parent
    if requester.role == models.UserRole.tutor:
        if occurrence.tutor_id != requester.id:
            raise ChangeRequestError(
                "You can only request changes for your own sessions", status_code=403
            )
        if occurrence.student_id is None and occurrence.group_id is None:
            raise ChangeRequestError("Session must have a student or group assigned")
        return RequesterType.tutor
    raise ChangeRequestError("Only parents and tutors can request changes", status_code=403)


def submit_request(
    db: Session,
    occurrence: models.SessionOccurrence,
    requester: models.User,
    *,
    request_type: ChangeRequestType | str,
    reason: str | None = None,
    proposed_date_message: str | None = None,
    proposed_start: datetime | None = None,
    proposed_end: datetime | None = None,
) -> models.SessionChangeRequest:
    request_type = ChangeRequestType(request_type)
    requester_type = _check_requester(db, occurrence, requester)
    if occurrence.status == OccurrenceStatus.cancelled:
        raise ChangeRequestError("Session is already cancelled")
    if occurrence_service.has_started(occurrence):
        raise ChangeRequestError("Session start time is in the past")
    if get_pending_request(db, occurrence.id):
        raise ChangeRequestError(
            "A pending change request already exists for this session", status_code=409
        )

    if proposed_start is not None:
        proposed_start = from_client(proposed_start)
    if proposed_end is not None:
        proposed_end = from_client(proposed_end)
    if proposed_start and proposed_end and proposed_end <= proposed_start:
        raise ChangeRequestError("Proposed end must be after proposed start")

    request = models.SessionChangeRequest(
        session_occurrence_id=occurrence.id,
        parent_id=requester.id if requester_type == RequesterType.parent else None,
        tutor_id=requester.id if requester_type == RequesterType.tutor else None,
        student_id=occurrence.student_id,
        group_id=occurrence.group_id,
        requester_type=requester_type,
        request_type=request_type,
        original_date=occurrence.start_datetime,
        proposed_start_datetime=proposed_start,
        proposed_end_datetime=proposed_end,
        proposed_date_message=proposed_date_message or None,
        reason=reason or None,
        status=ChangeRequestStatus.pending,
    )
    db.add(request)
    try:
        db.flush()
    except IntegrityError as exc:
        db.rollback()
        if _is_pending_conflict(exc):
            raise ChangeRequestError(
                "A pending change request already exists for this session", status_code=409
            ) from exc
        raise

    label = _session_label(occurrence)
    type_text = _request_type_text(request_type)
    date_text = notification_service.format_session_date(occurrence.start_datetime)
    requester_label = "Parent" if requester_type == RequesterType.parent else requester.full_name
    message = f"{requester_label} has requested {type_text} for {label}'s session on {date_text}."
    if proposed_date_message:
        message += f" Suggested alternative: {proposed_date_message}"
    if reason:
        message += f" Reason: {reason}"

    created = notification_service.notify(
        db,
        notification_service.admin_ids(db),
        models.NotificationType.new_change_request,
        title=f"Session {type_text} request",
        message=message,
        related_id=request.id,
        related_type="session_change_request",
    )
    if requester_type == RequesterType.parent:
        created += notification_service.notify(
            db,
            [occurrence.tutor_id],
            models.NotificationType.new_change_request,
            title=f"Session {type_text} request",
            message=message,
            related_id=occurrence.id,
            related_type="session_occurrence",
        )
    db.commit()
    db.refresh(request)
    logger.info(
        "Change request submitted",
        extra={
            "request_id": request.id,
            "occurrence_id": occurrence.id,
            "request_type": request_type.value,
            "requester_type": requester_type.value,
        },
    )
    notification_service.deliver(created)
    return request


def _lock_pending(db: Session, request: models.SessionChangeRequest) -> models.SessionChangeRequest:
    locked = (
        db.execute(
            select(models.SessionChangeRequest)
            .where(models.SessionChangeRequest.id == request.id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        .scalar_one()
    )
    if locked.status != ChangeRequestStatus.pending:
        raise ChangeRequestError(
            f"Change request has already been {locked.status.value}", status_code=409
        )
    return locked


def _resolve_new_timing(
    request: models.SessionChangeRequest,
    occurrence: models.SessionOccurrence,
    new_date_time: datetime | None,
) -> tuple[datetime, datetime] | None:
    if request.proposed_start_datetime and request.proposed_end_datetime:
        return as_utc(request.proposed_start_datetime), as_utc(request.proposed_end_datetime)
    if new_date_time is not None:
        duration: timedelta = as_utc(occurrence.end_datetime) - as_utc(occurrence.start_datetime)
        starts_at = from_client(new_date_time)
        return starts_at, starts_at + duration
    return None


def _processed(
    request: models.SessionChangeRequest,
    admin: models.User,
    status: ChangeRequestStatus,
    admin_notes: str | None,
) -> None:
    request.status = status
    request.admin_notes = admin_notes or None
    request.processed_at = utc_now()
    request.processed_by = admin.id


def _requester_id(request: models.SessionChangeRequest) -> int | None:
    if request.requester_type == RequesterType.parent:
        return request.parent_id
    return request.tutor_id


def approve_request(
    db: Session,
    request: models.SessionChangeRequest,
    admin: models.User,
    *,
    admin_notes: str | None = None,
    new_date_time: datetime | None = None,
) -> models.SessionChangeRequest:
    request = _lock_pending(db, request)
    occurrence = request.occurrence
    if occurrence is None:
        raise ChangeRequestError("Session not found", status_code=404)
    previous_start = occurrence.start_datetime
    timing = None

    if request.request_type == ChangeRequestType.cancel:
        occurrence.status = OccurrenceStatus.cancelled
        if request.reason and not occurrence.cancellation_reason:
            occurrence.cancellation_reason = request.reason
    else:
        timing = _resolve_new_timing(request, occurrence, new_date_time)
        if timing:
            starts_at, ends_at = timing
            if occurrence.original_date is None:
                occurrence.original_date = occurrence.occurrence_date
            occurrence.occurrence_date = local_date(starts_at)
            occurrence.start_datetime = starts_at
            occurrence.end_datetime = ends_at
            occurrence.source = OccurrenceSource.rescheduled
        else:
            logger.warning(
                "Reschedule approved without a new time; session left unchanged",
                extra={"request_id": request.id},
            )

    _processed(request, admin, ChangeRequestStatus.approved, admin_notes)

    label = _session_label(occurrence)
    details = {
        "change_request_id": request.id,
        "request_type": request.request_type.value,
        "student_name": label,
        "session_date": as_utc(previous_start).isoformat(),
        "requester_type": request.requester_type.value,
        "admin_notes": admin_notes or None,
    }
    if timing:
        details["new_start_datetime"] = as_utc(occurrence.start_datetime).isoformat()
    audit.record(
        db,
        "session_cancelled"
        if request.request_type == ChangeRequestType.cancel
        else "session_rescheduled",
        "session_occurrence",
        occurrence.id,
        performed_by=admin.id,
        details=details,
    )

    type_text = _request_type_text(request.request_type)
    created = []
    requester_id = _requester_id(request)
    if requester_id:
        message = f"Your request for {label}'s session has been approved."
        if admin_notes:
            message += f" Admin note: {admin_notes}"
        created += notification_service.notify(
            db,
            [requester_id],
            models.NotificationType.session_change_approved,
            title=f"Session {type_text} approved",
            message=message,
            related_id=request.id,
            related_type="session_change_request",
        )
    if request.requester_type == RequesterType.parent and occurrence.tutor_id:
        verb = "cancelled" if request.request_type == ChangeRequestType.cancel else "rescheduled"
        created += notification_service.notify(
            db,
            [occurrence.tutor_id],
            models.NotificationType.schedule_changed,
            title=f"Session {verb}",
            message=(
                f"{label}'s session on "
                f"{notification_service.format_session_date(previous_start)} "
                f"has been {verb} following parent request."
            ),
            related_id=occurrence.id,
            related_type="session_occurrence",
        )

    db.commit()
    db.refresh(request)
    logger.info(
        "Change request approved",
        extra={"request_id": request.id, "occurrence_id": occurrence.id, "admin_id": admin.id},
    )
    notification_service.deliver(created)
    return request


def reject_request(
    db: Session,
    request: models.SessionChangeRequest,
    admin: models.User,
    *,
    admin_notes: str | None = None,
) -> models.SessionChangeRequest:
    request = _lock_pending(db, request)
    _processed(request, admin, ChangeRequestStatus.rejected, admin_notes)

    label = _session_label(request.occurrence) if request.occurrence else "Unknown Student"
    audit.record(
        db,
        "session_change_rejected",
        "session_change_request",
        request.id,
        performed_by=admin.id,
        details={
            "session_occurrence_id": request.session_occurrence_id,
            "request_type": request.request_type.value,
            "student_name": label,
            "session_date": as_utc(request.original_date).isoformat(),
            "requester_type": request.requester_type.value,
            "admin_notes": admin_notes or None,
        },
    )

    created = []
    requester_id = _requester_id(request)
    if requester_id:
        message = f"Your request for {label}'s session has been declined."
        if admin_notes:
            message += f" Reason: {admin_notes}"
        created = notification_service.notify(
            db,
            [requester_id],
            models.NotificationType.session_change_rejected,
            title=f"Session {_request_type_text(request.request_type)} request declined",
            message=message,
            related_id=request.id,
            related_type="session_change_request",
        )

    db.commit()
    db.refresh(request)
    logger.info(
        "Change request rejected",
        extra={"request_id": request.id, "admin_id": admin.id},
    )
    notification_service.deliver(created)
    return request


def list_requests(
    db: Session,
    *,
    status: str | None = None,
    parent_id: int | None = None,
    tutor_id: int | None = None,
) -> list[models.SessionChangeRequest]:
    query = db.query(models.SessionChangeRequest).options(
        selectinload(models.SessionChangeRequest.occurrence)
    )
    if status:
        try:
            query = query.filter(
                models.SessionChangeRequest.status == ChangeRequestStatus(status)
            )
        except ValueError as exc:
            raise ChangeRequestError(f"Unknown status '{status}'") from exc
    if parent_id:
        query = query.filter(models.SessionChangeRequest.parent_id == parent_id)
    if tutor_id:
        query = query.join(models.SessionChangeRequest.occurrence).filter(
            (models.SessionChangeRequest.tutor_id == tutor_id)
            | (models.SessionOccurrence.tutor_id == tutor_id)
        )
    return query.order_by(
        models.SessionChangeRequest.created_at.desc(), models.SessionChangeRequest.id.desc()
    ).all()


__all__ = [
    "ChangeRequestError",
    "approve_request",
    "get_pending_request",
    "list_requests",
    "reject_request",
    "submit_request",
]
