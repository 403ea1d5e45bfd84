from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from ...api import deps
from ...db.session import get_db
from ...db import models, schemas
from ...services import change_request_service

router = APIRouter(tags=["session-change-requests"])


def _get_occurrence(db: Session, occurrence_id: int) -> models.SessionOccurrence:
    occurrence = db.get(models.SessionOccurrence, occurrence_id)
    if not occurrence:
        raise HTTPException(status_code=404, detail="Session not found")
    return occurrence


def _get_request(db: Session, request_id: int) -> models.SessionChangeRequest:
    request = db.get(models.SessionChangeRequest, request_id)
    if not request:
        raise HTTPException(status_code=404, detail="Change request not found")
    return request


def _http_error(exc: change_request_service.ChangeRequestError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=str(exc))


@router.post(
    "/session-change-requests",
    response_model=schemas.SessionChangeRequest,
    status_code=status.HTTP_201_CREATED,
)
def submit_change_request(
    payload: schemas.SessionChangeRequestCreate,
    db: Session = Depends(get_db),
    user: models.User = Depends(deps.require_roles("parent", "tutor")),
):
    occurrence = _get_occurrence(db, payload.session_occurrence_id)
    try:
        return change_request_service.submit_request(
            db,
            occurrence,
            user,
            request_type=payload.request_type,
            reason=payload.reason,
            proposed_date_message=payload.proposed_date_message,
        )
    except change_request_service.ChangeRequestError as exc:
        raise _http_error(exc) from exc


@router.post(
    "/tutor/session-reschedule-request",
    response_model=schemas.SessionChangeRequest,
    status_code=status.HTTP_201_CREATED,
)
def submit_tutor_reschedule(
    payload: schemas.TutorRescheduleRequestCreate,
    db: Session = Depends(get_db),
    tutor: models.User = Depends(deps.require_roles("tutor")),
):
    occurrence = _get_occurrence(db, payload.session_occurrence_id)
    start = payload.proposed_start_datetime
    end = payload.proposed_end_datetime
    try:
        return change_request_service.submit_request(
            db,
            occurrence,
            tutor,
            request_type=models.ChangeRequestType.reschedule,
            reason=payload.reason,
            proposed_date_message=(
                f"Proposed new time: {start:%d/%m/%Y %H:%M} - {end:%H:%M}"
            ),
            proposed_start=start,
            proposed_end=end,
        )
    except change_request_service.ChangeRequestError as exc:
        raise _http_error(exc) from exc


@router.get("/session-change-requests", response_model=list[schemas.SessionChangeRequest])
def list_change_requests(
    status: str | None = None,
    db: Session = Depends(get_db),
    _: models.User = Depends(deps.require_roles("admin")),
):
    try:
        return change_request_service.list_requests(db, status=status)
    except change_request_service.ChangeRequestError as exc:
        raise _http_error(exc) from exc


@router.get("/parent/session-change-requests", response_model=list[schemas.SessionChangeRequest])
def list_parent_change_requests(
    db: Session = Depends(get_db),
    parent: models.User = Depends(deps.require_roles("parent")),
):
    return change_request_service.list_requests(db, parent_id=parent.id)


@router.get("/tutor/session-change-requests", response_model=list[schemas.SessionChangeRequest])
def list_tutor_change_requests(
    db: Session = Depends(get_db),
    tutor: models.User = Depends(deps.require_roles("tutor")),
):
    return change_request_service.list_requests(db, tutor_id=tutor.id)


@router.post(
    "/session-change-requests/{request_id}/approve",
    response_model=schemas.SessionChangeRequest,
)
def approve_change_request(
    request_id: int,
    payload: schemas.ChangeRequestApprove,
    db: Session = Depends(get_db),
    admin: models.User = Depends(deps.require_roles("admin")),
):
    request = _get_request(db, request_id)
    try:
        return change_request_service.approve_request(
            db,
            request,
            admin,
            admin_notes=payload.admin_notes,
            new_date_time=payload.new_date_time,
        )
    except change_request_service.ChangeRequestError as exc:
        raise _http_error(exc) from exc


@router.post(
    "/session-change-requests/{request_id}/reject",
    response_model=schemas.SessionChangeRequest,
)
def reject_change_request(
    request_id: int,
    payload: schemas.ChangeRequestReject,
    db: Session = Depends(get_db),
    admin: models.User = Depends(deps.require_roles("admin")),
):
    request = _get_request(db, request_id)
    try:
        return change_request_service.reject_request(
            db, request, admin, admin_notes=payload.admin_notes
        )
    except change_request_service.ChangeRequestError as exc:
        raise _http_error(exc) from exc
