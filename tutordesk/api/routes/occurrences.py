from datetime import datetime
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from ...api import deps
from ...db.session import get_db
from ...db import models, schemas
from ...services import occurrence_service

router = APIRouter(tags=["session-occurrences"])


def _get_occurrence(db: Session, occurrence_id: int) -> models.SessionOccurrence:
    occurrence = db.get(models.SessionOccurrence, occurrence_id)
    if not occurrence:
        raise HTTPException(status_code=404, detail="Session occurrence not found")
    return occurrence


@router.get("/session-occurrences", response_model=list[schemas.SessionOccurrenceWithRequest])
def list_occurrences(
    tutor_id: int | None = None,
    from_dt: datetime | None = None,
    to_dt: datetime | None = None,
    db: Session = Depends(get_db),
    user: models.User = Depends(deps.require_roles("admin", "tutor")),
):
    if user.role == models.UserRole.tutor:
        tutor_id = user.id
    return occurrence_service.list_occurrences(
        db, tutor_id=tutor_id, from_dt=from_dt, to_dt=to_dt
    )


@router.post(
    "/session-occurrences",
    response_model=schemas.SessionOccurrence,
    status_code=status.HTTP_201_CREATED,
)
def create_occurrence(
    payload: schemas.SessionOccurrenceCreate,
    db: Session = Depends(get_db),
    admin: models.User = Depends(deps.require_roles("admin")),
):
    try:
        return occurrence_service.create_manual_occurrence(
            db, payload.model_dump(), actor_id=admin.id
        )
    except occurrence_service.OccurrenceError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc


@router.get("/session-occurrences/{occurrence_id}", response_model=schemas.SessionOccurrence)
def get_occurrence(
    occurrence_id: int,
    db: Session = Depends(get_db),
    user: models.User = Depends(deps.get_current_user),
):
    occurrence = _get_occurrence(db, occurrence_id)
    allowed = (
        user.role == models.UserRole.admin
        or (user.role == models.UserRole.tutor and occurrence.tutor_id == user.id)
        or (
            user.role == models.UserRole.parent
            and occurrence_service.parent_owns(db, user, occurrence)
        )
    )
    if not allowed:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")
    return occurrence


@router.patch("/session-occurrences/{occurrence_id}", response_model=schemas.SessionOccurrence)
def update_occurrence(
    occurrence_id: int,
    payload: schemas.SessionOccurrenceUpdate,
    db: Session = Depends(get_db),
    user: models.User = Depends(deps.require_roles("admin", "tutor")),
):
    occurrence = _get_occurrence(db, occurrence_id)
    if user.role == models.UserRole.tutor and occurrence.tutor_id != user.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")
    try:
        return occurrence_service.update_occurrence(
            db, occurrence, payload.model_dump(exclude_unset=True), actor_id=user.id
        )
    except occurrence_service.OccurrenceError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc


@router.get(
    "/parent/session-occurrences", response_model=list[schemas.SessionOccurrenceWithRequest]
)
def list_parent_occurrences(
    db: Session = Depends(get_db),
    parent: models.User = Depends(deps.require_roles("parent")),
):
    return occurrence_service.list_parent_occurrences(db, parent)


@router.post(
    "/parent/session-occurrences/{occurrence_id}/flag", response_model=schemas.SessionOccurrence
)
def flag_occurrence(
    occurrence_id: int,
    payload: schemas.SessionFlag,
    db: Session = Depends(get_db),
    parent: models.User = Depends(deps.require_roles("parent")),
):
    occurrence = _get_occurrence(db, occurrence_id)
    if not occurrence_service.parent_owns(db, parent, occurrence):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You can only flag sessions for your own children",
        )
    return occurrence_service.flag_occurrence(db, occurrence, parent, payload.comment)


@router.get("/flagged-sessions", response_model=list[schemas.SessionOccurrence])
def list_flagged(
    db: Session = Depends(get_db),
    _: models.User = Depends(deps.require_roles("admin")),
):
    return occurrence_service.list_flagged(db)


@router.post("/flagged-sessions/{occurrence_id}/acknowledge", response_model=schemas.SessionOccurrence)
def acknowledge_flag(
    occurrence_id: int,
    db: Session = Depends(get_db),
    _: models.User = Depends(deps.require_roles("admin")),
):
    occurrence = _get_occurrence(db, occurrence_id)
    try:
        return occurrence_service.acknowledge_flag(db, occurrence)
    except occurrence_service.OccurrenceError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
