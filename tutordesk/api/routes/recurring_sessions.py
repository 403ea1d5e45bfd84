from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.orm import Session
from ...api import deps
from ...core.constants import DEFAULT_GENERATION_WINDOW
from ...core.timeutils import local_tz, utc_now
from ...db.session import get_db
from ...db import models, schemas
from ...services import template_service

router = APIRouter(prefix="/recurring-sessions", tags=["recurring-sessions"])


def _get_template(db: Session, template_id: int) -> models.RecurringSessionTemplate:
    template = db.get(models.RecurringSessionTemplate, template_id)
    if not template:
        raise HTTPException(status_code=404, detail="Recurring session not found")
    return template


@router.get("", response_model=list[schemas.RecurringSessionTemplate])
def list_templates(
    tutor_id: int | None = None,
    group_id: int | None = None,
    db: Session = Depends(get_db),
    user: models.User = Depends(deps.require_roles("admin", "tutor")),
):
    if user.role == models.UserRole.tutor:
        tutor_id = user.id
    query = db.query(models.RecurringSessionTemplate)
    if tutor_id:
        query = query.filter(models.RecurringSessionTemplate.tutor_id == tutor_id)
    if group_id:
        query = query.filter(models.RecurringSessionTemplate.group_id == group_id)
    return query.order_by(
        models.RecurringSessionTemplate.day_of_week, models.RecurringSessionTemplate.start_time
    ).all()


@router.get("/{template_id}", response_model=schemas.RecurringSessionTemplate)
def get_template(
    template_id: int,
    db: Session = Depends(get_db),
    user: models.User = Depends(deps.require_roles("admin", "tutor")),
):
    template = _get_template(db, template_id)
    if user.role != models.UserRole.admin and template.tutor_id != user.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")
    return template


@router.post(
    "", response_model=schemas.RecurringSessionTemplate, status_code=status.HTTP_201_CREATED
)
def create_template(
    payload: schemas.RecurringSessionTemplateCreate,
    db: Session = Depends(get_db),
    admin: models.User = Depends(deps.require_roles("admin")),
):
    values = payload.model_dump(exclude={"generate_occurrences"})
    try:
        values["class_type"] = models.ClassType(values["class_type"])
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="Unknown class type") from exc
    try:
        return template_service.create_template(
            db, values, actor_id=admin.id, generate=payload.generate_occurrences
        )
    except template_service.TemplateError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc


@router.patch("/{template_id}", response_model=schemas.RecurringSessionTemplate)
def update_template(
    template_id: int,
    payload: schemas.RecurringSessionTemplateUpdate,
    db: Session = Depends(get_db),
    admin: models.User = Depends(deps.require_roles("admin")),
):
    template = _get_template(db, template_id)
    try:
        return template_service.update_template(
            db, template, payload.model_dump(exclude_unset=True), actor_id=admin.id
        )
    except template_service.TemplateError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc


@router.delete("/{template_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_template(
    template_id: int,
    db: Session = Depends(get_db),
    admin: models.User = Depends(deps.require_roles("admin")),
):
    template = _get_template(db, template_id)
    template_service.delete_template(db, template, actor_id=admin.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{template_id}/generate", response_model=schemas.GenerateOccurrencesResult)
def generate_occurrences(
    template_id: int,
    payload: schemas.GenerateOccurrences,
    db: Session = Depends(get_db),
    _: models.User = Depends(deps.require_roles("admin")),
):
    template = _get_template(db, template_id)
    until = payload.until or (utc_now().astimezone(local_tz()) + DEFAULT_GENERATION_WINDOW).date()
    occurrences = template_service.generate_occurrences(db, template, until)
    return {"generated": len(occurrences), "occurrences": occurrences}
