from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session, selectinload
from ...api import deps
from ...db.session import get_db
from ...db import models, schemas

router = APIRouter(tags=["students"])


@router.get("/students", response_model=list[schemas.Student])
def list_students(
    tutor_id: int | None = None,
    db: Session = Depends(get_db),
    _: models.User = Depends(deps.require_roles("admin")),
):
    query = db.query(models.Student)
    if tutor_id:
        query = query.filter(models.Student.tutor_id == tutor_id)
    return query.order_by(models.Student.name).all()


@router.post("/students", response_model=schemas.Student, status_code=status.HTTP_201_CREATED)
def create_student(
    payload: schemas.StudentCreate,
    db: Session = Depends(get_db),
    _: models.User = Depends(deps.require_roles("admin")),
):
    student = models.Student(**payload.model_dump(), is_active=True)
    db.add(student)
    db.commit()
    db.refresh(student)
    return student


@router.patch("/students/{student_id}", response_model=schemas.Student)
def update_student(
    student_id: int,
    payload: schemas.StudentUpdate,
    db: Session = Depends(get_db),
    _: models.User = Depends(deps.require_roles("admin")),
):
    student = db.get(models.Student, student_id)
    if not student:
        raise HTTPException(status_code=404, detail="Student not found")
    for key, value in payload.model_dump(exclude_unset=True).items():
        setattr(student, key, value)
    db.commit()
    db.refresh(student)
    return student


@router.get("/groups", response_model=list[schemas.StudentGroup])
def list_groups(
    db: Session = Depends(get_db),
    _: models.User = Depends(deps.require_roles("admin", "tutor")),
):
    return (
        db.query(models.StudentGroup)
        .options(selectinload(models.StudentGroup.members))
        .order_by(models.StudentGroup.name)
        .all()
    )


def _load_students(db: Session, student_ids: list[int]) -> list[models.Student]:
    if not student_ids:
        return []
    students = db.query(models.Student).filter(models.Student.id.in_(student_ids)).all()
    if len(students) != len(set(student_ids)):
        raise HTTPException(status_code=404, detail="Student not found")
    return students


@router.post("/groups", response_model=schemas.StudentGroup, status_code=status.HTTP_201_CREATED)
def create_group(
    payload: schemas.StudentGroupCreate,
    db: Session = Depends(get_db),
    _: models.User = Depends(deps.require_roles("admin")),
):
    group = models.StudentGroup(name=payload.name, tutor_id=payload.tutor_id, is_active=True)
    group.members = _load_students(db, payload.student_ids)
    db.add(group)
    db.commit()
    db.refresh(group)
    return group


@router.post("/groups/{group_id}/members", response_model=schemas.StudentGroup)
def set_group_members(
    group_id: int,
    payload: schemas.GroupMembersUpdate,
    db: Session = Depends(get_db),
    _: models.User = Depends(deps.require_roles("admin")),
):
    group = db.get(models.StudentGroup, group_id)
    if not group:
        raise HTTPException(status_code=404, detail="Group not found")
    group.members = _load_students(db, payload.student_ids)
    db.commit()
    db.refresh(group)
    return group
