from datetime import datetime
from pydantic import BaseModel


class StudentBase(BaseModel):
    name: str
    parent_user_id: int | None = None
    tutor_id: int | None = None


class StudentCreate(StudentBase):
    pass


class StudentUpdate(BaseModel):
    name: str | None = None
    parent_user_id: int | None = None
    tutor_id: int | None = None
    is_active: bool | None = None


class Student(StudentBase):
    id: int
    is_active: bool
    created_at: datetime | None = None

    class Config:
        from_attributes = True


class StudentGroupCreate(BaseModel):
    name: str
    tutor_id: int | None = None
    student_ids: list[int] = []


class GroupMembersUpdate(BaseModel):
    student_ids: list[int]


class StudentGroup(BaseModel):
    id: int
    name: str
    tutor_id: int | None = None
    is_active: bool
    member_ids: list[int] = []

    class Config:
        from_attributes = True
