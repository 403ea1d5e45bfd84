from datetime import datetime
from pydantic import BaseModel, Field


class UserBase(BaseModel):
    email: str = Field(min_length=3, max_length=255)
    first_name: str | None = None
    last_name: str | None = None
    role: str = "tutor"


class UserCreate(UserBase):
    password: str = Field(min_length=6)


class UserUpdate(BaseModel):
    first_name: str | None = None
    last_name: str | None = None
    is_active: bool | None = None


class User(UserBase):
    id: int
    is_active: bool
    created_at: datetime | None = None

    class Config:
        from_attributes = True
