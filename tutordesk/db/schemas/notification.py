from datetime import datetime
from pydantic import BaseModel


class Notification(BaseModel):
    id: int
    user_id: int
    type: str
    title: str
    message: str
    related_id: int | None = None
    related_type: str | None = None
    read_at: datetime | None = None
    created_at: datetime | None = None

    class Config:
        from_attributes = True
