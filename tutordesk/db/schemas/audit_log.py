from datetime import datetime
from pydantic import BaseModel


class AuditLog(BaseModel):
    id: int
    action: str
    entity_type: str
    entity_id: int | None = None
    performed_by: int | None = None
    details: dict | None = None
    created_at: datetime | None = None

    class Config:
        from_attributes = True
