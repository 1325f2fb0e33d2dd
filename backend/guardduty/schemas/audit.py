from datetime import datetime

from pydantic import BaseModel


class AuditLogOut(BaseModel):
    id: str
    action: str
    entity_type: str | None = None
    entity_id: str | None = None
    details: dict
    created_at: datetime | None = None

    model_config = {"from_attributes": True}
