from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from guardduty.api.deps import get_db
from guardduty.schemas.audit import AuditLogOut
from guardduty.services.audit import list_audit_logs

router = APIRouter()


@router.get("/audit/logs", response_model=list[AuditLogOut])
def audit_logs(
    action: str | None = Query(default=None, max_length=100),
    entity_type: str | None = Query(default=None, max_length=100),
    entity_id: str | None = Query(default=None, max_length=100),
    limit: int = Query(default=100, ge=1, le=500),
    db: Session = Depends(get_db),
) -> list[AuditLogOut]:
    return list_audit_logs(db, action=action, entity_type=entity_type, entity_id=entity_id, limit=limit)
