from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.orm import Session

from airman.api.deps import get_db, require_roles
from airman.models.audit_log import AuditLog
from airman.models.user import User, UserRole
from airman.schemas.activity import AuditLogOut

router = APIRouter()


@router.get("/activity/logs", response_model=list[AuditLogOut])
def list_audit_logs(
    resource_id: str | None = Query(default=None, max_length=100),
    action: str | None = Query(default=None, max_length=100),
    current_user: User = Depends(require_roles(UserRole.admin)),
    db: Session = Depends(get_db),
) -> list[AuditLogOut]:
    query = select(AuditLog).where(AuditLog.tenant_id == current_user.tenant_id)
    if resource_id:
        query = query.where(AuditLog.resource_id == resource_id)
    if action:
        query = query.where(AuditLog.action == action)
    query = query.order_by(AuditLog.created_at.desc()).limit(500)
    return list(db.execute(query).scalars())
