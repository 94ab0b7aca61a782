from __future__ import annotations

from sqlalchemy.orm import Session

from airman.models.audit_log import AuditLog


def log_audit(
    db: Session,
    *,
    tenant_id: str,
    user_id: str | None,
    action: str,
    resource_type: str | None = None,
    resource_id: str | None = None,
    before_state: dict | None = None,
    after_state: dict | None = None,
    correlation_id: str | None = None,
) -> AuditLog:
    record = AuditLog(
        tenant_id=tenant_id,
        user_id=user_id,
        action=action,
        resource_type=resource_type,
        resource_id=resource_id,
        before_state=before_state,
        after_state=after_state,
        correlation_id=correlation_id,
    )
    db.add(record)
    return record
