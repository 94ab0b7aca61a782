from datetime import datetime

from pydantic import BaseModel


class AuditLogOut(BaseModel):
    id: str
    tenant_id: str
    user_id: str | None
    action: str
    resource_type: str | None
    resource_id: str | None
    before_state: dict | None
    after_state: dict | None
    correlation_id: str | None
    created_at: datetime

    model_config = {"from_attributes": True}
