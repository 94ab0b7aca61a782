from pydantic import BaseModel


class EscalationSweepOut(BaseModel):
    escalated_count: int
    failed_count: int = 0
