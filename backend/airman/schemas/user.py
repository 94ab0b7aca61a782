from pydantic import BaseModel, EmailStr

from airman.models.user import UserRole


class InstructorOut(BaseModel):
    id: str
    name: str | None = None
    email: EmailStr
    role: UserRole
    approved: bool

    model_config = {"from_attributes": True}
