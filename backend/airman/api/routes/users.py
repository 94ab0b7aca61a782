from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.orm import Session

from airman.api.deps import get_current_user, get_db
from airman.models.user import User, UserRole
from airman.schemas.user import InstructorOut

router = APIRouter()


@router.get("/users/instructors", response_model=list[InstructorOut])
def list_instructors(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[InstructorOut]:
    query = (
        select(User)
        .where(
            User.tenant_id == current_user.tenant_id,
            User.role == UserRole.instructor,
            User.is_active.is_(True),
        )
        .order_by(User.email.asc())
    )
    return list(db.execute(query).scalars())
