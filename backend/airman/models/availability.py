import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, SmallInteger, String
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from airman.db.base import Base


class InstructorAvailability(Base):
    """Recurring weekly window an instructor declares. Advisory only."""

    __tablename__ = "instructor_availability"
    __table_args__ = (Index("ix_instructor_availability_tenant_instructor", "tenant_id", "instructor_id"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    tenant_id: Mapped[str] = mapped_column(String(36), ForeignKey("tenants.id"), nullable=False)
    instructor_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), nullable=False)
    # 0 = Sunday ... 6 = Saturday
    day_of_week: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    start_time: Mapped[str] = mapped_column(String(5), nullable=False)
    end_time: Mapped[str] = mapped_column(String(5), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
