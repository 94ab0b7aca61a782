"""create availability, bookings and audit logs

Revision ID: 20260215_0002
Revises: 20260215_0001
Create Date: 2026-02-15 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

revision = "20260215_0002"
down_revision = "20260215_0001"
branch_labels = None
depends_on = None


booking_status = sa.Enum("REQUESTED", "APPROVED", "ASSIGNED", "COMPLETED", "CANCELLED", name="booking_status")


def upgrade() -> None:
    op.create_table(
        "instructor_availability",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("tenant_id", sa.String(length=36), sa.ForeignKey("tenants.id"), nullable=False),
        sa.Column("instructor_id", sa.String(length=36), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("day_of_week", sa.SmallInteger(), nullable=False),
        sa.Column("start_time", sa.String(length=5), nullable=False),
        sa.Column("end_time", sa.String(length=5), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index(
        "ix_instructor_availability_tenant_instructor",
        "instructor_availability",
        ["tenant_id", "instructor_id"],
        unique=False,
    )

    op.create_table(
        "bookings",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("tenant_id", sa.String(length=36), sa.ForeignKey("tenants.id"), nullable=False),
        sa.Column("student_id", sa.String(length=36), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("instructor_id", sa.String(length=36), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("status", booking_status, nullable=False, server_default="REQUESTED"),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("start_time", sa.String(length=5), nullable=False),
        sa.Column("end_time", sa.String(length=5), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_bookings_tenant_instructor_date", "bookings", ["tenant_id", "instructor_id", "date"], unique=False)
    op.create_index("ix_bookings_tenant_student", "bookings", ["tenant_id", "student_id"], unique=False)

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("tenant_id", sa.String(length=36), nullable=False),
        sa.Column("user_id", sa.String(length=36), nullable=True),
        sa.Column("action", sa.String(length=100), nullable=False),
        sa.Column("resource_type", sa.String(length=100), nullable=True),
        sa.Column("resource_id", sa.String(length=100), nullable=True),
        sa.Column("before_state", sa.JSON(), nullable=True),
        sa.Column("after_state", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_audit_logs_tenant_id", "audit_logs", ["tenant_id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_audit_logs_tenant_id", table_name="audit_logs")
    op.drop_table("audit_logs")
    op.drop_index("ix_bookings_tenant_student", table_name="bookings")
    op.drop_index("ix_bookings_tenant_instructor_date", table_name="bookings")
    op.drop_table("bookings")
    op.drop_index("ix_instructor_availability_tenant_instructor", table_name="instructor_availability")
    op.drop_table("instructor_availability")
    booking_status.drop(op.get_bind(), checkfirst=True)
