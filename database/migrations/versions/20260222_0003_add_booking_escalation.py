"""add booking escalation, audit correlation ids and notifications

Revision ID: 20260222_0003
Revises: 20260215_0002
Create Date: 2026-02-22 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

revision = "20260222_0003"
down_revision = "20260215_0002"
branch_labels = None
depends_on = None


notification_type = sa.Enum("booking", "escalation", "system", name="notification_type")


def upgrade() -> None:
    op.add_column("bookings", sa.Column("escalated_at", sa.DateTime(timezone=True), nullable=True))
    op.create_index("ix_bookings_status_escalated", "bookings", ["status", "escalated_at"], unique=False)
    op.add_column("audit_logs", sa.Column("correlation_id", sa.String(length=100), nullable=True))

    op.create_table(
        "notifications",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("tenant_id", sa.String(length=36), nullable=False),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("notification_type", notification_type, nullable=False, server_default="system"),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_notifications_tenant_id", "notifications", ["tenant_id"], unique=False)
    op.create_index("ix_notifications_user_id", "notifications", ["user_id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_notifications_user_id", table_name="notifications")
    op.drop_index("ix_notifications_tenant_id", table_name="notifications")
    op.drop_table("notifications")
    notification_type.drop(op.get_bind(), checkfirst=True)
    op.drop_column("audit_logs", "correlation_id")
    op.drop_index("ix_bookings_status_escalated", table_name="bookings")
    op.drop_column("bookings", "escalated_at")
