from __future__ import annotations

import logging

from sqlalchemy import inspect, text
from sqlalchemy.engine import Engine

from airman.db.session import engine as default_engine

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS: dict[str, set[str]] = {
    "tenants": {"id", "slug"},
    "users": {"id", "tenant_id", "email", "role", "approved"},
    "instructor_availability": {"id", "tenant_id", "instructor_id", "day_of_week"},
    "bookings": {"id", "tenant_id", "student_id", "instructor_id", "status", "date", "escalated_at"},
    "audit_logs": {"id", "tenant_id", "action", "correlation_id"},
}


def _ensure_bookings_escalated_at_column(engine: Engine) -> None:
    with engine.begin() as connection:
        inspector = inspect(connection)
        if "bookings" not in set(inspector.get_table_names()):
            return
        column_names = {item["name"] for item in inspector.get_columns("bookings")}
        if "escalated_at" in column_names:
            return
        if connection.dialect.name == "postgresql":
            connection.execute(text("ALTER TABLE bookings ADD COLUMN escalated_at TIMESTAMP WITH TIME ZONE"))
            return
        connection.execute(text("ALTER TABLE bookings ADD COLUMN escalated_at DATETIME"))


def _ensure_audit_logs_correlation_id_column(engine: Engine) -> None:
    with engine.begin() as connection:
        inspector = inspect(connection)
        if "audit_logs" not in set(inspector.get_table_names()):
            return
        column_names = {item["name"] for item in inspector.get_columns("audit_logs")}
        if "correlation_id" in column_names:
            return
        connection.execute(text("ALTER TABLE audit_logs ADD COLUMN correlation_id VARCHAR(100)"))


def missing_schema_items(engine: Engine | None = None) -> tuple[list[str], dict[str, list[str]]]:
    target = engine or default_engine
    missing_tables: list[str] = []
    missing_columns: dict[str, list[str]] = {}
    with target.connect() as connection:
        inspector = inspect(connection)
        table_names = set(inspector.get_table_names())
        for table_name, columns in REQUIRED_COLUMNS.items():
            if table_name not in table_names:
                missing_tables.append(table_name)
                continue
            existing = {item["name"] for item in inspector.get_columns(table_name)}
            missing = sorted(columns - existing)
            if missing:
                missing_columns[table_name] = missing
    return missing_tables, missing_columns


def ensure_runtime_schema_compatibility(engine: Engine | None = None) -> None:
    """Apply additive column fixes for databases created before the latest migrations."""
    target = engine or default_engine
    try:
        _ensure_bookings_escalated_at_column(target)
        _ensure_audit_logs_correlation_id_column(target)
    except Exception:
        logger.exception("Runtime schema compatibility check failed")
        raise
