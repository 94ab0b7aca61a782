from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from airman.models.notification import Notification, NotificationType
from airman.models.user import User, UserRole
from airman.services.email import EmailDeliveryError, send_email

logger = logging.getLogger(__name__)


def _send_notification_email(recipient: User, *, title: str, message: str, correlation_id: str | None) -> None:
    if not recipient.email:
        return
    try:
        send_email(
            to_email=recipient.email,
            subject=f"[AIRMAN] {title}",
            text_content=f"{title}\n\n{message}",
            correlation_id=correlation_id,
        )
    except EmailDeliveryError:
        logger.warning("Notification email delivery failed for %s", recipient.email, exc_info=True)


def create_notification(
    db: Session,
    *,
    tenant_id: str,
    user_id: str,
    title: str,
    message: str,
    notification_type: NotificationType = NotificationType.system,
    recipient: User | None = None,
    deliver_email: bool = False,
    correlation_id: str | None = None,
) -> Notification:
    record = Notification(
        tenant_id=tenant_id,
        user_id=user_id,
        title=title,
        message=message,
        notification_type=notification_type,
    )
    db.add(record)
    db.flush()

    if deliver_email and recipient is not None:
        _send_notification_email(recipient, title=title, message=message, correlation_id=correlation_id)
    return record


def notify_tenant_admins(
    db: Session,
    *,
    tenant_id: str,
    title: str,
    message: str,
    notification_type: NotificationType = NotificationType.system,
    deliver_email: bool = True,
    correlation_id: str | None = None,
) -> list[Notification]:
    admins = list(
        db.execute(
            select(User).where(
                User.tenant_id == tenant_id,
                User.role == UserRole.admin,
                User.is_active.is_(True),
            )
        ).scalars()
    )
    return [
        create_notification(
            db,
            tenant_id=tenant_id,
            user_id=admin.id,
            title=title,
            message=message,
            notification_type=notification_type,
            recipient=admin,
            deliver_email=deliver_email,
            correlation_id=correlation_id,
        )
        for admin in admins
    ]
