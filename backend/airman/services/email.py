from __future__ import annotations

from dataclasses import dataclass
from email.message import EmailMessage
import logging
import smtplib
import ssl
import time

from airman.core.config import get_settings

logger = logging.getLogger(__name__)


class EmailDeliveryError(RuntimeError):
    pass


@dataclass(frozen=True)
class _SmtpEndpoint:
    host: str
    port: int
    username: str | None
    password: str
    from_email: str
    from_name: str | None
    use_tls: bool
    use_ssl: bool


def _build_from_header(from_email: str, from_name: str | None) -> str:
    if from_name:
        return f"{from_name} <{from_email}>"
    return from_email


def _build_message(*, endpoint: _SmtpEndpoint, to_email: str, subject: str, text_content: str) -> EmailMessage:
    message = EmailMessage()
    message["From"] = _build_from_header(endpoint.from_email, endpoint.from_name)
    message["To"] = to_email
    message["Subject"] = subject
    message.set_content(text_content)
    return message


def _build_endpoint(settings) -> _SmtpEndpoint | None:
    if not settings.smtp_host or not settings.smtp_from_email:
        return None
    return _SmtpEndpoint(
        host=settings.smtp_host,
        port=settings.smtp_port,
        username=settings.smtp_username,
        password=settings.smtp_password or "",
        from_email=settings.smtp_from_email,
        from_name=settings.smtp_from_name,
        use_tls=settings.smtp_use_tls,
        use_ssl=settings.smtp_use_ssl,
    )


def _is_connection_issue(exc: Exception) -> bool:
    return isinstance(
        exc,
        (
            smtplib.SMTPConnectError,
            smtplib.SMTPServerDisconnected,
            smtplib.SMTPHeloError,
            OSError,
            TimeoutError,
        ),
    )


def _deliver(endpoint: _SmtpEndpoint, message: EmailMessage, *, timeout: int) -> None:
    if endpoint.use_ssl:
        with smtplib.SMTP_SSL(endpoint.host, endpoint.port, timeout=timeout) as smtp:
            if endpoint.username:
                smtp.login(endpoint.username, endpoint.password)
            smtp.send_message(message)
        return

    with smtplib.SMTP(endpoint.host, endpoint.port, timeout=timeout) as smtp:
        if endpoint.use_tls:
            smtp.starttls(context=ssl.create_default_context())
        if endpoint.username:
            smtp.login(endpoint.username, endpoint.password)
        smtp.send_message(message)


def send_email(*, to_email: str, subject: str, text_content: str, correlation_id: str | None = None) -> None:
    settings = get_settings()
    endpoint = _build_endpoint(settings)
    if endpoint is None:
        # No transport configured: record the message instead of sending it.
        logger.info(
            "[EMAIL-STUB] correlation_id=%s to=%s subject=%s body=%s",
            correlation_id or "n/a",
            to_email,
            subject,
            text_content,
        )
        return

    message = _build_message(endpoint=endpoint, to_email=to_email, subject=subject, text_content=text_content)
    timeout = max(1, settings.smtp_timeout_seconds)
    retry_attempts = max(1, settings.smtp_retry_attempts)
    retry_backoff_seconds = max(0.0, settings.smtp_retry_backoff_seconds)

    last_error: Exception | None = None
    last_error_message = "Unable to deliver email"
    for attempt in range(1, retry_attempts + 1):
        try:
            _deliver(endpoint, message, timeout=timeout)
            return
        except smtplib.SMTPAuthenticationError as exc:
            last_error = exc
            last_error_message = "SMTP authentication failed"
            break
        except smtplib.SMTPRecipientsRefused as exc:
            last_error = exc
            last_error_message = "SMTP recipient rejected"
            break
        except smtplib.SMTPSenderRefused as exc:
            last_error = exc
            last_error_message = "SMTP sender rejected"
            break
        except smtplib.SMTPDataError as exc:
            last_error = exc
            last_error_message = "SMTP data rejected"
            break
        except Exception as exc:
            last_error = exc
            if not _is_connection_issue(exc):
                break
            last_error_message = "SMTP connection failed"
            if attempt < retry_attempts and retry_backoff_seconds > 0:
                time.sleep(retry_backoff_seconds * attempt)

    raise EmailDeliveryError(last_error_message) from last_error
