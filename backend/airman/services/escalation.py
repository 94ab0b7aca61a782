"""Escalation of booking requests that nobody picked up.

A sweep marks each stale, unassigned ``REQUESTED`` booking once, writes an
audit record in the same commit and then tells the tenant admins. The
``escalated_at IS NULL`` guard makes repeated sweeps safe: a booking that was
marked is never selected again, even when notifying afterwards failed.
"""
from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
import logging
import threading

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from airman.core.config import get_settings
from airman.models.booking import Booking, BookingStatus
from airman.models.notification import NotificationType
from airman.models.user import User
from airman.services.audit import log_audit
from airman.services.notifications import notify_tenant_admins

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]
AdminNotifier = Callable[..., object]


@dataclass(frozen=True)
class EscalationSweepResult:
    escalated_count: int
    failed_count: int = 0


@dataclass(frozen=True)
class _Candidate:
    booking_id: str
    tenant_id: str
    student_id: str
    student_email: str | None
    created_at: datetime


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def default_threshold() -> timedelta:
    return timedelta(hours=get_settings().booking_escalation_hours)


def format_elapsed(delta: timedelta) -> str:
    total_minutes = max(0, int(delta.total_seconds() // 60))
    hours, minutes = divmod(total_minutes, 60)
    return f"{hours}h {minutes:02d}m"


def find_escalation_candidates(db: Session, *, cutoff: datetime, tenant_id: str | None = None) -> list[_Candidate]:
    query = (
        select(Booking.id, Booking.tenant_id, Booking.student_id, User.email, Booking.created_at)
        .outerjoin(User, User.id == Booking.student_id)
        .where(
            Booking.status == BookingStatus.REQUESTED,
            Booking.instructor_id.is_(None),
            Booking.escalated_at.is_(None),
            Booking.created_at < cutoff,
        )
        .order_by(Booking.created_at.asc())
    )
    if tenant_id is not None:
        query = query.where(Booking.tenant_id == tenant_id)
    return [
        _Candidate(
            booking_id=row.id,
            tenant_id=row.tenant_id,
            student_id=row.student_id,
            student_email=row.email,
            created_at=_as_utc(row.created_at),
        )
        for row in db.execute(query)
    ]


def _mark_escalated(db: Session, candidate: _Candidate, *, now: datetime, threshold: timedelta) -> bool:
    result = db.execute(
        update(Booking)
        .where(
            Booking.id == candidate.booking_id,
            Booking.escalated_at.is_(None),
            Booking.status == BookingStatus.REQUESTED,
            Booking.instructor_id.is_(None),
        )
        .values(escalated_at=now)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        # Assigned, cancelled or escalated by someone else since selection.
        db.rollback()
        return False

    log_audit(
        db,
        tenant_id=candidate.tenant_id,
        user_id=None,
        action="booking.escalate",
        resource_type="booking",
        resource_id=candidate.booking_id,
        before_state={"escalated_at": None},
        after_state={
            "escalated_at": now.isoformat(),
            "reason": f"Unassigned for more than {format_elapsed(threshold)}",
        },
        correlation_id=f"escalation-{candidate.booking_id}",
    )
    db.commit()
    return True


def _notify_admins(db: Session, candidate: _Candidate, *, now: datetime, notifier: AdminNotifier) -> None:
    elapsed = format_elapsed(now - candidate.created_at)
    student = candidate.student_email or candidate.student_id
    try:
        notifier(
            db,
            tenant_id=candidate.tenant_id,
            title=f"Booking escalation: {candidate.booking_id}",
            message=(
                f"Booking {candidate.booking_id} (student: {student}) has been unassigned for {elapsed}. "
                "Please assign an instructor."
            ),
            notification_type=NotificationType.escalation,
            correlation_id=f"escalation-{candidate.booking_id}",
        )
        db.commit()
    except Exception:
        # The escalation stays recorded; a missed notification beats a repeated escalation.
        db.rollback()
        logger.warning("Escalation notification failed for booking %s", candidate.booking_id, exc_info=True)


def run_escalation_sweep(
    db: Session,
    *,
    now: datetime | None = None,
    threshold: timedelta | None = None,
    tenant_id: str | None = None,
    notifier: AdminNotifier = notify_tenant_admins,
) -> EscalationSweepResult:
    """Run one escalation pass.

    Only a failing selection query propagates. Errors on individual bookings
    are rolled back, logged and counted in ``failed_count``.
    """
    now = _as_utc(now or utc_now())
    threshold = threshold if threshold is not None else default_threshold()
    candidates = find_escalation_candidates(db, cutoff=now - threshold, tenant_id=tenant_id)

    escalated = 0
    failed = 0
    for candidate in candidates:
        try:
            marked = _mark_escalated(db, candidate, now=now, threshold=threshold)
        except Exception:
            db.rollback()
            failed += 1
            logger.exception("Failed to escalate booking %s", candidate.booking_id)
            continue
        if not marked:
            continue
        escalated += 1
        logger.info("Escalated booking %s for tenant %s", candidate.booking_id, candidate.tenant_id)
        _notify_admins(db, candidate, now=now, notifier=notifier)

    return EscalationSweepResult(escalated_count=escalated, failed_count=failed)


class EscalationScheduler:
    """Runs ``run_escalation_sweep`` every ``interval_seconds`` on a worker thread."""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        *,
        interval_seconds: float,
        threshold: timedelta | None = None,
        clock: Clock = utc_now,
        notifier: AdminNotifier = notify_tenant_admins,
    ) -> None:
        self._session_factory = session_factory
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self._interval_seconds = float(interval_seconds)
        self._threshold = threshold
        self._clock = clock
        self._notifier = notifier
        self._stop_event = threading.Event()
        self._tick_lock = threading.Lock()
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def tick_now(self) -> EscalationSweepResult:
        with self._tick_lock:
            db = self._session_factory()
            try:
                return run_escalation_sweep(
                    db,
                    now=self._clock(),
                    threshold=self._threshold,
                    notifier=self._notifier,
                )
            finally:
                db.close()

    def _tick(self) -> None:
        try:
            result = self.tick_now()
        except Exception:
            # Nothing is held in memory between ticks; the next one selects again.
            logger.exception("Escalation sweep failed")
            return
        if result.escalated_count or result.failed_count:
            logger.info(
                "Escalation sweep: %d booking(s) escalated, %d failed",
                result.escalated_count,
                result.failed_count,
            )

    def _run(self) -> None:
        while not self._stop_event.wait(self._interval_seconds):
            self._tick()

    def start(self) -> None:
        if self.running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name="escalation-sweeper", daemon=True)
        self._thread.start()
        logger.info("Escalation scheduler started (interval %ss)", self._interval_seconds)

    def stop(self, timeout: float | None = 10.0) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        logger.info("Escalation scheduler stopped")
