import logging
from typing import Optional

from sqlalchemy.orm import Session

from app.core.errors import PeriodLockedError, ValidationError
from app.database import utcnow
from app.models.period_lock import PeriodLock
from app.services.audit_service import write_audit_log
from app.services.project_service import lock_project_row

logger = logging.getLogger(__name__)


def validate_period(year: int, month: int) -> None:
    if not 1 <= int(month) <= 12:
        raise ValidationError(f"Month must be between 1 and 12, got {month}")
    if not 1900 <= int(year) <= 9999:
        raise ValidationError(f"Invalid year: {year}")


def get_lock(db: Session, project_id: str, year: int, month: int) -> Optional[PeriodLock]:
    return (
        db.query(PeriodLock)
        .filter(
            PeriodLock.project_id == str(project_id),
            PeriodLock.year == int(year),
            PeriodLock.month == int(month),
        )
        .one_or_none()
    )


def is_locked(db: Session, project_id: str, year: int, month: int) -> bool:
    lock = get_lock(db, project_id, year, month)
    return bool(lock is not None and lock.locked)


def assert_not_locked(db: Session, project_id: str, year: int, month: int) -> None:
    """Gate called before any time-entry mutation. An absent row means unlocked."""
    if is_locked(db, project_id, year, month):
        raise PeriodLockedError(str(project_id), int(year), int(month))


def _upsert_lock(
    db: Session,
    *,
    project_id: str,
    year: int,
    month: int,
    locked: bool,
    actor: str,
    reason: Optional[str],
) -> PeriodLock:
    validate_period(year, month)
    lock_project_row(db, project_id)

    lock = get_lock(db, project_id, year, month)
    if lock is None:
        lock = PeriodLock(project_id=str(project_id), year=int(year), month=int(month))
        db.add(lock)

    lock.locked = locked
    lock.locked_by = actor
    lock.locked_at = utcnow()
    lock.reason = reason
    db.flush()
    return lock


def lock_period(
    db: Session,
    *,
    project_id: str,
    year: int,
    month: int,
    actor: str,
    reason: Optional[str] = None,
) -> PeriodLock:
    """
    Idempotent: locking an already locked period succeeds and refreshes
    actor, time and reason. Writes one LOCK audit entry per call.
    """
    lock = _upsert_lock(
        db,
        project_id=project_id,
        year=year,
        month=month,
        locked=True,
        actor=actor,
        reason=reason,
    )

    write_audit_log(
        db,
        entity_type="PeriodLock",
        entity_id=lock.id,
        action="LOCK",
        diff={"project_id": str(project_id), "year": int(year), "month": int(month), "reason": reason},
        actor_name=actor,
    )
    logger.info(
        "Period locked",
        extra={"project_id": str(project_id), "year": int(year), "month": int(month), "reason": reason},
    )
    return lock


def unlock_period(
    db: Session,
    *,
    project_id: str,
    year: int,
    month: int,
    actor: str,
    reason: str,
) -> PeriodLock:
    if reason is None or not str(reason).strip():
        raise ValidationError("A reason is required to unlock a period")
    reason = str(reason).strip()

    lock = _upsert_lock(
        db,
        project_id=project_id,
        year=year,
        month=month,
        locked=False,
        actor=actor,
        reason=reason,
    )

    write_audit_log(
        db,
        entity_type="PeriodLock",
        entity_id=lock.id,
        action="UNLOCK",
        diff={"project_id": str(project_id), "year": int(year), "month": int(month), "reason": reason},
        actor_name=actor,
    )
    logger.info(
        "Period unlocked",
        extra={"project_id": str(project_id), "year": int(year), "month": int(month), "reason": reason},
    )
    return lock
