import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from app.core.errors import ValidationError
from app.models.enums import SnapshotType
from app.models.period_lock import PeriodLock
from app.models.snapshot import ProjectSituationSnapshot
from app.schemas.snapshot_payloads import RectificatifPayload
from app.services.audit_service import write_audit_log
from app.services.period_lock_service import lock_period, unlock_period, validate_period
from app.services.project_service import lock_project_row
from app.services.snapshot_service import build_at_month_snapshot, create_snapshot, latest_signed_snapshot

logger = logging.getLogger(__name__)

MONTH_CLOSE_REASON = "MONTH_CLOSE"
UNLOCK_AFTER_SIGNATURE = "UNLOCK_AFTER_SIGNATURE"


@dataclass(frozen=True)
class MonthCloseResult:
    snapshot: ProjectSituationSnapshot
    lock: PeriodLock


@dataclass(frozen=True)
class UnlockResult:
    lock: PeriodLock
    rectificatif_snapshot: Optional[ProjectSituationSnapshot]


def close_month(db: Session, *, project_id: str, year: int, month: int, actor: str) -> MonthCloseResult:
    """
    MONTH_END snapshot, then lock, then MONTH_CLOSE audit entry.

    The snapshot is persisted before the lock is taken: a locked period
    always has the record of what was locked in. Caller commits.
    """
    validate_period(year, month)
    project = lock_project_row(db, project_id)

    payload = build_at_month_snapshot(db, project.id, year, month)
    snapshot = create_snapshot(
        db,
        project_id=project.id,
        snapshot_type=SnapshotType.MONTH_END,
        year=year,
        month=month,
        computed_by=actor,
        payload=payload,
    )

    lock = lock_period(
        db,
        project_id=project.id,
        year=year,
        month=month,
        actor=actor,
        reason=MONTH_CLOSE_REASON,
    )

    write_audit_log(
        db,
        entity_type="ProjectSituationSnapshot",
        entity_id=snapshot.id,
        action="MONTH_CLOSE",
        diff={
            "project_id": project.id,
            "year": year,
            "month": month,
            "snapshot_id": snapshot.id,
            "lock_id": lock.id,
            "exceeded_sold": payload.alerts.exceeded_sold,
        },
        actor_name=actor,
    )

    if payload.alerts.exceeded_sold:
        logger.warning(
            "Month closed with sold days exceeded",
            extra={"project_id": project.id, "year": year, "month": month},
        )

    return MonthCloseResult(snapshot=snapshot, lock=lock)


def admin_unlock(
    db: Session,
    *,
    project_id: str,
    year: int,
    month: int,
    actor: str,
    reason: str,
) -> UnlockResult:
    """
    Unlock (reason mandatory). When the period already carries a signed
    bordereau, a RECTIFICATIF snapshot superseding the latest signed one marks
    that edits from now on correct a signed document.
    """
    if reason is None or not str(reason).strip():
        raise ValidationError("A reason is required to unlock a period")

    lock = unlock_period(db, project_id=project_id, year=year, month=month, actor=actor, reason=reason)

    rectificatif = None
    signed = latest_signed_snapshot(db, project_id, year, month)
    if signed is not None:
        rectificatif = create_snapshot(
            db,
            project_id=project_id,
            snapshot_type=SnapshotType.RECTIFICATIF,
            year=year,
            month=month,
            computed_by=actor,
            supersedes_snapshot_id=signed.id,
            payload=RectificatifPayload(
                reason=UNLOCK_AFTER_SIGNATURE,
                project_id=str(project_id),
                period_year=year,
                period_month=month,
                signed_snapshot_id=signed.id,
            ),
        )

    write_audit_log(
        db,
        entity_type="PeriodLock",
        entity_id=lock.id,
        action="ADMIN_UNLOCK",
        diff={
            "project_id": str(project_id),
            "year": year,
            "month": month,
            "reason": str(reason).strip(),
            "lock_id": lock.id,
            "rectificatif_snapshot_id": None if rectificatif is None else rectificatif.id,
        },
        actor_name=actor,
    )

    return UnlockResult(lock=lock, rectificatif_snapshot=rectificatif)
