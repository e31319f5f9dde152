import logging
from dataclasses import dataclass
from typing import Optional, Union

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.errors import NotFoundError, ValidationError
from app.database import utcnow
from app.models.bordereau import Bordereau, BordereauVersion
from app.models.enums import BordereauStatus, BordereauType, ProjectType, SnapshotType
from app.models.file_object import FileObject
from app.models.project import Project
from app.models.snapshot import ProjectSituationSnapshot
from app.schemas.snapshot_payloads import (
    BordereauGeneratedPayload,
    RectificatifPayload,
    SignedPayload,
    StoredFileRef,
)
from app.services.audit_service import write_audit_log
from app.services.file_store import StoredFile
from app.services.period_lock_service import validate_period
from app.services.project_service import list_deliverables, lock_project_row
from app.services.snapshot_service import (
    build_at_month_snapshot,
    compute_forfait_progress,
    create_snapshot,
    latest_signed_snapshot,
)

logger = logging.getLogger(__name__)

LINEAGE_TYPES = {BordereauType.BA.value, BordereauType.BL.value}


@dataclass(frozen=True)
class GenerationResult:
    bordereau: Bordereau
    version: BordereauVersion
    snapshot: ProjectSituationSnapshot
    file: FileObject
    rectificatif: bool


@dataclass(frozen=True)
class SigningResult:
    bordereau: Bordereau
    snapshot: Optional[ProjectSituationSnapshot]
    already_signed: bool


def _lineage(bordereau_type: Union[BordereauType, str]) -> str:
    value = getattr(bordereau_type, "value", bordereau_type)
    if value not in LINEAGE_TYPES:
        raise ValidationError(f"Bordereau type must be BA or BL, got {value}")
    return value


def _validate_optional_period(period_year: Optional[int], period_month: Optional[int]) -> None:
    if (period_year is None) != (period_month is None):
        raise ValidationError("period_year and period_month must be given together")
    if period_year is not None:
        validate_period(period_year, period_month)


def get_bordereau(db: Session, bordereau_id: str, *, for_update: bool = False) -> Bordereau:
    q = db.query(Bordereau).filter(Bordereau.id == str(bordereau_id))
    if for_update:
        q = q.with_for_update()
    bordereau = q.one_or_none()
    if bordereau is None:
        raise NotFoundError(f"Bordereau not found: {bordereau_id}")
    return bordereau


def find_live_bordereau(
    db: Session,
    project_id: str,
    base_type: str,
    period_year: Optional[int],
    period_month: Optional[int],
) -> Optional[Bordereau]:
    q = db.query(Bordereau).filter(
        Bordereau.project_id == str(project_id),
        Bordereau.base_type == base_type,
        Bordereau.is_live.is_(True),
    )
    q = q.filter(Bordereau.period_year.is_(None) if period_year is None else Bordereau.period_year == int(period_year))
    q = q.filter(
        Bordereau.period_month.is_(None) if period_month is None else Bordereau.period_month == int(period_month)
    )
    return q.one_or_none()


def list_bordereaux(db: Session, project_id: str) -> list[Bordereau]:
    return (
        db.query(Bordereau)
        .filter(Bordereau.project_id == str(project_id))
        .order_by(Bordereau.created_at.desc())
        .all()
    )


def latest_version(db: Session, bordereau_id: str) -> Optional[BordereauVersion]:
    return (
        db.query(BordereauVersion)
        .filter(BordereauVersion.bordereau_id == str(bordereau_id))
        .order_by(BordereauVersion.version_number.desc())
        .first()
    )


def _next_version_number(db: Session, bordereau_id: str) -> int:
    current = (
        db.query(func.max(BordereauVersion.version_number))
        .filter(BordereauVersion.bordereau_id == str(bordereau_id))
        .scalar()
    )
    return int(current or 0) + 1


def _compute_situation(db: Session, project: Project, period_year: Optional[int], period_month: Optional[int]):
    if project.type == ProjectType.FORFAIT.value:
        return compute_forfait_progress(project, list_deliverables(db, project.id))
    if period_year is None:
        return None
    return build_at_month_snapshot(db, project.id, period_year, period_month)


def _record_file(db: Session, rendered: StoredFile) -> FileObject:
    row = FileObject(
        storage_key=rendered.storage_key,
        file_name=rendered.file_name,
        content_type=rendered.content_type,
        size=rendered.size,
        checksum=rendered.checksum,
    )
    db.add(row)
    db.flush()
    return row


def _file_ref(rendered: StoredFile) -> StoredFileRef:
    return StoredFileRef(
        storage_key=rendered.storage_key,
        file_name=rendered.file_name,
        content_type=rendered.content_type,
        size=rendered.size,
        checksum=rendered.checksum,
    )


def generate(
    db: Session,
    *,
    project_id: str,
    bordereau_type: Union[BordereauType, str],
    actor: str,
    rendered: StoredFile,
    period_year: Optional[int] = None,
    period_month: Optional[int] = None,
) -> GenerationResult:
    """
    Record a freshly rendered document for (project, type, period).

    - no live bordereau: create one (GENERATED, version 1)
    - live one still GENERATED: append version max+1 to it
    - live one SIGNED: leave it untouched except for retiring its live flag,
      and open a new RECTIFICATIF bordereau (version 1) whose snapshot
      supersedes the latest BORDEREAU_SIGNED snapshot of the period

    Write order is snapshot, file record, bordereau/version, audit entry, all
    inside the caller's transaction. The project row lock serializes the
    lookup and version numbering per project.
    """
    base_type = _lineage(bordereau_type)
    _validate_optional_period(period_year, period_month)

    project = lock_project_row(db, project_id)
    existing = find_live_bordereau(db, project.id, base_type, period_year, period_month)
    is_rectificatif = existing is not None and existing.status == BordereauStatus.SIGNED.value

    situation = _compute_situation(db, project, period_year, period_month)

    if is_rectificatif:
        signed_snapshot = latest_signed_snapshot(
            db, project.id, period_year, period_month, bordereau_id=existing.id
        )
        signed_snapshot_id = None if signed_snapshot is None else signed_snapshot.id
        snapshot = create_snapshot(
            db,
            project_id=project.id,
            snapshot_type=SnapshotType.RECTIFICATIF,
            year=period_year,
            month=period_month,
            computed_by=actor,
            supersedes_snapshot_id=signed_snapshot_id,
            payload=RectificatifPayload(
                reason="RECTIFICATIF_BORDEREAU",
                project_id=project.id,
                period_year=period_year,
                period_month=period_month,
                signed_snapshot_id=signed_snapshot_id,
                bordereau_type=base_type,
                file=_file_ref(rendered),
                situation=situation,
            ),
        )
    else:
        snapshot = create_snapshot(
            db,
            project_id=project.id,
            snapshot_type=SnapshotType.BORDEREAU_GENERATED,
            year=period_year,
            month=period_month,
            computed_by=actor,
            payload=BordereauGeneratedPayload(
                project_id=project.id,
                bordereau_type=base_type,
                period_year=period_year,
                period_month=period_month,
                file=_file_ref(rendered),
                situation=situation,
            ),
        )

    file_row = _record_file(db, rendered)

    if existing is None or is_rectificatif:
        if is_rectificatif:
            # retire first so the live-period unique index never sees two live rows
            existing.is_live = False
            db.flush()

        bordereau = Bordereau(
            project_id=project.id,
            type=BordereauType.RECTIFICATIF.value if is_rectificatif else base_type,
            base_type=base_type,
            status=BordereauStatus.GENERATED.value,
            period_year=period_year,
            period_month=period_month,
            snapshot_id=snapshot.id,
            is_live=True,
            created_by=actor,
        )
        db.add(bordereau)
        db.flush()
        version_number = 1
    else:
        bordereau = existing
        bordereau.snapshot_id = snapshot.id
        version_number = _next_version_number(db, bordereau.id)

    version = BordereauVersion(
        bordereau_id=bordereau.id,
        version_number=version_number,
        file_id=file_row.id,
        snapshot_id=snapshot.id,
        generated_by=actor,
    )
    db.add(version)
    db.flush()

    write_audit_log(
        db,
        entity_type="Bordereau",
        entity_id=bordereau.id,
        action="GENERATE",
        diff={
            "project_id": project.id,
            "snapshot_id": snapshot.id,
            "file_id": file_row.id,
            "version_id": version.id,
            "version_number": version_number,
            "rectificatif": is_rectificatif,
            "superseded_bordereau_id": existing.id if is_rectificatif else None,
        },
        actor_name=actor,
    )

    logger.info(
        "Bordereau generated",
        extra={
            "bordereau_id": bordereau.id,
            "project_id": project.id,
            "version_number": version_number,
            "rectificatif": is_rectificatif,
        },
    )

    return GenerationResult(
        bordereau=bordereau,
        version=version,
        snapshot=snapshot,
        file=file_row,
        rectificatif=is_rectificatif,
    )


def mark_signed(
    db: Session,
    *,
    bordereau_id: str,
    actor: str,
    source_ref: Optional[str],
    signed_file: Optional[StoredFile] = None,
    audit_trail_file: Optional[StoredFile] = None,
) -> SigningResult:
    """
    GENERATED -> SIGNED, recording a BORDEREAU_SIGNED snapshot and one SIGNED
    audit entry.

    A bordereau that is already SIGNED is returned untouched with
    already_signed=True: no snapshot, no file record, no audit entry. The row
    is read FOR UPDATE so duplicate deliveries serialize on it.
    """
    bordereau = get_bordereau(db, bordereau_id, for_update=True)

    if bordereau.status == BordereauStatus.SIGNED.value:
        logger.info(
            "Bordereau already signed; ignoring signature event",
            extra={"bordereau_id": bordereau.id, "source_ref": source_ref},
        )
        return SigningResult(bordereau=bordereau, snapshot=None, already_signed=True)

    if signed_file is not None:
        bordereau.signed_file_id = _record_file(db, signed_file).id
    if audit_trail_file is not None:
        bordereau.audit_trail_file_id = _record_file(db, audit_trail_file).id

    bordereau.status = BordereauStatus.SIGNED.value
    bordereau.signed_at = utcnow()
    db.flush()

    snapshot = create_snapshot(
        db,
        project_id=bordereau.project_id,
        snapshot_type=SnapshotType.BORDEREAU_SIGNED,
        year=bordereau.period_year,
        month=bordereau.period_month,
        computed_by=actor,
        source_ref=source_ref,
        payload=SignedPayload(
            bordereau_id=bordereau.id,
            source_ref=source_ref,
            signed_file_id=bordereau.signed_file_id,
            audit_trail_file_id=bordereau.audit_trail_file_id,
        ),
    )

    write_audit_log(
        db,
        entity_type="Bordereau",
        entity_id=bordereau.id,
        action="SIGNED",
        diff={
            "snapshot_id": snapshot.id,
            "source_ref": source_ref,
            "signed_file_id": bordereau.signed_file_id,
            "audit_trail_file_id": bordereau.audit_trail_file_id,
        },
        actor_name=actor,
    )

    return SigningResult(bordereau=bordereau, snapshot=snapshot, already_signed=False)
