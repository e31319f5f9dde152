from decimal import Decimal
from typing import Any, Iterable, Optional

from sqlalchemy.orm import Session

from app.core.errors import NotFoundError, ValidationError
from app.models.enums import DeliverableStatus, SnapshotType, TimeEntryType
from app.models.project import Project
from app.models.snapshot import ProjectSituationSnapshot
from app.schemas.snapshot_payloads import (
    PAYLOAD_KINDS_BY_SNAPSHOT_TYPE,
    AtSnapshotPayload,
    CategoryTotals,
    ForfaitProgressPayload,
    RemainingTotals,
    SnapshotAlerts,
    SnapshotSource,
    SoldTerms,
    encode_payload,
)
from app.services.audit_service import write_audit_log
from app.services.period_lock_service import validate_period
from app.services.project_service import get_project
from app.services.time_entry_service import HOURS_PER_DAY, list_cumulative, list_month

_ZERO = Decimal(0)


def _decimal(value: Any) -> Decimal:
    if value is None:
        return _ZERO
    return Decimal(str(value))


def _sum_hours(entries: Iterable[Any], entry_type: TimeEntryType) -> Decimal:
    return sum(
        (_decimal(e.hours) for e in entries if str(getattr(e.type, "value", e.type)) == entry_type.value),
        _ZERO,
    )


def _totals(entries: list[Any], rate_bo: Decimal, rate_site: Decimal) -> CategoryTotals:
    bo_hours = _sum_hours(entries, TimeEntryType.BO)
    site_hours = _sum_hours(entries, TimeEntryType.SITE)
    bo_days = bo_hours / HOURS_PER_DAY
    site_days = site_hours / HOURS_PER_DAY
    return CategoryTotals(
        bo_hours=bo_hours,
        site_hours=site_hours,
        bo_days=bo_days,
        site_days=site_days,
        amount=bo_days * rate_bo + site_days * rate_site,
    )


def compute_at_period_totals(
    project: Any,
    year: int,
    month: int,
    month_entries: Iterable[Any],
    cumulative_entries: Iterable[Any],
) -> AtSnapshotPayload:
    """
    Pure month/cumulative/remaining computation for an AT project.

    ``month_entries`` must be the entries of (year, month) and
    ``cumulative_entries`` every entry up to and including that month; the
    caller selects them (see build_at_month_snapshot). Entries need ``id``,
    ``type`` and ``hours``. Days are hours / 8 with no rounding; rounding
    belongs to presentation.
    """
    month_entries = list(month_entries)
    cumulative_entries = list(cumulative_entries)

    sold_bo = _decimal(project.at_days_sold_bo)
    sold_site = _decimal(project.at_days_sold_site)
    rate_bo = _decimal(project.at_daily_rate_bo)
    rate_site = _decimal(project.at_daily_rate_site)

    month_totals = _totals(month_entries, rate_bo, rate_site)
    cumulative = _totals(cumulative_entries, rate_bo, rate_site)

    remaining_bo = max(_ZERO, sold_bo - cumulative.bo_days)
    remaining_site = max(_ZERO, sold_site - cumulative.site_days)

    return AtSnapshotPayload(
        project_id=str(project.id),
        year=int(year),
        month=int(month),
        sold=SoldTerms(bo_days=sold_bo, site_days=sold_site, bo_rate=rate_bo, site_rate=rate_site),
        month_totals=month_totals,
        cumulative=cumulative,
        remaining=RemainingTotals(
            bo_days=remaining_bo,
            site_days=remaining_site,
            amount=remaining_bo * rate_bo + remaining_site * rate_site,
        ),
        alerts=SnapshotAlerts(
            exceeded_sold=cumulative.bo_days > sold_bo or cumulative.site_days > sold_site,
        ),
        source=SnapshotSource(
            project_id=str(project.id),
            year=int(year),
            month=int(month),
            time_entry_ids=[str(e.id) for e in month_entries if _decimal(e.hours) > 0],
        ),
    )


def compute_forfait_progress(project: Any, deliverables: Iterable[Any]) -> ForfaitProgressPayload:
    """Delivered = REMIS or VALIDE; a deliverable amount overrides order_amount * percentage."""
    deliverables = list(deliverables)
    order_amount = _decimal(project.order_amount)

    delivered_pct = _ZERO
    validated_pct = _ZERO
    delivered_amount = _ZERO

    for d in deliverables:
        status = str(getattr(d.status, "value", d.status))
        if status not in {DeliverableStatus.REMIS.value, DeliverableStatus.VALIDE.value}:
            continue
        pct = _decimal(d.percentage)
        delivered_pct += pct
        if status == DeliverableStatus.VALIDE.value:
            validated_pct += pct
        if d.amount is not None:
            delivered_amount += _decimal(d.amount)
        else:
            delivered_amount += order_amount * pct / Decimal(100)

    return ForfaitProgressPayload(
        project_id=str(project.id),
        order_amount=order_amount,
        delivered_percentage=delivered_pct,
        validated_percentage=validated_pct,
        delivered_amount=delivered_amount,
        remaining_amount=max(_ZERO, order_amount - delivered_amount),
        deliverable_ids=[str(d.id) for d in deliverables],
    )


def build_at_month_snapshot(db: Session, project_id: str, year: int, month: int) -> AtSnapshotPayload:
    validate_period(year, month)
    project = get_project(db, project_id)

    month_entries = list_month(db, project.id, year, month, include_zero=False)
    cumulative_entries = list_cumulative(db, project.id, year, month)

    return compute_at_period_totals(project, year, month, month_entries, cumulative_entries)


def create_snapshot(
    db: Session,
    *,
    project_id: str,
    snapshot_type: SnapshotType,
    computed_by: str,
    payload: Any,
    year: Optional[int] = None,
    month: Optional[int] = None,
    source_ref: Optional[str] = None,
    supersedes_snapshot_id: Optional[str] = None,
) -> ProjectSituationSnapshot:
    """
    Single write path for snapshots: appends one row, never updates.

    Only checks that the project exists and that the payload kind fits the
    snapshot type; everything else is stored verbatim.
    """
    if db.query(Project.id).filter(Project.id == str(project_id)).first() is None:
        raise NotFoundError(f"Project not found: {project_id}")

    snapshot_type = SnapshotType(snapshot_type)
    if payload.kind not in PAYLOAD_KINDS_BY_SNAPSHOT_TYPE[snapshot_type]:
        raise ValidationError(f"{payload.kind} payload cannot back a {snapshot_type.value} snapshot")

    snapshot = ProjectSituationSnapshot(
        project_id=str(project_id),
        type=snapshot_type.value,
        year=year,
        month=month,
        computed_by=computed_by,
        source_ref=source_ref,
        data=encode_payload(payload),
        supersedes_snapshot_id=supersedes_snapshot_id,
    )
    db.add(snapshot)
    db.flush()
    return snapshot


def create_manual_snapshot(
    db: Session, *, project_id: str, year: int, month: int, actor: str
) -> ProjectSituationSnapshot:
    payload = build_at_month_snapshot(db, project_id, year, month)
    snapshot = create_snapshot(
        db,
        project_id=project_id,
        snapshot_type=SnapshotType.MANUAL,
        year=year,
        month=month,
        computed_by=actor,
        payload=payload,
    )

    write_audit_log(
        db,
        entity_type="ProjectSituationSnapshot",
        entity_id=snapshot.id,
        action="SNAPSHOT",
        diff={"project_id": str(project_id), "year": year, "month": month, "type": snapshot.type},
        actor_name=actor,
    )
    return snapshot


def list_snapshots(
    db: Session,
    project_id: str,
    *,
    snapshot_type: Optional[SnapshotType] = None,
) -> list[ProjectSituationSnapshot]:
    q = db.query(ProjectSituationSnapshot).filter(ProjectSituationSnapshot.project_id == str(project_id))
    if snapshot_type is not None:
        q = q.filter(ProjectSituationSnapshot.type == SnapshotType(snapshot_type).value)
    return q.order_by(ProjectSituationSnapshot.computed_at.desc()).all()


def latest_signed_snapshot(
    db: Session,
    project_id: str,
    year: Optional[int],
    month: Optional[int],
    *,
    bordereau_id: Optional[str] = None,
) -> Optional[ProjectSituationSnapshot]:
    """
    Most recent BORDEREAU_SIGNED snapshot for the period.

    With ``bordereau_id`` only that bordereau's signature counts, so a BA
    rectificatif never supersedes the BL signature of the same month.
    """
    q = db.query(ProjectSituationSnapshot).filter(
        ProjectSituationSnapshot.project_id == str(project_id),
        ProjectSituationSnapshot.type == SnapshotType.BORDEREAU_SIGNED.value,
    )
    q = q.filter(
        ProjectSituationSnapshot.year.is_(None) if year is None else ProjectSituationSnapshot.year == int(year)
    )
    q = q.filter(
        ProjectSituationSnapshot.month.is_(None) if month is None else ProjectSituationSnapshot.month == int(month)
    )
    q = q.order_by(ProjectSituationSnapshot.computed_at.desc())
    if bordereau_id is None:
        return q.first()

    # bordereau_id lives in the JSON payload; filter here to stay dialect-neutral
    for snapshot in q.all():
        if (snapshot.data or {}).get("bordereau_id") == str(bordereau_id):
            return snapshot
    return None
