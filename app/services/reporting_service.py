from __future__ import annotations

from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterable, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.models.deliverable import Deliverable
from app.models.enums import DeliverableStatus, ProjectType, TimeEntryType
from app.models.project import Project
from app.models.time_entry import TimeEntry
from app.services.time_entry_service import HOURS_PER_DAY

MONTHS = 12
_CENT = Decimal("0.01")
_ZERO = Decimal(0)


def _dec(value: Any) -> Decimal:
    return _ZERO if value is None else Decimal(str(value))


def production_by_month(
    db: Session,
    *,
    year: int,
    project_ids: Optional[Iterable[str]] = None,
) -> dict[str, Any]:
    """
    Read-only reporting query.

    AT production: hours / 8 * daily rate of the entry's category, bucketed by
    the entry month. FORFAIT production: REMIS/VALIDE deliverables bucketed by
    submission month, valued at their own amount or order_amount * percentage.
    ``project_ids=None`` means every project.
    """
    pq = db.query(Project)
    if project_ids is not None:
        ids = [str(p) for p in project_ids]
        if not ids:
            return _empty(year)
        pq = pq.filter(Project.id.in_(ids))
    projects = {p.id: p for p in pq.all()}
    if not projects:
        return _empty(year)

    at = [_ZERO] * MONTHS
    forfait = [_ZERO] * MONTHS

    hour_rows = (
        db.query(
            TimeEntry.project_id.label("project_id"),
            TimeEntry.month.label("month"),
            TimeEntry.type.label("type"),
            func.coalesce(func.sum(TimeEntry.hours), 0).label("hours"),
        )
        .filter(TimeEntry.project_id.in_(list(projects)))
        .filter(TimeEntry.year == int(year))
        .group_by(TimeEntry.project_id, TimeEntry.month, TimeEntry.type)
        .all()
    )
    for r in hour_rows:
        project = projects[r.project_id]
        if project.type != ProjectType.AT.value:
            continue
        rate = project.at_daily_rate_bo if r.type == TimeEntryType.BO.value else project.at_daily_rate_site
        at[int(r.month) - 1] += _dec(r.hours) / HOURS_PER_DAY * _dec(rate)

    deliverables = (
        db.query(Deliverable)
        .filter(Deliverable.project_id.in_(list(projects)))
        .filter(Deliverable.status.in_([DeliverableStatus.REMIS.value, DeliverableStatus.VALIDE.value]))
        .filter(Deliverable.submission_date >= date(year, 1, 1))
        .filter(Deliverable.submission_date < date(year + 1, 1, 1))
        .all()
    )
    for d in deliverables:
        project = projects[d.project_id]
        if project.type != ProjectType.FORFAIT.value:
            continue
        if d.amount is not None:
            amount = _dec(d.amount)
        else:
            amount = _dec(project.order_amount) * _dec(d.percentage) / 100
        forfait[d.submission_date.month - 1] += amount

    return {
        "year": int(year),
        "months": [
            {
                "month": i + 1,
                "at": at[i].quantize(_CENT, rounding=ROUND_HALF_UP),
                "forfait": forfait[i].quantize(_CENT, rounding=ROUND_HALF_UP),
            }
            for i in range(MONTHS)
        ],
    }


def _empty(year: int) -> dict[str, Any]:
    return {
        "year": int(year),
        "months": [{"month": i + 1, "at": _ZERO.quantize(_CENT), "forfait": _ZERO.quantize(_CENT)} for i in range(MONTHS)],
    }
