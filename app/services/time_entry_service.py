import calendar
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Optional, Union

from sqlalchemy import and_, or_
from sqlalchemy.orm import Session

from app.core.errors import ValidationError
from app.models.enums import TimeEntryType
from app.models.time_entry import TimeEntry
from app.services.audit_service import write_audit_log
from app.services.period_lock_service import assert_not_locked, validate_period
from app.services.project_service import lock_project_row

HOURS_PER_DAY = Decimal(8)
MAX_HOURS_PER_ENTRY = Decimal(8)
HOURS_QUANTUM = Decimal("0.01")


def normalize_hours(value: Union[Decimal, int, float, str]) -> Decimal:
    """Round to hundredths (half-up) and enforce the 0..8 range."""
    try:
        hours = Decimal(str(value)).quantize(HOURS_QUANTUM, rounding=ROUND_HALF_UP)
    except (InvalidOperation, ValueError) as exc:
        raise ValidationError(f"Invalid hours value: {value!r}") from exc

    if hours < 0 or hours > MAX_HOURS_PER_ENTRY:
        raise ValidationError(f"Hours must be between 0 and {MAX_HOURS_PER_ENTRY}, got {hours}")
    return hours


def hours_to_days(hours: Union[Decimal, int]) -> Decimal:
    return Decimal(hours) / HOURS_PER_DAY


def _coerce_type(entry_type: Union[TimeEntryType, str]) -> str:
    try:
        return TimeEntryType(entry_type).value
    except ValueError as exc:
        raise ValidationError(f"Unknown time entry type: {entry_type}") from exc


def _validate_slot(year: int, month: int, day: int, hour_slot: int) -> None:
    validate_period(year, month)

    days_in_month = calendar.monthrange(int(year), int(month))[1]
    if not 1 <= int(day) <= days_in_month:
        raise ValidationError(f"Day {day} does not exist in {year}-{month:02d}")

    if int(hour_slot) < 0:
        raise ValidationError("hour_slot must be >= 0")


def upsert_time_entry(
    db: Session,
    *,
    project_id: str,
    year: int,
    month: int,
    day: int,
    entry_type: Union[TimeEntryType, str],
    hours: Union[Decimal, int, float, str],
    actor: str,
    hour_slot: int = 0,
    comment: Optional[str] = None,
) -> TimeEntry:
    """
    Create or update the entry identified by
    (project, year, month, day, type, hour_slot).

    hours=0 keeps the row with zero hours (readers filter hours > 0), so the
    audit trail retains the fact that a value was set then cleared.

    Raises PeriodLockedError unchanged when the period is locked, before any
    other input check. The project row is locked first, so a concurrent month
    close cannot slip in between the lock check and the write.
    """
    validate_period(year, month)
    lock_project_row(db, project_id)
    assert_not_locked(db, project_id, year, month)

    entry_type = _coerce_type(entry_type)
    _validate_slot(year, month, day, hour_slot)
    normalized = normalize_hours(hours)

    entry = (
        db.query(TimeEntry)
        .filter(
            TimeEntry.project_id == str(project_id),
            TimeEntry.year == int(year),
            TimeEntry.month == int(month),
            TimeEntry.day == int(day),
            TimeEntry.type == entry_type,
            TimeEntry.hour_slot == int(hour_slot),
        )
        .one_or_none()
    )

    previous_hours = None
    if entry is None:
        entry = TimeEntry(
            project_id=str(project_id),
            year=int(year),
            month=int(month),
            day=int(day),
            type=entry_type,
            hour_slot=int(hour_slot),
        )
        db.add(entry)
    else:
        previous_hours = entry.hours

    entry.hours = normalized
    if comment is not None:
        entry.comment = comment
    db.flush()

    write_audit_log(
        db,
        entity_type="TimeEntry",
        entity_id=entry.id,
        action="UPSERT",
        diff={
            "project_id": str(project_id),
            "year": int(year),
            "month": int(month),
            "day": int(day),
            "type": entry_type,
            "hour_slot": int(hour_slot),
            "hours": normalized,
            "previous_hours": previous_hours,
        },
        actor_name=actor,
    )
    return entry


def list_month(
    db: Session,
    project_id: str,
    year: int,
    month: int,
    *,
    include_zero: bool = True,
) -> list[TimeEntry]:
    q = db.query(TimeEntry).filter(
        TimeEntry.project_id == str(project_id),
        TimeEntry.year == int(year),
        TimeEntry.month == int(month),
    )
    if not include_zero:
        q = q.filter(TimeEntry.hours > 0)

    return q.order_by(TimeEntry.day.asc(), TimeEntry.type.asc(), TimeEntry.hour_slot.asc()).all()


def list_all(db: Session, project_id: str) -> list[TimeEntry]:
    return (
        db.query(TimeEntry)
        .filter(TimeEntry.project_id == str(project_id))
        .order_by(
            TimeEntry.year.asc(),
            TimeEntry.month.asc(),
            TimeEntry.day.asc(),
            TimeEntry.type.asc(),
            TimeEntry.hour_slot.asc(),
        )
        .all()
    )


def list_cumulative(db: Session, project_id: str, year: int, month: int) -> list[TimeEntry]:
    """Entries up to and including (year, month)."""
    return (
        db.query(TimeEntry)
        .filter(TimeEntry.project_id == str(project_id))
        .filter(
            or_(
                TimeEntry.year < int(year),
                and_(TimeEntry.year == int(year), TimeEntry.month <= int(month)),
            )
        )
        .order_by(TimeEntry.year.asc(), TimeEntry.month.asc(), TimeEntry.day.asc())
        .all()
    )
