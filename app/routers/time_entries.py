from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.core.authorization import ensure_project_access
from app.database import get_db
from app.deps.auth import CurrentUser, require_auth
from app.schemas.billing import TimeEntryResponse, TimeEntryUpsert
from app.services import time_entry_service
from app.services.project_service import get_project

router = APIRouter(
    prefix="/time_entries",
    tags=["Time Entries"],
)


@router.get("", response_model=list[TimeEntryResponse])
def list_time_entries(
    project_id: str,
    year: int,
    month: int = Query(ge=1, le=12),
    include_zero: bool = False,
    user: CurrentUser = Depends(require_auth),
    db: Session = Depends(get_db),
):
    ensure_project_access(user, get_project(db, project_id))
    return time_entry_service.list_month(db, project_id, year, month, include_zero=include_zero)


@router.put("", response_model=TimeEntryResponse)
def upsert_time_entry_endpoint(
    payload: TimeEntryUpsert,
    user: CurrentUser = Depends(require_auth),
    db: Session = Depends(get_db),
):
    try:
        ensure_project_access(user, get_project(db, payload.project_id))
        entry = time_entry_service.upsert_time_entry(
            db,
            project_id=payload.project_id,
            year=payload.year,
            month=payload.month,
            day=payload.day,
            entry_type=payload.type,
            hours=payload.hours,
            hour_slot=payload.hour_slot,
            comment=payload.comment,
            actor=user.actor,
        )
        db.commit()
        return entry
    except Exception:
        db.rollback()
        raise
