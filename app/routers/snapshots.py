from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.authorization import ensure_project_access
from app.database import get_db
from app.deps.auth import CurrentUser, require_auth
from app.models.enums import SnapshotType
from app.schemas.billing import PeriodRequest, SnapshotResponse
from app.services import snapshot_service
from app.services.project_service import get_project

router = APIRouter(prefix="/snapshots", tags=["Snapshots"])


@router.get("", response_model=list[SnapshotResponse])
def list_snapshots_endpoint(
    project_id: str,
    type: Optional[SnapshotType] = None,
    user: CurrentUser = Depends(require_auth),
    db: Session = Depends(get_db),
):
    ensure_project_access(user, get_project(db, project_id))
    return snapshot_service.list_snapshots(db, project_id, snapshot_type=type)


@router.post("", response_model=SnapshotResponse, status_code=201)
def create_manual_snapshot_endpoint(
    payload: PeriodRequest,
    user: CurrentUser = Depends(require_auth),
    db: Session = Depends(get_db),
):
    try:
        ensure_project_access(user, get_project(db, payload.project_id))
        snapshot = snapshot_service.create_manual_snapshot(
            db,
            project_id=payload.project_id,
            year=payload.year,
            month=payload.month,
            actor=user.actor,
        )
        db.commit()
        return snapshot
    except Exception:
        db.rollback()
        raise
