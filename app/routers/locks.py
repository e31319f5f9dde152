from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.core.authorization import Role, ensure_project_access, require_role
from app.database import get_db
from app.deps.auth import CurrentUser, require_auth
from app.schemas.billing import PeriodLockResponse, SnapshotResponse, UnlockRequest, UnlockResponse
from app.services import closure_service, period_lock_service
from app.services.project_service import get_project

router = APIRouter(prefix="/locks", tags=["Locks"])


@router.get("", response_model=PeriodLockResponse)
def get_lock_state(
    project_id: str,
    year: int,
    month: int = Query(ge=1, le=12),
    user: CurrentUser = Depends(require_auth),
    db: Session = Depends(get_db),
):
    ensure_project_access(user, get_project(db, project_id))
    lock = period_lock_service.get_lock(db, project_id, year, month)
    if lock is None:
        return PeriodLockResponse(project_id=project_id, year=year, month=month, locked=False)
    return lock


@router.post("/unlock", response_model=UnlockResponse)
def admin_unlock_endpoint(
    payload: UnlockRequest,
    user: CurrentUser = Depends(require_role(Role.ADMIN)),
    db: Session = Depends(get_db),
):
    try:
        result = closure_service.admin_unlock(
            db,
            project_id=payload.project_id,
            year=payload.year,
            month=payload.month,
            actor=user.actor,
            reason=payload.reason,
        )
        db.commit()
        return UnlockResponse(
            lock=PeriodLockResponse.model_validate(result.lock),
            rectificatif_snapshot=(
                None
                if result.rectificatif_snapshot is None
                else SnapshotResponse.model_validate(result.rectificatif_snapshot)
            ),
        )
    except Exception:
        db.rollback()
        raise
