from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.authorization import ensure_project_access
from app.database import get_db
from app.deps.auth import CurrentUser, require_auth
from app.schemas.billing import MonthCloseResponse, PeriodLockResponse, PeriodRequest, SnapshotResponse
from app.services import closure_service
from app.services.project_service import get_project

router = APIRouter(prefix="/closures", tags=["Closures"])


@router.post("/close_month", response_model=MonthCloseResponse)
def close_month_endpoint(
    payload: PeriodRequest,
    user: CurrentUser = Depends(require_auth),
    db: Session = Depends(get_db),
):
    try:
        ensure_project_access(user, get_project(db, payload.project_id))
        result = closure_service.close_month(
            db,
            project_id=payload.project_id,
            year=payload.year,
            month=payload.month,
            actor=user.actor,
        )
        db.commit()
        return MonthCloseResponse(
            snapshot=SnapshotResponse.model_validate(result.snapshot),
            lock=PeriodLockResponse.model_validate(result.lock),
        )
    except Exception:
        db.rollback()
        raise
