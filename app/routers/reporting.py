from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.database import get_db
from app.deps.auth import CurrentUser, require_auth
from app.models.project import Project
from app.services.reporting_service import production_by_month

router = APIRouter(prefix="/reporting", tags=["Reporting"])


@router.get("/production")
def production_endpoint(
    year: Optional[int] = None,
    user: CurrentUser = Depends(require_auth),
    db: Session = Depends(get_db),
):
    if year is None:
        year = datetime.now(timezone.utc).year

    project_ids = None
    if not user.is_admin:
        project_ids = [
            pid
            for (pid,) in db.query(Project.id).filter(Project.project_manager_email == (user.email or "")).all()
        ]

    return production_by_month(db, year=year, project_ids=project_ids)
