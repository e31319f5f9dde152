from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.authorization import Role, ensure_project_access, require_role
from app.core.errors import NotFoundError
from app.database import get_db
from app.deps.auth import CurrentUser, require_auth
from app.models.deliverable import Deliverable
from app.models.project import Project
from app.schemas.project import (
    ClientCreate,
    ClientResponse,
    ContactCreate,
    ContactResponse,
    DeliverableCreate,
    DeliverableResponse,
    DeliverableStatusUpdate,
    ProjectCreate,
    ProjectResponse,
    ProjectStatusUpdate,
)
from app.services import project_service

router = APIRouter(tags=["Projects"])


@router.post("/clients", response_model=ClientResponse, status_code=201)
def create_client_endpoint(
    payload: ClientCreate,
    user: CurrentUser = Depends(require_role(Role.ADMIN)),
    db: Session = Depends(get_db),
):
    try:
        client = project_service.create_client(db, payload=payload, actor=user.actor)
        db.commit()
        return client
    except Exception:
        db.rollback()
        raise


@router.post("/contacts", response_model=ContactResponse, status_code=201)
def create_contact_endpoint(
    payload: ContactCreate,
    user: CurrentUser = Depends(require_role(Role.ADMIN)),
    db: Session = Depends(get_db),
):
    try:
        contact = project_service.create_contact(db, payload=payload, actor=user.actor)
        db.commit()
        return contact
    except Exception:
        db.rollback()
        raise


@router.get("/projects", response_model=list[ProjectResponse])
def list_projects(
    user: CurrentUser = Depends(require_auth),
    db: Session = Depends(get_db),
):
    q = db.query(Project)
    if not user.is_admin:
        q = q.filter(Project.project_manager_email == (user.email or ""))
    return q.order_by(Project.project_number.asc()).all()


@router.post("/projects", response_model=ProjectResponse, status_code=201)
def create_project_endpoint(
    payload: ProjectCreate,
    user: CurrentUser = Depends(require_role(Role.ADMIN)),
    db: Session = Depends(get_db),
):
    try:
        project = project_service.create_project(db, payload=payload, actor=user.actor)
        db.commit()
        return project
    except Exception:
        db.rollback()
        raise


@router.get("/projects/{project_id}", response_model=ProjectResponse)
def get_project_endpoint(
    project_id: str,
    user: CurrentUser = Depends(require_auth),
    db: Session = Depends(get_db),
):
    project = project_service.get_project(db, project_id)
    ensure_project_access(user, project)
    return project


@router.patch("/projects/{project_id}/status", response_model=ProjectResponse)
def update_project_status_endpoint(
    project_id: str,
    payload: ProjectStatusUpdate,
    user: CurrentUser = Depends(require_auth),
    db: Session = Depends(get_db),
):
    try:
        ensure_project_access(user, project_service.get_project(db, project_id))
        project = project_service.update_project_status(
            db, project_id=project_id, status=payload.status, actor=user.actor
        )
        db.commit()
        return project
    except Exception:
        db.rollback()
        raise


@router.delete("/projects/{project_id}", status_code=204)
def delete_project_endpoint(
    project_id: str,
    user: CurrentUser = Depends(require_role(Role.ADMIN)),
    db: Session = Depends(get_db),
):
    try:
        project_service.delete_project(db, project_id=project_id, actor=user.actor)
        db.commit()
    except Exception:
        db.rollback()
        raise


@router.get("/projects/{project_id}/deliverables", response_model=list[DeliverableResponse])
def list_deliverables_endpoint(
    project_id: str,
    user: CurrentUser = Depends(require_auth),
    db: Session = Depends(get_db),
):
    ensure_project_access(user, project_service.get_project(db, project_id))
    return project_service.list_deliverables(db, project_id)


@router.post("/projects/{project_id}/deliverables", response_model=DeliverableResponse, status_code=201)
def add_deliverable_endpoint(
    project_id: str,
    payload: DeliverableCreate,
    user: CurrentUser = Depends(require_auth),
    db: Session = Depends(get_db),
):
    try:
        ensure_project_access(user, project_service.get_project(db, project_id))
        deliverable = project_service.add_deliverable(db, project_id=project_id, payload=payload, actor=user.actor)
        db.commit()
        return deliverable
    except Exception:
        db.rollback()
        raise


@router.patch("/deliverables/{deliverable_id}/status", response_model=DeliverableResponse)
def update_deliverable_status_endpoint(
    deliverable_id: str,
    payload: DeliverableStatusUpdate,
    user: CurrentUser = Depends(require_auth),
    db: Session = Depends(get_db),
):
    try:
        deliverable = db.get(Deliverable, deliverable_id)
        if deliverable is None:
            raise NotFoundError(f"Deliverable not found: {deliverable_id}")
        ensure_project_access(user, project_service.get_project(db, deliverable.project_id))

        deliverable = project_service.update_deliverable_status(
            db,
            deliverable_id=deliverable_id,
            status=payload.status,
            submission_date=payload.submission_date,
            actor=user.actor,
        )
        db.commit()
        return deliverable
    except Exception:
        db.rollback()
        raise
