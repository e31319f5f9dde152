import re
from datetime import date
from typing import Optional

from sqlalchemy.orm import Session

from app.core.errors import ConflictError, NotFoundError, ValidationError
from app.models.bordereau import Bordereau
from app.models.deliverable import Deliverable
from app.models.enums import DeliverableStatus, ProjectStatus, ProjectType
from app.models.period_lock import PeriodLock
from app.models.project import Client, Contact, Project
from app.models.snapshot import ProjectSituationSnapshot
from app.models.time_entry import TimeEntry
from app.schemas.project import ClientCreate, ContactCreate, DeliverableCreate, ProjectCreate
from app.services.audit_service import write_audit_log

_SIREN_RE = re.compile(r"^\d{9}$")
_SIRET_RE = re.compile(r"^\d{14}$")


def get_project(db: Session, project_id: str) -> Project:
    project = db.query(Project).filter(Project.id == str(project_id)).one_or_none()
    if project is None:
        raise NotFoundError(f"Project not found: {project_id}")
    return project


def lock_project_row(db: Session, project_id: str) -> Project:
    """
    SELECT ... FOR UPDATE on the project row.

    Every mutating core operation takes this first, which serializes lock
    checks, time-entry writes and bordereau version assignment per project
    for the rest of the caller's transaction.
    """
    project = (
        db.query(Project)
        .filter(Project.id == str(project_id))
        .with_for_update()
        .one_or_none()
    )
    if project is None:
        raise NotFoundError(f"Project not found: {project_id}")
    return project


def _normalize_identifier(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    cleaned = value.replace(" ", "")
    return cleaned or None


def create_client(db: Session, *, payload: ClientCreate, actor: str) -> Client:
    siren = _normalize_identifier(payload.siren)
    siret = _normalize_identifier(payload.siret)

    if siren is not None and not _SIREN_RE.match(siren):
        raise ValidationError("SIREN must be 9 digits")
    if siret is not None and not _SIRET_RE.match(siret):
        raise ValidationError("SIRET must be 14 digits")
    if siren is not None and siret is not None and not siret.startswith(siren):
        raise ValidationError("SIRET must start with the SIREN")

    client = Client(
        name=payload.name,
        address=payload.address,
        siren=siren,
        siret=siret,
        tva_intra=payload.tva_intra,
    )
    db.add(client)
    db.flush()

    write_audit_log(
        db,
        entity_type="Client",
        entity_id=client.id,
        action="CREATE",
        diff={"name": client.name, "siren": siren, "siret": siret},
        actor_name=actor,
    )
    return client


def create_contact(db: Session, *, payload: ContactCreate, actor: str) -> Contact:
    if db.get(Client, payload.client_id) is None:
        raise NotFoundError(f"Client not found: {payload.client_id}")

    contact = Contact(
        client_id=payload.client_id,
        name=payload.name,
        email=payload.email,
        role=payload.role,
        phone=payload.phone,
        active=True,
    )
    db.add(contact)
    db.flush()

    write_audit_log(
        db,
        entity_type="Contact",
        entity_id=contact.id,
        action="CREATE",
        diff={"client_id": contact.client_id, "name": contact.name},
        actor_name=actor,
    )
    return contact


def create_project(db: Session, *, payload: ProjectCreate, actor: str) -> Project:
    existing = (
        db.query(Project.id)
        .filter(Project.project_number == payload.project_number)
        .first()
    )
    if existing is not None:
        raise ConflictError(f"Project number already used: {payload.project_number}")

    if payload.contact_id is not None:
        contact = db.get(Contact, payload.contact_id)
        if contact is None:
            raise NotFoundError(f"Contact not found: {payload.contact_id}")
        if payload.client_id is not None and contact.client_id != payload.client_id:
            raise ValidationError("Contact does not belong to the project client")

    project = Project(
        project_number=payload.project_number,
        designation=payload.designation,
        type=payload.type.value,
        status=payload.status.value,
        client_id=payload.client_id,
        contact_id=payload.contact_id,
        project_manager=payload.project_manager,
        project_manager_email=payload.project_manager_email,
        order_number=payload.order_number,
        order_date=payload.order_date,
        order_amount=payload.order_amount,
        quote_number=payload.quote_number,
        quote_date=payload.quote_date,
    )

    if payload.type == ProjectType.AT:
        project.at_days_sold_bo = payload.at_days_sold_bo
        project.at_days_sold_site = payload.at_days_sold_site
        project.at_daily_rate_bo = payload.at_daily_rate_bo
        project.at_daily_rate_site = payload.at_daily_rate_site

    db.add(project)
    db.flush()

    write_audit_log(
        db,
        entity_type="Project",
        entity_id=project.id,
        action="CREATE",
        diff={
            "project_number": project.project_number,
            "type": project.type,
            "status": project.status,
        },
        actor_name=actor,
    )
    return project


def update_project_status(
    db: Session, *, project_id: str, status: ProjectStatus, actor: str
) -> Project:
    project = lock_project_row(db, project_id)
    previous = project.status
    project.status = status.value
    db.flush()

    write_audit_log(
        db,
        entity_type="Project",
        entity_id=project.id,
        action="STATUS",
        diff={"from": previous, "to": project.status},
        actor_name=actor,
    )
    return project


_CHILD_MODELS = (
    ("time entries", TimeEntry),
    ("deliverables", Deliverable),
    ("period locks", PeriodLock),
    ("snapshots", ProjectSituationSnapshot),
    ("bordereaux", Bordereau),
)


def delete_project(db: Session, *, project_id: str, actor: str) -> None:
    project = lock_project_row(db, project_id)

    for label, model in _CHILD_MODELS:
        has_child = db.query(model.id).filter(model.project_id == project.id).first()
        if has_child is not None:
            raise ConflictError(f"Project {project.project_number} still has {label}")

    write_audit_log(
        db,
        entity_type="Project",
        entity_id=project.id,
        action="DELETE",
        diff={"project_number": project.project_number, "type": project.type},
        actor_name=actor,
    )
    db.delete(project)
    db.flush()


def add_deliverable(
    db: Session, *, project_id: str, payload: DeliverableCreate, actor: str
) -> Deliverable:
    project = lock_project_row(db, project_id)
    if project.type != ProjectType.FORFAIT.value:
        raise ValidationError("Deliverables only apply to FORFAIT projects")

    deliverable = Deliverable(
        project_id=project.id,
        label=payload.label,
        percentage=payload.percentage,
        amount=payload.amount,
        target_date=payload.target_date,
        status=DeliverableStatus.NON_REMIS.value,
    )
    db.add(deliverable)
    db.flush()

    write_audit_log(
        db,
        entity_type="Deliverable",
        entity_id=deliverable.id,
        action="CREATE",
        diff={
            "project_id": project.id,
            "label": deliverable.label,
            "percentage": payload.percentage,
        },
        actor_name=actor,
    )
    return deliverable


def list_deliverables(db: Session, project_id: str) -> list[Deliverable]:
    return (
        db.query(Deliverable)
        .filter(Deliverable.project_id == str(project_id))
        .order_by(Deliverable.target_date.asc(), Deliverable.created_at.asc())
        .all()
    )


def update_deliverable_status(
    db: Session,
    *,
    deliverable_id: str,
    status: DeliverableStatus,
    actor: str,
    submission_date: Optional[date] = None,
) -> Deliverable:
    deliverable = db.get(Deliverable, str(deliverable_id))
    if deliverable is None:
        raise NotFoundError(f"Deliverable not found: {deliverable_id}")

    lock_project_row(db, deliverable.project_id)

    previous = deliverable.status
    deliverable.status = status.value
    if submission_date is not None:
        deliverable.submission_date = submission_date
    elif status != DeliverableStatus.NON_REMIS and deliverable.submission_date is None:
        deliverable.submission_date = date.today()
    db.flush()

    write_audit_log(
        db,
        entity_type="Deliverable",
        entity_id=deliverable.id,
        action="STATUS",
        diff={
            "from": previous,
            "to": deliverable.status,
            "submission_date": deliverable.submission_date,
        },
        actor_name=actor,
    )
    return deliverable
