"""
Document side of the bordereau lifecycle: rendering, storage and e-signature.

External calls happen before any database write where possible, so a failing
renderer or provider leaves no partial rows behind. The caller owns the
transaction.
"""
import logging
import os
from dataclasses import dataclass
from typing import Optional, Union
from urllib.parse import urlencode

from sqlalchemy.orm import Session

from app.core.errors import ConflictError, ExternalServiceError, NotFoundError
from app.models.bordereau import Bordereau
from app.models.enums import AgreementStatus, BordereauStatus, BordereauType, ProjectType
from app.models.esign_agreement import ESignAgreement
from app.models.file_object import FileObject
from app.services.audit_service import write_audit_log
from app.services.bordereau_service import GenerationResult, generate, get_bordereau, latest_version
from app.services.esign_client import ESignClient
from app.services.file_store import FileStore, discard_quietly
from app.services.project_service import get_project
from app.services.renderer import DocumentRenderer

logger = logging.getLogger(__name__)

DEFAULT_APP_BASE_URL = "http://localhost:3000"

FRENCH_MONTHS = (
    "janvier",
    "février",
    "mars",
    "avril",
    "mai",
    "juin",
    "juillet",
    "août",
    "septembre",
    "octobre",
    "novembre",
    "décembre",
)


@dataclass(frozen=True)
class AgreementMessage:
    subject: str
    message: str


def period_label(year: Optional[int], month: Optional[int]) -> str:
    if year is None or month is None:
        return ""
    return f"{FRENCH_MONTHS[month - 1]} {year}"


def build_print_url(
    project_id: str,
    period_year: Optional[int],
    period_month: Optional[int],
    *,
    base_url: Optional[str] = None,
) -> str:
    base = (base_url or os.getenv("APP_BASE_URL") or DEFAULT_APP_BASE_URL).rstrip("/")
    params = {"projectId": project_id}
    if period_year is not None and period_month is not None:
        params["year"] = str(period_year)
        params["month"] = str(period_month)
    return f"{base}/bordereaux/print?{urlencode(params)}"


def build_agreement_message(project, period_year: Optional[int], period_month: Optional[int]) -> AgreementMessage:
    label = period_label(period_year, period_month)
    if project.type == ProjectType.AT.value:
        return AgreementMessage(
            subject=f"Bordereau d'avancement - {project.project_number} ({label})",
            message=(
                "Bonjour,\n\n"
                f"Veuillez trouver ci-joint le bordereau d'avancement pour la période {label}.\n"
                f"Projet : {project.project_number} - {project.designation}\n\n"
                "Merci de signer ce document.\n\n"
                "Cordialement,"
            ),
        )
    return AgreementMessage(
        subject=f"Bordereau de livraison - {project.project_number}",
        message=(
            "Bonjour,\n\n"
            "Veuillez trouver ci-joint le bordereau de livraison.\n"
            f"Projet : {project.project_number} - {project.designation}\n\n"
            "Merci de signer ce document.\n\n"
            "Cordialement,"
        ),
    )


def _document_file_name(project, period_year: Optional[int], period_month: Optional[int]) -> str:
    if period_year is None or period_month is None:
        return f"{project.project_number}.pdf"
    return f"{project.project_number}-{period_year}-{period_month:02d}.pdf"


def render_and_generate(
    db: Session,
    *,
    project_id: str,
    bordereau_type: Union[BordereauType, str],
    actor: str,
    renderer: Optional[DocumentRenderer],
    file_store: FileStore,
    period_year: Optional[int] = None,
    period_month: Optional[int] = None,
) -> GenerationResult:
    """
    Render the print view to PDF, store it, then record the bordereau.

    Rendering failures raise before anything is written. If recording fails
    after the blob was stored, the blob is removed (best effort) and the
    error propagates so the caller rolls back.
    """
    if renderer is None:
        raise ExternalServiceError("renderer", "PDF renderer is not configured")

    project = get_project(db, project_id)
    url = build_print_url(project.id, period_year, period_month)
    pdf = renderer.render_url(url)

    stored = file_store.write(pdf, _document_file_name(project, period_year, period_month), "application/pdf")
    try:
        return generate(
            db,
            project_id=project.id,
            bordereau_type=bordereau_type,
            actor=actor,
            rendered=stored,
            period_year=period_year,
            period_month=period_month,
        )
    except Exception:
        discard_quietly(file_store, stored)
        raise


def active_agreement(db: Session, bordereau_id: str) -> Optional[ESignAgreement]:
    return (
        db.query(ESignAgreement)
        .filter(
            ESignAgreement.bordereau_id == str(bordereau_id),
            ESignAgreement.status == AgreementStatus.SENT.value,
        )
        .order_by(ESignAgreement.created_at.desc())
        .first()
    )


def latest_agreement(db: Session, bordereau_id: str) -> Optional[ESignAgreement]:
    return (
        db.query(ESignAgreement)
        .filter(ESignAgreement.bordereau_id == str(bordereau_id))
        .order_by(ESignAgreement.created_at.desc())
        .first()
    )


def _latest_document(db: Session, file_store: FileStore, bordereau: Bordereau) -> tuple[FileObject, bytes]:
    version = latest_version(db, bordereau.id)
    if version is None:
        raise NotFoundError(f"Bordereau {bordereau.id} has no generated version")
    file_row = db.query(FileObject).filter(FileObject.id == version.file_id).one()
    return file_row, file_store.read(file_row.storage_key)


def send_for_signature(
    db: Session,
    *,
    bordereau_id: str,
    signer_email: str,
    actor: str,
    client: Optional[ESignClient],
    file_store: FileStore,
) -> ESignAgreement:
    if client is None:
        raise ExternalServiceError("esign", "Adobe Sign is disabled")

    bordereau = get_bordereau(db, bordereau_id, for_update=True)
    if bordereau.status == BordereauStatus.SIGNED.value:
        raise ConflictError(f"Bordereau {bordereau.id} is already signed")
    if active_agreement(db, bordereau.id) is not None:
        raise ConflictError(f"Bordereau {bordereau.id} already has an agreement awaiting signature")

    project = get_project(db, bordereau.project_id)
    file_row, data = _latest_document(db, file_store, bordereau)
    text = build_agreement_message(project, bordereau.period_year, bordereau.period_month)

    transient_id = client.create_transient_document(file_row.file_name, data)
    provider_id = client.create_agreement(
        {
            "fileInfos": [{"transientDocumentId": transient_id}],
            "name": text.subject,
            "message": text.message,
            "participantSetsInfo": [
                {"memberInfos": [{"email": signer_email}], "order": 1, "role": "SIGNER"},
            ],
            "signatureType": "ESIGN",
            "state": "IN_PROCESS",
        }
    )

    agreement = ESignAgreement(
        bordereau_id=bordereau.id,
        provider_id=provider_id,
        status=AgreementStatus.SENT.value,
        signer_email=signer_email,
    )
    db.add(agreement)
    db.flush()

    write_audit_log(
        db,
        entity_type="Bordereau",
        entity_id=bordereau.id,
        action="SEND_FOR_SIGNATURE",
        diff={"agreement_id": agreement.id, "provider_id": provider_id, "signer_email": signer_email},
        actor_name=actor,
    )

    logger.info(
        "Bordereau sent for signature",
        extra={"bordereau_id": bordereau.id, "provider_id": provider_id},
    )
    return agreement


def send_reminder(
    db: Session,
    *,
    bordereau_id: str,
    actor: str,
    client: Optional[ESignClient],
) -> dict:
    if client is None:
        raise ExternalServiceError("esign", "Adobe Sign is disabled")

    bordereau = get_bordereau(db, bordereau_id)
    agreement = latest_agreement(db, bordereau.id)
    if agreement is None:
        raise ConflictError(f"Bordereau {bordereau.id} has no e-signature agreement")

    participant_ids = client.get_member_ids(agreement.provider_id)
    if not participant_ids:
        raise ConflictError(f"Agreement {agreement.provider_id} has no participants to remind")

    result = client.send_reminder(agreement.provider_id, participant_ids)

    write_audit_log(
        db,
        entity_type="Bordereau",
        entity_id=bordereau.id,
        action="REMIND",
        diff={"provider_id": agreement.provider_id, "participant_ids": participant_ids},
        actor_name=actor,
    )
    return result
