from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.authorization import ensure_project_access
from app.database import get_db
from app.deps.auth import CurrentUser, require_auth
from app.deps.services import get_esign_client, get_file_store, get_renderer
from app.schemas.billing import (
    AgreementResponse,
    BordereauResponse,
    BordereauVersionResponse,
    GenerateRequest,
    GenerationResponse,
    MarkSignedRequest,
    SendForSignatureRequest,
    SigningResponse,
)
from app.services import bordereau_service, document_service
from app.services.esign_client import ESignClient
from app.services.file_store import FileStore
from app.services.project_service import get_project
from app.services.renderer import DocumentRenderer

router = APIRouter(prefix="/bordereaux", tags=["Bordereaux"])


def _authorized_bordereau(db: Session, user: CurrentUser, bordereau_id: str):
    bordereau = bordereau_service.get_bordereau(db, bordereau_id)
    ensure_project_access(user, get_project(db, bordereau.project_id))
    return bordereau


@router.get("", response_model=list[BordereauResponse])
def list_bordereaux_endpoint(
    project_id: str,
    user: CurrentUser = Depends(require_auth),
    db: Session = Depends(get_db),
):
    ensure_project_access(user, get_project(db, project_id))
    return bordereau_service.list_bordereaux(db, project_id)


@router.get("/{bordereau_id}", response_model=BordereauResponse)
def get_bordereau_endpoint(
    bordereau_id: str,
    user: CurrentUser = Depends(require_auth),
    db: Session = Depends(get_db),
):
    return _authorized_bordereau(db, user, bordereau_id)


@router.post("/generate", response_model=GenerationResponse, status_code=201)
def generate_endpoint(
    payload: GenerateRequest,
    user: CurrentUser = Depends(require_auth),
    db: Session = Depends(get_db),
    renderer: Optional[DocumentRenderer] = Depends(get_renderer),
    file_store: FileStore = Depends(get_file_store),
):
    try:
        ensure_project_access(user, get_project(db, payload.project_id))
        result = document_service.render_and_generate(
            db,
            project_id=payload.project_id,
            bordereau_type=payload.type,
            period_year=payload.period_year,
            period_month=payload.period_month,
            actor=user.actor,
            renderer=renderer,
            file_store=file_store,
        )
        db.commit()
        db.refresh(result.bordereau)
        return GenerationResponse(
            bordereau=BordereauResponse.model_validate(result.bordereau),
            version=BordereauVersionResponse.model_validate(result.version),
            snapshot_id=result.snapshot.id,
            file_id=result.file.id,
            rectificatif=result.rectificatif,
        )
    except Exception:
        db.rollback()
        raise


@router.post("/{bordereau_id}/signed", response_model=SigningResponse)
def mark_signed_endpoint(
    bordereau_id: str,
    payload: MarkSignedRequest,
    user: CurrentUser = Depends(require_auth),
    db: Session = Depends(get_db),
):
    try:
        _authorized_bordereau(db, user, bordereau_id)
        result = bordereau_service.mark_signed(
            db,
            bordereau_id=bordereau_id,
            actor=user.actor,
            source_ref=payload.source_ref,
        )
        db.commit()
        db.refresh(result.bordereau)
        return SigningResponse(
            bordereau=BordereauResponse.model_validate(result.bordereau),
            snapshot_id=None if result.snapshot is None else result.snapshot.id,
            already_signed=result.already_signed,
        )
    except Exception:
        db.rollback()
        raise


@router.post("/{bordereau_id}/send", response_model=AgreementResponse, status_code=201)
def send_for_signature_endpoint(
    bordereau_id: str,
    payload: SendForSignatureRequest,
    user: CurrentUser = Depends(require_auth),
    db: Session = Depends(get_db),
    client: Optional[ESignClient] = Depends(get_esign_client),
    file_store: FileStore = Depends(get_file_store),
):
    try:
        _authorized_bordereau(db, user, bordereau_id)
        agreement = document_service.send_for_signature(
            db,
            bordereau_id=bordereau_id,
            signer_email=payload.signer_email,
            actor=user.actor,
            client=client,
            file_store=file_store,
        )
        db.commit()
        return agreement
    except Exception:
        db.rollback()
        raise


@router.post("/{bordereau_id}/remind")
def send_reminder_endpoint(
    bordereau_id: str,
    user: CurrentUser = Depends(require_auth),
    db: Session = Depends(get_db),
    client: Optional[ESignClient] = Depends(get_esign_client),
):
    try:
        _authorized_bordereau(db, user, bordereau_id)
        result = document_service.send_reminder(db, bordereau_id=bordereau_id, actor=user.actor, client=client)
        db.commit()
        return {"ok": True, "result": result}
    except Exception:
        db.rollback()
        raise
