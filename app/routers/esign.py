import logging
import os
from typing import Any, Optional

from fastapi import APIRouter, Depends, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from app.database import get_db
from app.deps.services import get_esign_client, get_file_store
from app.services.esign_client import ESignClient
from app.services.esign_webhook import WebhookResult, process_webhook
from app.services.file_store import FileStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/esign", tags=["E-signature"])

CLIENT_ID_HEADER = "X-AdobeSign-ClientId"


def _client_id(request: Request) -> Optional[str]:
    return (
        request.headers.get(CLIENT_ID_HEADER)
        or request.query_params.get("client_id")
        or request.query_params.get("clientId")
        or os.getenv("ADOBE_SIGN_CLIENT_ID")
    )


def _acknowledge(client_id: Optional[str], **extra) -> JSONResponse:
    # Adobe Sign verifies the webhook URL by expecting its client id echoed back
    if client_id:
        return JSONResponse({"xAdobeSignClientId": client_id, **extra}, headers={CLIENT_ID_HEADER: client_id})
    return JSONResponse({"ok": True, **extra})


def _apply_webhook(
    db: Session,
    payload: Any,
    client: Optional[ESignClient],
    file_store: FileStore,
) -> WebhookResult:
    try:
        result = process_webhook(db, payload, client=client, file_store=file_store)
        db.commit()
        return result
    except Exception:
        db.rollback()
        raise


@router.get("/webhook")
def verify_webhook(request: Request):
    return _acknowledge(_client_id(request))


@router.post("/webhook")
async def receive_webhook(
    request: Request,
    db: Session = Depends(get_db),
    client: Optional[ESignClient] = Depends(get_esign_client),
    file_store: FileStore = Depends(get_file_store),
):
    client_id = _client_id(request)
    try:
        payload = await request.json()
    except ValueError:
        logger.warning("Webhook body is not JSON; acknowledging")
        return _acknowledge(client_id)

    # provider downloads and DB work block; keep them off the event loop
    result = await run_in_threadpool(_apply_webhook, db, payload, client, file_store)
    return _acknowledge(client_id, received=result.received, signed=result.signed)
