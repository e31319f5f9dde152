"""
Adobe Sign webhook handling.

Payload shapes vary between webhook versions, so decoding is lenient: events
may sit under ``events``, ``eventList``, ``event_list`` or ``event``, or the
payload itself is a single event. Anything unrecognised is skipped.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from sqlalchemy.orm import Session

from app.core.errors import ExternalServiceError
from app.models.bordereau import Bordereau
from app.models.enums import AgreementStatus, BordereauStatus
from app.models.esign_agreement import ESignAgreement
from app.services.audit_service import write_audit_log
from app.services.bordereau_service import mark_signed
from app.services.esign_client import ESignClient
from app.services.file_store import FileStore, StoredFile, discard_quietly

logger = logging.getLogger(__name__)

WEBHOOK_ACTOR = "Adobe Sign"

PROVIDER_STATUS_MAP: dict[str, AgreementStatus] = {
    "AGREEMENT_CREATED": AgreementStatus.SENT,
    "AGREEMENT_ACTION_COMPLETED": AgreementStatus.SIGNED,
    "AGREEMENT_SIGNED": AgreementStatus.SIGNED,
    "AGREEMENT_COMPLETED": AgreementStatus.SIGNED,
    "AGREEMENT_CANCELLED": AgreementStatus.CANCELLED,
    "AGREEMENT_RECALLED": AgreementStatus.CANCELLED,
    "AGREEMENT_DECLINED": AgreementStatus.DECLINED,
    "AGREEMENT_REJECTED": AgreementStatus.DECLINED,
    "AGREEMENT_EXPIRED": AgreementStatus.EXPIRED,
}


@dataclass(frozen=True)
class WebhookEvent:
    event_type: Optional[str]
    agreement_id: Optional[str]


@dataclass
class WebhookResult:
    received: int = 0
    updated: int = 0
    signed: int = 0
    skipped: int = 0
    bordereau_ids: list[str] = field(default_factory=list)


def map_provider_status(event_type: Optional[str]) -> Optional[AgreementStatus]:
    if not event_type:
        return None
    return PROVIDER_STATUS_MAP.get(str(event_type).upper())


def _agreement_id(obj: Any) -> Optional[str]:
    if not isinstance(obj, dict):
        return None
    agreement = obj.get("agreement")
    candidates = [
        obj.get("agreementId"),
        agreement.get("id") if isinstance(agreement, dict) else None,
        agreement.get("agreementId") if isinstance(agreement, dict) else None,
        obj.get("agreement_id"),
    ]
    for candidate in candidates:
        if isinstance(candidate, (str, int)) and str(candidate):
            return str(candidate)
    return None


def _event_type(obj: Any) -> Optional[str]:
    if not isinstance(obj, dict):
        return None
    for key in ("type", "eventType", "event_type", "event"):
        value = obj.get(key)
        if isinstance(value, str) and value:
            return value
    return None


def extract_events(payload: Any) -> list[WebhookEvent]:
    if not isinstance(payload, dict):
        return []

    raw_events: list[Any] = []
    for key in ("events", "eventList", "event_list"):
        if isinstance(payload.get(key), list):
            raw_events = payload[key]
            break
    else:
        if isinstance(payload.get("event"), dict):
            raw_events = [payload["event"]]

    base_agreement_id = _agreement_id(payload)

    if not raw_events:
        if base_agreement_id is None:
            return []
        return [WebhookEvent(event_type=_event_type(payload), agreement_id=base_agreement_id)]

    return [
        WebhookEvent(
            event_type=_event_type(event),
            agreement_id=_agreement_id(event) or base_agreement_id,
        )
        for event in raw_events
    ]


def _download(
    client: ESignClient,
    file_store: FileStore,
    agreement_id: str,
    *,
    audit_trail: bool,
) -> Optional[StoredFile]:
    label = "audit-trail" if audit_trail else "signed"
    try:
        data = client.get_audit_trail(agreement_id) if audit_trail else client.get_combined_document(agreement_id)
        return file_store.write(data, f"{agreement_id}-{label}.pdf", "application/pdf")
    except ExternalServiceError as exc:
        logger.warning(
            "Signed document download failed; continuing without it",
            extra={"agreement_id": agreement_id, "document": label, "error": exc.message},
        )
        return None


def _apply_status(db: Session, agreement: ESignAgreement, status: AgreementStatus) -> bool:
    current = agreement.status
    if current == status.value:
        return False
    if current == AgreementStatus.SIGNED.value:
        # late or out-of-order events never undo a signature
        logger.info(
            "Ignoring status downgrade of signed agreement",
            extra={"agreement_id": agreement.provider_id, "status": status.value},
        )
        return False

    agreement.status = status.value
    db.flush()
    write_audit_log(
        db,
        entity_type="ESignAgreement",
        entity_id=agreement.id,
        action="STATUS",
        diff={"from": current, "to": status.value, "provider_id": agreement.provider_id},
        actor_name=WEBHOOK_ACTOR,
    )
    return True


def process_webhook(
    db: Session,
    payload: Any,
    *,
    client: Optional[ESignClient],
    file_store: FileStore,
) -> WebhookResult:
    """
    Apply provider events to agreements and bordereaux.

    Duplicate or replayed deliveries are harmless: a bordereau already SIGNED
    is not re-downloaded and mark_signed records nothing the second time.
    Caller commits.
    """
    result = WebhookResult()

    for event in extract_events(payload):
        result.received += 1

        status = map_provider_status(event.event_type)
        if event.agreement_id is None or status is None:
            result.skipped += 1
            continue

        agreement = (
            db.query(ESignAgreement)
            .filter(ESignAgreement.provider_id == event.agreement_id)
            .one_or_none()
        )
        if agreement is None:
            logger.info("Webhook for unknown agreement", extra={"agreement_id": event.agreement_id})
            result.skipped += 1
            continue

        if _apply_status(db, agreement, status):
            result.updated += 1

        if status != AgreementStatus.SIGNED:
            continue

        bordereau = db.query(Bordereau).filter(Bordereau.id == agreement.bordereau_id).one()
        if bordereau.status == BordereauStatus.SIGNED.value:
            continue

        signed_file = audit_file = None
        if client is not None:
            signed_file = _download(client, file_store, event.agreement_id, audit_trail=False)
            audit_file = _download(client, file_store, event.agreement_id, audit_trail=True)

        signing = mark_signed(
            db,
            bordereau_id=agreement.bordereau_id,
            actor=WEBHOOK_ACTOR,
            source_ref=event.agreement_id,
            signed_file=signed_file,
            audit_trail_file=audit_file,
        )
        if signing.already_signed:
            # a concurrent delivery won the row lock first
            discard_quietly(file_store, signed_file)
            discard_quietly(file_store, audit_file)
            continue

        result.signed += 1
        result.bordereau_ids.append(signing.bordereau.id)

    logger.info(
        "Webhook processed",
        extra={
            "received": result.received,
            "updated": result.updated,
            "signed": result.signed,
            "skipped": result.skipped,
        },
    )
    return result
