"""
Adobe Sign REST v6 client.

Every HTTP or transport failure surfaces as ExternalServiceError("esign", ...).
Whether that is fatal is the caller's decision: sending an agreement fails the
operation, post-signature downloads only degrade to a missing attachment.
"""
import logging
import os
from typing import Any, Optional, Protocol

import requests

from app.core.errors import ExternalServiceError

logger = logging.getLogger(__name__)

DEFAULT_BASE_URI = "https://api.echosign.com"
API_PREFIX = "/api/rest/v6"


class ESignClient(Protocol):
    def create_transient_document(self, file_name: str, data: bytes) -> str: ...

    def create_agreement(self, payload: dict[str, Any]) -> str: ...

    def get_combined_document(self, agreement_id: str) -> bytes: ...

    def get_audit_trail(self, agreement_id: str) -> bytes: ...

    def get_member_ids(self, agreement_id: str) -> list[str]: ...

    def send_reminder(self, agreement_id: str, participant_ids: list[str], note: Optional[str] = None) -> dict: ...


def _json(resp: requests.Response, what: str) -> dict[str, Any]:
    try:
        data = resp.json()
    except ValueError as exc:
        raise ExternalServiceError("esign", f"{what}: response is not JSON") from exc
    if not isinstance(data, dict):
        raise ExternalServiceError("esign", f"{what}: unexpected response shape")
    return data


class AdobeSignClient:
    def __init__(
        self,
        api_key: str,
        *,
        base_uri: Optional[str] = None,
        timeout: float = 30.0,
        session: Optional[requests.Session] = None,
    ):
        if not api_key:
            raise ExternalServiceError("esign", "missing API key")
        self.api_key = api_key
        self.timeout = timeout
        self.session = session or requests.Session()
        self._fixed_base_uri = base_uri.rstrip("/") if base_uri else None
        self._cached_base_uri: Optional[str] = None

    def _auth_headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.api_key}"}

    def _api_base(self) -> str:
        if self._fixed_base_uri:
            return self._fixed_base_uri
        if self._cached_base_uri:
            return self._cached_base_uri

        try:
            resp = self.session.get(
                f"{DEFAULT_BASE_URI}{API_PREFIX}/base_uris",
                headers=self._auth_headers(),
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise ExternalServiceError("esign", f"base_uris request failed: {exc}") from exc

        if resp.status_code >= 300:
            raise ExternalServiceError("esign", f"base_uris failed: {resp.status_code} {resp.text[:200]}")

        data = _json(resp, "base_uris")
        access_point = data.get("apiAccessPoint") or data.get("api_access_point")
        if not access_point:
            raise ExternalServiceError("esign", "base_uris response without api access point")

        self._cached_base_uri = str(access_point).rstrip("/")
        return self._cached_base_uri

    def _send(self, method: str, path: str, **kwargs) -> requests.Response:
        url = f"{self._api_base()}{API_PREFIX}{path}"
        headers = {**self._auth_headers(), **kwargs.pop("headers", {})}
        try:
            return self.session.request(method, url, headers=headers, timeout=self.timeout, **kwargs)
        except requests.RequestException as exc:
            raise ExternalServiceError("esign", f"{method} {path} failed: {exc}") from exc

    def _request(self, method: str, path: str, **kwargs) -> requests.Response:
        resp = self._send(method, path, **kwargs)
        if resp.status_code < 300:
            return resp

        if "INVALID_API_ACCESS_POINT" in resp.text and not self._fixed_base_uri:
            # shard moved: rediscover once and retry
            logger.warning("Adobe Sign access point rejected; refreshing", extra={"path": path})
            self._cached_base_uri = None
            resp = self._send(method, path, **kwargs)
            if resp.status_code < 300:
                return resp

        raise ExternalServiceError("esign", f"{method} {path}: {resp.status_code} {resp.text[:200]}")

    def create_transient_document(self, file_name: str, data: bytes) -> str:
        resp = self._request(
            "POST",
            "/transientDocuments",
            files={"File": (file_name, data, "application/pdf")},
            data={"File-Name": file_name},
        )
        document_id = _json(resp, "transientDocuments").get("transientDocumentId")
        if not document_id:
            raise ExternalServiceError("esign", "transient document id missing in response")
        return str(document_id)

    def create_agreement(self, payload: dict[str, Any]) -> str:
        resp = self._request("POST", "/agreements", json=payload)
        agreement_id = _json(resp, "agreements").get("id")
        if not agreement_id:
            raise ExternalServiceError("esign", "agreement id missing in response")
        return str(agreement_id)

    def get_combined_document(self, agreement_id: str) -> bytes:
        return self._request("GET", f"/agreements/{agreement_id}/combinedDocument").content

    def get_audit_trail(self, agreement_id: str) -> bytes:
        return self._request("GET", f"/agreements/{agreement_id}/auditTrail").content

    def get_member_ids(self, agreement_id: str) -> list[str]:
        data = _json(self._request("GET", f"/agreements/{agreement_id}/members"), "members")
        ids: list[str] = []
        for participant_set in data.get("participantSets") or []:
            for member in participant_set.get("memberInfos") or []:
                member_id = member.get("id")
                if member_id and member_id not in ids:
                    ids.append(str(member_id))
        return ids

    def send_reminder(self, agreement_id: str, participant_ids: list[str], note: Optional[str] = None) -> dict:
        body: dict[str, Any] = {"recipientParticipantIds": list(participant_ids), "status": "ACTIVE"}
        if note:
            body["note"] = note
        return _json(self._request("POST", f"/agreements/{agreement_id}/reminders", json=body), "reminders")


def esign_enabled() -> bool:
    return os.getenv("ADOBE_SIGN_ENABLED", "false").lower() == "true"


def esign_client_from_env() -> Optional[AdobeSignClient]:
    if not esign_enabled():
        return None
    return AdobeSignClient(
        os.getenv("ADOBE_SIGN_API_KEY", ""),
        base_uri=os.getenv("ADOBE_SIGN_BASE_URI") or None,
    )
