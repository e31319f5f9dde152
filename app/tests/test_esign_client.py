import pytest
import requests

from app.core.errors import ExternalServiceError
from app.services.esign_client import AdobeSignClient


class FakeResponse:
    def __init__(self, status_code=200, json_data=None, content=b"", text=""):
        self.status_code = status_code
        self._json = json_data
        self.content = content
        self.text = text

    def json(self):
        return self._json


class FakeSession:
    def __init__(self, responses):
        self.responses = list(responses)
        self.calls = []

    def _next(self, method, url, kwargs):
        self.calls.append((method, url, kwargs))
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def get(self, url, **kwargs):
        return self._next("GET", url, kwargs)

    def request(self, method, url, **kwargs):
        return self._next(method, url, kwargs)


def _base_uris(access_point):
    return FakeResponse(json_data={"apiAccessPoint": access_point, "webAccessPoint": access_point})


def test_discovers_and_caches_access_point():
    session = FakeSession(
        [
            _base_uris("https://api.eu1.adobesign.com/"),
            FakeResponse(json_data={"id": "A1"}),
            FakeResponse(json_data={"id": "A2"}),
        ]
    )
    client = AdobeSignClient("key", session=session)

    assert client.create_agreement({"name": "x"}) == "A1"
    assert client.create_agreement({"name": "y"}) == "A2"

    urls = [url for _, url, _ in session.calls]
    assert urls == [
        "https://api.echosign.com/api/rest/v6/base_uris",
        "https://api.eu1.adobesign.com/api/rest/v6/agreements",
        "https://api.eu1.adobesign.com/api/rest/v6/agreements",
    ]
    assert session.calls[1][2]["headers"]["Authorization"] == "Bearer key"


def test_invalid_access_point_triggers_one_rediscovery():
    session = FakeSession(
        [
            _base_uris("https://api.na1.adobesign.com"),
            FakeResponse(status_code=400, text='{"code":"INVALID_API_ACCESS_POINT"}'),
            _base_uris("https://api.na2.adobesign.com"),
            FakeResponse(json_data={"transientDocumentId": "T1"}),
        ]
    )
    client = AdobeSignClient("key", session=session)

    assert client.create_transient_document("ba.pdf", b"%PDF") == "T1"
    assert session.calls[-1][1] == "https://api.na2.adobesign.com/api/rest/v6/transientDocuments"


def test_fixed_base_uri_skips_discovery():
    session = FakeSession([FakeResponse(content=b"%PDF-signed")])
    client = AdobeSignClient("key", base_uri="https://api.eu2.adobesign.com", session=session)

    assert client.get_combined_document("A1") == b"%PDF-signed"
    assert session.calls[0][1] == "https://api.eu2.adobesign.com/api/rest/v6/agreements/A1/combinedDocument"


def test_http_error_raises_external_service_error():
    session = FakeSession([FakeResponse(status_code=500, text="boom")])
    client = AdobeSignClient("key", base_uri="https://api.eu2.adobesign.com", session=session)

    with pytest.raises(ExternalServiceError) as excinfo:
        client.get_audit_trail("A1")
    assert excinfo.value.service == "esign"


def test_transport_error_raises_external_service_error():
    session = FakeSession([requests.ConnectionError("unreachable")])
    client = AdobeSignClient("key", base_uri="https://api.eu2.adobesign.com", session=session)

    with pytest.raises(ExternalServiceError):
        client.get_member_ids("A1")


def test_member_ids_are_flattened_and_deduplicated():
    members = {
        "participantSets": [
            {"memberInfos": [{"id": "m1", "email": "a@x"}, {"id": "m2", "email": "b@x"}]},
            {"memberInfos": [{"id": "m1", "email": "a@x"}]},
        ]
    }
    session = FakeSession([FakeResponse(json_data=members), FakeResponse(json_data={"ok": True})])
    client = AdobeSignClient("key", base_uri="https://api.eu2.adobesign.com", session=session)

    ids = client.get_member_ids("A1")
    assert ids == ["m1", "m2"]

    client.send_reminder("A1", ids)
    body = session.calls[-1][2]["json"]
    assert body == {"recipientParticipantIds": ["m1", "m2"], "status": "ACTIVE"}


def test_missing_api_key_rejected():
    with pytest.raises(ExternalServiceError):
        AdobeSignClient("")


class _HtmlResponse(FakeResponse):
    def json(self):
        raise requests.JSONDecodeError("Expecting value", "<html>", 0)


def test_non_json_success_body_raises_external_service_error():
    session = FakeSession([_HtmlResponse(text="<html>maintenance</html>")])
    client = AdobeSignClient("key", base_uri="https://api.eu2.adobesign.com", session=session)

    with pytest.raises(ExternalServiceError) as excinfo:
        client.create_agreement({"name": "x"})
    assert "not JSON" in excinfo.value.message
