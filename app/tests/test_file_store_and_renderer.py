import hashlib

import pytest
import requests

from app.core.errors import ExternalServiceError, NotFoundError, ValidationError
from app.services.file_store import discard_quietly
from app.services.renderer import HttpPdfRenderer


def test_write_read_delete_roundtrip(file_store):
    stored = file_store.write(b"%PDF-1.4 hello", "BA 2026/03.pdf", "application/pdf")

    assert stored.size == len(b"%PDF-1.4 hello")
    assert stored.checksum == hashlib.sha256(b"%PDF-1.4 hello").hexdigest()
    assert stored.storage_key.endswith("-03.pdf")
    assert "/" not in stored.storage_key
    assert file_store.read(stored.storage_key) == b"%PDF-1.4 hello"

    file_store.delete(stored.storage_key)
    with pytest.raises(NotFoundError):
        file_store.read(stored.storage_key)


@pytest.mark.parametrize("key", ["../etc/passwd", "a/b.pdf", ".hidden", ""])
def test_traversal_keys_rejected(file_store, key):
    with pytest.raises(ValidationError):
        file_store.read(key)


def test_discard_quietly_ignores_missing_blob(file_store):
    stored = file_store.write(b"x", "x.pdf", "application/pdf")
    file_store.delete(stored.storage_key)
    discard_quietly(file_store, stored)
    discard_quietly(file_store, None)


class _Response:
    def __init__(self, status_code, content):
        self.status_code = status_code
        self.content = content
        self.text = content.decode("latin-1")


class _Session:
    def __init__(self, outcome):
        self.outcome = outcome
        self.bodies = []

    def post(self, url, json=None, timeout=None):
        self.bodies.append(json)
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return self.outcome


def test_renderer_returns_pdf_bytes():
    session = _Session(_Response(200, b"%PDF-1.7 rendered"))
    renderer = HttpPdfRenderer("http://renderer/pdf", session=session)

    assert renderer.render_url("http://app/bordereaux/print?projectId=p") == b"%PDF-1.7 rendered"
    assert session.bodies[0]["url"] == "http://app/bordereaux/print?projectId=p"


@pytest.mark.parametrize(
    "outcome",
    [
        _Response(500, b"internal error"),
        _Response(200, b"<html>not a pdf</html>"),
        requests.Timeout("slow"),
    ],
)
def test_renderer_failures_raise_external_service_error(outcome):
    renderer = HttpPdfRenderer("http://renderer/pdf", session=_Session(outcome))
    with pytest.raises(ExternalServiceError) as excinfo:
        renderer.render_html("<p>x</p>")
    assert excinfo.value.service == "renderer"
