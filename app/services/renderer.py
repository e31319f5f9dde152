import logging
import os
from typing import Optional, Protocol

import requests

from app.core.errors import ExternalServiceError

logger = logging.getLogger(__name__)

PDF_MAGIC = b"%PDF"


class DocumentRenderer(Protocol):
    def render_url(self, url: str) -> bytes: ...

    def render_html(self, html: str) -> bytes: ...


class HttpPdfRenderer:
    """
    Client for a headless-browser rendering service.

    POST {"url": ...} or {"html": ...} to the endpoint; the response body is
    the PDF. Any transport error, non-2xx status or non-PDF body raises
    ExternalServiceError.
    """

    def __init__(self, endpoint: str, *, timeout: float = 60.0, session: Optional[requests.Session] = None):
        self.endpoint = endpoint
        self.timeout = timeout
        self.session = session or requests.Session()

    def _render(self, body: dict) -> bytes:
        try:
            resp = self.session.post(self.endpoint, json=body, timeout=self.timeout)
        except requests.RequestException as exc:
            raise ExternalServiceError("renderer", f"request failed: {exc}") from exc

        if resp.status_code >= 300:
            raise ExternalServiceError("renderer", f"HTTP {resp.status_code}: {resp.text[:200]}")

        content = resp.content
        if not content.startswith(PDF_MAGIC):
            raise ExternalServiceError("renderer", "response is not a PDF document")

        logger.info("Rendered PDF", extra={"bytes": len(content)})
        return content

    def render_url(self, url: str) -> bytes:
        return self._render({"url": url, "format": "A4", "printBackground": True})

    def render_html(self, html: str) -> bytes:
        return self._render({"html": html, "format": "A4", "printBackground": True})


def renderer_from_env() -> Optional[HttpPdfRenderer]:
    endpoint = os.getenv("PDF_RENDERER_URL")
    if not endpoint:
        return None
    return HttpPdfRenderer(endpoint)
