"""
Gating Middleware

Applies consent gating to full HTML pages at render time. For every
successful GET that returns a complete document (contains ``</html>``) the
body is buffered, rewritten by the GatingEngine for the visitor's consent
snapshot and, with Google Consent Mode enabled, prefixed with the consent
defaults script right after ``<head>``.

API responses, fragments and non-HTML bodies pass through untouched.
When the options cannot be read the page is gated with the defaults.
"""

import logging
import re

from sqlalchemy.exc import SQLAlchemyError
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from consentgate import database
from consentgate.blocking.engine import GatingEngine
from consentgate.config import ConsentConfig
from consentgate.consent.manager import ConsentManager
from consentgate.consent.store import ConsentStore
from consentgate.integrations.google_consent_mode import render_defaults_script
from consentgate.services.options_service import load_consent_config

logger = logging.getLogger(__name__)

EXCLUDED_PREFIXES = ("/api/", "/docs", "/redoc", "/openapi.json", "/health")

_HEAD_RE = re.compile(r"<head\b[^>]*>", re.IGNORECASE)
_CHARSET_RE = re.compile(r"charset=([\w-]+)", re.IGNORECASE)


def inject_head_script(page: str, script: str) -> str:
    """Insert a script right after the opening <head> tag; pages without one are unchanged."""
    match = _HEAD_RE.search(page)
    if match is None:
        return page
    return page[: match.end()] + script + page[match.end() :]


def gate_page(page: str, request: Request, config: ConsentConfig, script_filters=()) -> str:
    """Rewrite one HTML page for the consent carried by the request's cookie."""
    manager = ConsentManager(ConsentStore.from_request(request, None, config), config)
    snapshot = manager.snapshot()
    request.state.consent_state = snapshot.state.value

    page = GatingEngine(snapshot, config, script_filters).process_html(page)
    if config.enabled and config.gcm_enabled:
        page = inject_head_script(page, render_defaults_script(snapshot.categories))
    return page


class GatingMiddleware(BaseHTTPMiddleware):
    """
    Args:
        app: ASGI app
        script_filters: Blocking vetoes passed on to every GatingEngine
    """

    def __init__(self, app, script_filters=()):
        super().__init__(app)
        self.script_filters = tuple(script_filters)

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.method != "GET" or request.url.path.startswith(EXCLUDED_PREFIXES):
            return await call_next(request)

        response = await call_next(request)

        content_type = response.headers.get("content-type", "")
        if response.status_code != 200 or not content_type.startswith("text/html"):
            return response

        body = b""
        async for chunk in response.body_iterator:
            body += chunk if isinstance(chunk, bytes) else chunk.encode()

        charset_match = _CHARSET_RE.search(content_type)
        charset = charset_match.group(1) if charset_match else "utf-8"

        try:
            page = body.decode(charset)
        except (UnicodeDecodeError, LookupError):
            logger.warning(f"Skipping consent gating for {request.url.path}: undecodable body")
            return self._rebuild(response, body)

        if "</html>" not in page.lower():
            return self._rebuild(response, body)

        try:
            async with database.AsyncSessionLocal() as db:
                config = await load_consent_config(db)
        except SQLAlchemyError as e:
            # Defaults block every optional category
            logger.error(f"Consent options unavailable, gating {request.url.path} with defaults: {e}")
            config = ConsentConfig()

        gated = gate_page(page, request, config, self.script_filters)
        return self._rebuild(response, gated.encode(charset, "xmlcharrefreplace"))

    @staticmethod
    def _rebuild(response: Response, body: bytes) -> Response:
        # raw_headers keeps repeated headers such as Set-Cookie
        rebuilt = Response(content=body, status_code=response.status_code)
        rebuilt.raw_headers = [(key, value) for key, value in response.raw_headers if key.lower() != b"content-length"]
        rebuilt.raw_headers.append((b"content-length", str(len(body)).encode("latin-1")))
        return rebuilt
