"""
CSRF Protection Middleware for FastAPI

Double-submit protection for the visitor-facing consent endpoints: the
signed token lives in a cookie and must be echoed in the X-CSRF-Token header
of every state-changing request.
"""

import secrets
from collections.abc import Callable

from fastapi import Request
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from consentgate.config import settings
from consentgate.constants import CSRF_COOKIE_NAME, CSRF_HEADER_NAME
from consentgate.consent.store import is_secure_request
from consentgate.exception_handlers import error_response_for
from consentgate.exceptions import CSRFError

SAFE_METHODS = ("GET", "HEAD", "OPTIONS")


class CSRFMiddleware(BaseHTTPMiddleware):
    """
    Middleware to protect against CSRF attacks.

    - Issues a signed token cookie on safe requests when none is present
    - Validates header against cookie for POST, PUT, PATCH, DELETE requests
    - Exempts safe methods (GET, HEAD, OPTIONS) from validation
    - Exempts endpoints that use Bearer token authentication (admin API)
    """

    def __init__(
        self,
        app,
        secret_key: str | None = None,
        cookie_name: str = CSRF_COOKIE_NAME,
        header_name: str = CSRF_HEADER_NAME,
        exempt_paths: list[str] | None = None,
        token_expiry: int | None = None,
    ):
        super().__init__(app)
        self.secret_key = secret_key or settings.secret_key
        self.cookie_name = cookie_name
        self.header_name = header_name
        self.token_expiry = token_expiry or settings.csrf_token_expiry
        self.serializer = URLSafeTimedSerializer(self.secret_key, salt="consentgate-csrf")

        self.exempt_paths = exempt_paths or [
            "/docs",
            "/redoc",
            "/openapi.json",
            "/health",
        ]

    def _is_exempt(self, path: str) -> bool:
        """Check if the path is exempt from CSRF protection."""
        return any(path.startswith(exempt_path) for exempt_path in self.exempt_paths)

    def _generate_token(self) -> str:
        """Generate a new CSRF token."""
        return self.serializer.dumps(secrets.token_urlsafe(32))

    def _validate_token(self, token: str) -> bool:
        """Validate a CSRF token."""
        try:
            self.serializer.loads(token, max_age=self.token_expiry)
            return True
        except (BadSignature, SignatureExpired):
            return False

    def _reject(self, request: Request, message: str) -> Response:
        # Raised exceptions bypass the app handlers inside BaseHTTPMiddleware
        return error_response_for(CSRFError(message), str(request.url.path))

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Process the request and validate CSRF tokens."""

        # Safe methods don't need CSRF protection
        if request.method in SAFE_METHODS:
            existing = request.cookies.get(self.cookie_name)
            issued = None
            if existing and self._validate_token(existing):
                request.state.csrf_token = existing
            else:
                issued = self._generate_token()
                request.state.csrf_token = issued

            response = await call_next(request)

            if issued and not self._is_exempt(request.url.path):
                response.set_cookie(
                    key=self.cookie_name,
                    value=issued,
                    max_age=self.token_expiry,
                    httponly=True,
                    samesite="lax",
                    secure=is_secure_request(request),
                )
            return response

        if self._is_exempt(request.url.path):
            return await call_next(request)

        # Admin endpoints authenticate with Bearer tokens and are exempt
        if request.headers.get("Authorization", "").startswith("Bearer "):
            return await call_next(request)

        submitted_token = request.headers.get(self.header_name)
        token_from_cookie = request.cookies.get(self.cookie_name)

        if not submitted_token:
            return self._reject(request, "CSRF token missing")

        if not token_from_cookie:
            return self._reject(request, "CSRF cookie missing")

        if not secrets.compare_digest(submitted_token, token_from_cookie):
            return self._reject(request, "CSRF token mismatch")

        if not self._validate_token(submitted_token):
            return self._reject(request, "CSRF token invalid or expired")

        return await call_next(request)


def get_csrf_token(request: Request) -> str:
    """Return the token issued (or accepted) for this request."""
    return getattr(request.state, "csrf_token", request.cookies.get(CSRF_COOKIE_NAME, ""))
