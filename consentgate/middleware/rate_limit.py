"""
Rate Limiting for FastAPI

Limits the public consent save endpoint per client. Clients are keyed by the
same proxy-aware IP resolution the audit log uses.
"""

from fastapi import Request
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded

from consentgate.consent.logger import resolve_client_ip
from consentgate.exception_handlers import error_response_for
from consentgate.exceptions import RateLimitExceededError


def client_key(request: Request) -> str:
    peer = request.client.host if request.client else None
    return resolve_client_ip(request.headers, peer)


# Create rate limiter instance
limiter = Limiter(
    key_func=client_key,
    storage_uri="memory://",  # Use memory storage (upgrade to Redis for production)
    headers_enabled=True,  # Include rate limit headers in responses
)


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded):
    response = error_response_for(RateLimitExceededError(f"Rate limit exceeded: {exc.detail}"), str(request.url.path))
    return request.app.state.limiter._inject_headers(response, request.state.view_rate_limit)


def configure_rate_limiting(app):
    """
    Configure rate limiting for the FastAPI application.

    Args:
        app: FastAPI application instance
    """
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
