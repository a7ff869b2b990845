"""
Admin authentication.

The admin API (audit log lookup, erasure, export, stats) is guarded by a
static Bearer key from the ADMIN_API_KEY setting. With no key configured the
admin API is disabled.
"""

import logging
import secrets

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from consentgate.config import settings
from consentgate.exceptions import AuthenticationError

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


async def require_admin(credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme)) -> str:
    """
    Dependency that accepts only requests carrying the admin API key.

    Raises:
        AuthenticationError: If the key is missing, wrong, or not configured
    """
    if not settings.admin_api_key:
        logger.warning("Admin request rejected: ADMIN_API_KEY is not configured")
        raise AuthenticationError("Admin API is disabled")

    if credentials is None or credentials.scheme.lower() != "bearer":
        raise AuthenticationError("Missing admin credentials")

    if not secrets.compare_digest(credentials.credentials, settings.admin_api_key):
        logger.warning("Admin request rejected: invalid API key")
        raise AuthenticationError("Invalid admin credentials")

    return "admin"
