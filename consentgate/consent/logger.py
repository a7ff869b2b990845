"""
Consent audit logger.

Writes one pseudonymized, append-only ConsentLog row per consent action.
The client IP is anonymized (IPv4 last octet, IPv6 last 80 bits) before it is
salted and hashed, so the stored value can only be matched, never reversed.

Logging is best effort: failures are logged and reported as False, never
raised, so a broken audit table cannot block a visitor's consent decision.
"""

import hashlib
import ipaddress
import json
import logging
from collections.abc import Mapping

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.requests import Request

from consentgate.config import settings
from consentgate.constants import ActionType
from consentgate.models.consent_log import ConsentLog

logger = logging.getLogger(__name__)

# Checked in order; the first syntactically valid address wins
CLIENT_IP_HEADERS = ("cf-connecting-ip", "x-forwarded-for", "x-real-ip")

UNKNOWN_IP = "0.0.0.0"  # nosec B104
MAX_USER_AGENT_LENGTH = 255

_IPV4_HOST_MASK = 0xFF
_IPV6_HOST_MASK = (1 << 80) - 1


def _valid_ip(value: str) -> str | None:
    try:
        return str(ipaddress.ip_address(value.strip()))
    except ValueError:
        return None


def resolve_client_ip(headers: Mapping[str, str], peer: str | None = None) -> str:
    """
    Resolve the client IP from proxy headers, falling back to the socket peer.

    Args:
        headers: Request headers (case-insensitive mapping)
        peer: Socket peer address

    Returns:
        str: The client IP, or 0.0.0.0 if nothing valid was found
    """
    for header in CLIENT_IP_HEADERS:
        value = headers.get(header)
        if not value:
            continue
        # X-Forwarded-For may carry a proxy chain; the client is first
        candidate = _valid_ip(value.split(",")[0])
        if candidate:
            return candidate

    if peer:
        candidate = _valid_ip(peer)
        if candidate:
            return candidate

    return UNKNOWN_IP


def anonymize_ip(ip: str) -> str:
    """
    Zero the host part of an address: last octet for IPv4, last 80 bits for IPv6.

    Non-IP input is returned unchanged.
    """
    try:
        address = ipaddress.ip_address(ip.strip())
    except ValueError:
        return ip

    if isinstance(address, ipaddress.IPv4Address):
        return str(ipaddress.IPv4Address(int(address) & ~_IPV4_HOST_MASK))
    return str(ipaddress.IPv6Address(int(address) & ~_IPV6_HOST_MASK))


def hash_ip(ip: str, secret: str) -> str:
    """Return the SHA-256 hex digest of the anonymized IP salted with the server secret."""
    return hashlib.sha256((anonymize_ip(ip) + secret).encode("utf-8")).hexdigest()


def truncate_user_agent(user_agent: str | None) -> str:
    return (user_agent or "")[:MAX_USER_AGENT_LENGTH]


class ConsentLogger:
    """
    Writes consent actions to the consent_logs table.

    Args:
        db: Database session used for the insert
        client_ip: Resolved (not yet anonymized) client IP
        user_agent: Raw User-Agent header
        secret: Salt for IP hashing
    """

    def __init__(self, db: AsyncSession, client_ip: str, user_agent: str | None = None, secret: str | None = None):
        self.db = db
        self.client_ip = client_ip
        self.user_agent = truncate_user_agent(user_agent)
        self.secret = secret if secret is not None else settings.ip_salt

    @classmethod
    def from_request(cls, request: Request, db: AsyncSession) -> "ConsentLogger":
        peer = request.client.host if request.client else None
        return cls(
            db=db,
            client_ip=resolve_client_ip(request.headers, peer),
            user_agent=request.headers.get("user-agent"),
        )

    @property
    def ip_hash(self) -> str:
        return hash_ip(self.client_ip, self.secret)

    async def log(
        self,
        consent_id: str,
        categories: Mapping[str, bool],
        action_type: ActionType | str,
        policy_version: str,
    ) -> bool:
        """
        Insert one audit row.

        Returns:
            bool: True if the row was committed
        """
        action = action_type.value if isinstance(action_type, ActionType) else str(action_type)
        row = ConsentLog(
            consent_id=consent_id,
            ip_hash=self.ip_hash,
            categories=json.dumps(dict(categories)),
            policy_version=policy_version,
            action_type=action,
            user_agent=self.user_agent,
        )

        try:
            self.db.add(row)
            await self.db.commit()
        except SQLAlchemyError as e:
            logger.error(f"Failed to log consent {consent_id}: {e}")
            try:
                await self.db.rollback()
            except SQLAlchemyError as rollback_error:
                logger.warning(f"Rollback after failed consent log also failed: {rollback_error}")
            return False

        logger.info("Consent logged: id=%s action=%s version=%s", consent_id, action, policy_version)
        return True
