"""
Consent cookie storage.

The only component that reads or writes the raw consent cookie. Everything
else works with ConsentRecord objects.
"""

import logging
from collections.abc import Mapping
from datetime import datetime, timedelta, timezone

from starlette.requests import Request
from starlette.responses import Response

from consentgate.config import ConsentConfig
from consentgate.consent import codec
from consentgate.consent.record import ConsentRecord
from consentgate.constants import CONSENT_COOKIE_NAME, YEAR_IN_SECONDS

logger = logging.getLogger(__name__)


def is_secure_request(request: Request) -> bool:
    """Return True when the request reached us over TLS (directly or via a proxy)."""
    if request.url.scheme == "https":
        return True
    return request.headers.get("x-forwarded-proto", "").split(",")[0].strip().lower() == "https"


class ConsentStore:
    """
    Reads the consent cookie from the incoming request and writes it to the
    outgoing response.

    Args:
        cookies: Incoming request cookies
        response: Outgoing response to set cookies on (None for read-only use)
        config: Consent options snapshot (duration, path, domain)
        secure: Whether the connection is TLS
    """

    def __init__(
        self,
        cookies: Mapping[str, str],
        response: Response | None,
        config: ConsentConfig,
        secure: bool = False,
    ):
        self.cookies = cookies
        self.response = response
        self.config = config
        self.secure = secure

    @classmethod
    def from_request(cls, request: Request, response: Response | None, config: ConsentConfig) -> "ConsentStore":
        return cls(request.cookies, response, config, secure=is_secure_request(request))

    def load(self) -> ConsentRecord | None:
        """Load the stored record; a missing or corrupt cookie yields None."""
        raw = self.cookies.get(CONSENT_COOKIE_NAME)
        if raw is None:
            return None

        payload = codec.decode(raw)
        if payload is None:
            return None

        return ConsentRecord.from_payload(payload)

    def save(self, record: ConsentRecord) -> bool:
        """Persist the record for consent_duration days."""
        expires = datetime.now(timezone.utc) + timedelta(days=self.config.consent_duration)
        return self._set_cookie(codec.encode(record.to_payload()), expires)

    def delete(self) -> bool:
        """Expire the cookie by overwriting it with a date in the past."""
        expires = datetime.now(timezone.utc) - timedelta(seconds=YEAR_IN_SECONDS)
        return self._set_cookie("", expires)

    def _set_cookie(self, value: str, expires: datetime) -> bool:
        if self.response is None:
            logger.warning("Consent cookie not written: no response to attach it to")
            return False

        try:
            self.response.set_cookie(
                key=CONSENT_COOKIE_NAME,
                value=value,
                expires=expires,
                path=self.config.cookie_path,
                domain=self.config.cookie_domain or None,
                secure=self.secure,
                httponly=False,  # Must be readable by the browser bridge
                samesite="lax",
            )
        except (ValueError, TypeError) as e:
            logger.error(f"Failed to set consent cookie: {e}")
            return False

        return True
