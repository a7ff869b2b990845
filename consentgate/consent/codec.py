"""
Consent cookie codec.

Encodes a consent payload as URL-safe base64 of compact JSON so the value
needs no quoting in a Set-Cookie header. Decoding also accepts the standard
base64 alphabet (as written by ``btoa`` in browsers), padded or not.

Decoding never raises: any malformed value yields None, which callers treat
exactly like "no consent yet".
"""

import base64
import binascii
import json
import logging
import re
from collections.abc import Mapping
from typing import Any
from urllib.parse import unquote

logger = logging.getLogger(__name__)

_URLSAFE_RE = re.compile(r"^[A-Za-z0-9_-]*={0,2}$")
_STANDARD_RE = re.compile(r"^[A-Za-z0-9+/]*={0,2}$")


def encode(payload: Mapping[str, Any]) -> str:
    """Serialize a consent payload to an ASCII cookie-safe string."""
    data = json.dumps(dict(payload), separators=(",", ":"), sort_keys=True).encode("utf-8")
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def _pad(value: str) -> str:
    stripped = value.rstrip("=")
    return stripped + "=" * (-len(stripped) % 4)


def decode(value: str | None) -> dict[str, Any] | None:
    """
    Parse a cookie value back into a consent payload.

    Args:
        value: Raw cookie value

    Returns:
        dict | None: The payload, or None for missing, corrupt or foreign values
    """
    if not value or not isinstance(value, str):
        return None

    raw = unquote(value.strip().strip('"'))

    try:
        if _URLSAFE_RE.match(raw):
            data = base64.urlsafe_b64decode(_pad(raw))
        elif _STANDARD_RE.match(raw):
            data = base64.b64decode(_pad(raw), validate=True)
        else:
            logger.debug("Consent cookie is not base64, ignoring")
            return None
        payload = json.loads(data.decode("utf-8"))
    except (binascii.Error, ValueError) as e:
        # UnicodeDecodeError and JSONDecodeError are ValueErrors
        logger.debug(f"Consent cookie could not be decoded: {e}")
        return None

    if not isinstance(payload, dict):
        logger.debug("Consent cookie payload is not an object, ignoring")
        return None

    return payload
