"""
Server reporting for browser-side consent decisions.

Fire-and-forget: a failed or timed-out request is logged and reported as
False. Nothing is retried and the caller's state is never reverted.
"""

import logging
from collections.abc import Mapping

import httpx

from consentgate.constants import CSRF_HEADER_NAME, ActionType

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 5.0


class ConsentReporter:
    """
    Sends consent decisions to the save endpoint.

    Args:
        save_url: Absolute URL of the consent endpoint
        csrf_token: Token echoed in the CSRF header
        cookies: Cookie jar sent along with every request (consent and CSRF cookies)
        client: Optional shared client; a short-lived one is created per call otherwise
        timeout: Request timeout in seconds
    """

    def __init__(
        self,
        save_url: str,
        csrf_token: str | None = None,
        cookies: Mapping[str, str] | None = None,
        client: httpx.AsyncClient | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self.save_url = save_url
        self.csrf_token = csrf_token
        self.cookies = cookies if cookies is not None else {}
        self.client = client
        self.timeout = timeout

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.csrf_token:
            headers[CSRF_HEADER_NAME] = self.csrf_token
        return headers

    async def _send(self, method: str, **kwargs) -> httpx.Response:
        if self.client is not None:
            self.client.cookies.update(dict(self.cookies))
            return await self.client.request(method, self.save_url, headers=self._headers(), **kwargs)

        async with httpx.AsyncClient(timeout=self.timeout, cookies=dict(self.cookies)) as client:
            return await client.request(method, self.save_url, headers=self._headers(), **kwargs)

    async def report(self, categories: Mapping[str, bool], action_type: ActionType | str) -> bool:
        """POST one decision. Returns True if the server accepted it."""
        action = action_type.value if isinstance(action_type, ActionType) else str(action_type)
        try:
            response = await self._send("POST", json={"categories": dict(categories), "action_type": action})
            response.raise_for_status()
        except httpx.TimeoutException:
            logger.warning("Consent report timed out: %s", self.save_url)
            return False
        except httpx.HTTPStatusError as e:
            logger.warning(f"Consent report rejected with {e.response.status_code}: {self.save_url}")
            return False
        except httpx.HTTPError as e:
            logger.warning(f"Consent report failed: {e}")
            return False

        logger.debug("Consent report delivered: action=%s", action)
        return True

    async def report_revoke(self) -> bool:
        """DELETE the server-side consent. Returns True if the server accepted it."""
        try:
            response = await self._send("DELETE")
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning(f"Consent revoke report failed: {e}")
            return False
        return True
