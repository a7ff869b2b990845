"""
Rendered page model for the browser bridge.

Holds the page HTML as served (already gated) and applies consent changes to
it the way the browser would: blocked scripts and embed placeholders whose
category becomes granted are revived in place, without a reload.
"""

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING

from consentgate.blocking.content_blocker import (
    PLACEHOLDER_RE,
    placeholder_category,
    placeholder_src,
    revive_placeholder,
)
from consentgate.blocking.engine import revive_html
from consentgate.bridge.channel import ConsentChannel, ConsentEvent

if TYPE_CHECKING:
    from consentgate.bridge.bridge import ConsentBridge

logger = logging.getLogger(__name__)


class Page:
    def __init__(self, html: str):
        self.html = html
        self.bridge: "ConsentBridge | None" = None

    def apply(self, categories: dict[str, bool]) -> None:
        self.html = revive_html(self.html, categories)

    def placeholders(self) -> list[tuple[str | None, str | None]]:
        """(src, category) of every embed placeholder still on the page."""
        return [
            (placeholder_src(match.group(0)), placeholder_category(match.group(0)))
            for match in PLACEHOLDER_RE.finditer(self.html)
        ]

    def click_placeholder(self, src: str) -> bool:
        """
        Load one blocked embed.

        Grants the placeholder's category through the bridge (a customize
        save) and swaps in the iframe. Returns False if no placeholder has
        that src.
        """
        for match in PLACEHOLDER_RE.finditer(self.html):
            placeholder = match.group(0)
            if placeholder_src(placeholder) != src:
                continue

            category = placeholder_category(placeholder)
            # Swap first so the clicked embed loads even if the save is vetoed
            self.html = self.html[: match.start()] + revive_placeholder(placeholder) + self.html[match.end() :]

            if self.bridge is not None and category:
                categories = self.bridge.get_consent()
                categories[category] = True
                self.bridge.customize(categories)
            return True

        logger.debug("No blocked embed with src %s", src)
        return False


def attach_page_revivers(channel: ConsentChannel, page: Page) -> Callable[[], None]:
    """Revive page content on every consent event. Returns the unsubscribe callable."""

    def revive(event: ConsentEvent) -> None:
        page.apply(event.categories)

    return channel.subscribe(revive)
