"""
Embed hosts (iframes) and the consent category each one requires.

Ordered (matcher, category) pairs; the first matcher contained in the embed
host or URL wins. Declared cookies may contribute extra host matchers, which
are always consulted after the built-in table.
"""

import re
from collections.abc import Iterable
from urllib.parse import urlsplit

from consentgate.config import DeclaredCookie
from consentgate.constants import Category

EMBED_HOSTS: tuple[tuple[str, Category], ...] = (
    # Video platforms
    ("youtube.com", Category.MARKETING),
    ("youtube-nocookie.com", Category.MARKETING),
    ("youtu.be", Category.MARKETING),
    ("vimeo.com", Category.MARKETING),
    ("player.vimeo.com", Category.MARKETING),
    ("dailymotion.com", Category.MARKETING),
    ("twitch.tv", Category.MARKETING),
    ("tiktok.com", Category.MARKETING),
    # Social embeds
    ("facebook.com", Category.MARKETING),
    ("instagram.com", Category.MARKETING),
    ("twitter.com", Category.MARKETING),
    ("x.com", Category.MARKETING),
    ("linkedin.com", Category.MARKETING),
    ("pinterest.com", Category.MARKETING),
    # Maps
    ("google.com/maps", Category.FUNCTIONAL),
    ("maps.google.com", Category.FUNCTIONAL),
    ("openstreetmap.org", Category.FUNCTIONAL),
    # Audio
    ("soundcloud.com", Category.FUNCTIONAL),
    ("spotify.com", Category.FUNCTIONAL),
    # Code playgrounds
    ("codepen.io", Category.FUNCTIONAL),
    ("jsfiddle.net", Category.FUNCTIONAL),
)

_HOST_LIKE_RE = re.compile(r"^(?:[a-z0-9-]+\.)+[a-z]{2,}(?:/\S*)?$")


def embed_host(url: str | None) -> str | None:
    """Return the lowercased host of an embed URL with any ``www.`` prefix removed."""
    if not url:
        return None
    try:
        host = urlsplit(url.strip()).hostname
    except ValueError:
        return None
    if not host:
        return None
    return re.sub(r"^www\.", "", host.lower())


def declared_host_matchers(declared_cookies: Iterable[DeclaredCookie]) -> tuple[tuple[str, Category], ...]:
    """Turn declared cookie providers that look like hosts into extra matchers."""
    matchers: list[tuple[str, Category]] = []
    for cookie in declared_cookies:
        provider = re.sub(r"^(?:https?://)?(?:www\.)?", "", cookie.provider.strip().lower())
        if provider and _HOST_LIKE_RE.match(provider):
            matchers.append((provider, cookie.category))
    return tuple(matchers)


def category_for_embed(url: str | None, extra: Iterable[tuple[str, Category]] = ()) -> Category | None:
    """
    Get the category an embed URL belongs to.

    Args:
        url: iframe/embed src
        extra: Additional matchers consulted after the built-in table

    Returns:
        Category | None: Category of the first match, or None if the URL has no
        host or matches nothing
    """
    host = embed_host(url)
    if host is None:
        return None

    full_url = url.lower()
    for matcher, category in (*EMBED_HOSTS, *extra):
        if matcher in host or matcher in full_url:
            return category

    return None
