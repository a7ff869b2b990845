"""
Known tracking scripts and the consent category each one requires.

The registry is an ordered tuple, not a dict: the first entry whose pattern
occurs in a script URL decides its category, so overlapping patterns must
stay in this order.
"""

from dataclasses import dataclass

from consentgate.constants import Category


@dataclass(frozen=True)
class KnownScript:
    key: str
    category: Category
    patterns: tuple[str, ...]


KNOWN_SCRIPTS: tuple[KnownScript, ...] = (
    # Analytics
    KnownScript(
        "google_analytics",
        Category.ANALYTICS,
        (
            "google-analytics.com/analytics.js",
            "google-analytics.com/ga.js",
            "googletagmanager.com/gtag/js",
            "googletagmanager.com/gtm.js",
        ),
    ),
    KnownScript("facebook_pixel", Category.MARKETING, ("connect.facebook.net", "facebook.com/tr")),
    KnownScript("hotjar", Category.ANALYTICS, ("static.hotjar.com", "script.hotjar.com")),
    KnownScript("linkedin_insight", Category.MARKETING, ("snap.licdn.com", "platform.linkedin.com")),
    KnownScript("twitter_pixel", Category.MARKETING, ("static.ads-twitter.com", "analytics.twitter.com")),
    KnownScript("tiktok_pixel", Category.MARKETING, ("analytics.tiktok.com",)),
    KnownScript("pinterest_tag", Category.MARKETING, ("pintrk", "s.pinimg.com/ct")),
    KnownScript("microsoft_clarity", Category.ANALYTICS, ("clarity.ms",)),
    KnownScript("hubspot", Category.MARKETING, ("js.hs-scripts.com", "js.hsforms.net")),
    # Chat widgets
    KnownScript("intercom", Category.FUNCTIONAL, ("widget.intercom.io",)),
    KnownScript("crisp", Category.FUNCTIONAL, ("client.crisp.chat",)),
    # Player APIs loaded as scripts
    KnownScript("youtube_embed", Category.MARKETING, ("youtube.com/embed", "youtube-nocookie.com/embed")),
    KnownScript("vimeo_embed", Category.MARKETING, ("player.vimeo.com",)),
)


def category_for_url(url: str | None) -> Category | None:
    """
    Get the category a script URL belongs to.

    Args:
        url: Script source URL

    Returns:
        Category | None: Category of the first matching entry, or None if unknown
    """
    if not url:
        return None

    haystack = url.lower()
    for script in KNOWN_SCRIPTS:
        for pattern in script.patterns:
            if pattern in haystack:
                return script.category

    return None


def patterns_for_category(category: Category) -> list[str]:
    """Get every pattern registered for a category, in registry order."""
    patterns: list[str] = []
    for script in KNOWN_SCRIPTS:
        if script.category is category:
            patterns.extend(script.patterns)
    return patterns
