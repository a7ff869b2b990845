"""
Embed (iframe) blocking.

Blocked iframes are replaced with an inert placeholder that carries the
original src, the category it needs and the frame dimensions. Revival builds
a fresh iframe from that placeholder.
"""

import html
import re

from consentgate.constants import Category

PLACEHOLDER_CLASS = "consentgate-blocked-content"
LOAD_BUTTON_CLASS = "consentgate-load-content"

DEFAULT_WIDTH = "100%"
DEFAULT_HEIGHT = "400"

IFRAME_ALLOW = "accelerometer; autoplay; clipboard-write; encrypted-media; gyroscope; picture-in-picture"

IFRAME_RE = re.compile(
    r"""<iframe\s+[^>]*(?<![\w-])src\s*=\s*["']([^"']+)["'][^>]*>\s*</iframe\s*>""",
    re.IGNORECASE | re.DOTALL,
)

PLACEHOLDER_RE = re.compile(
    r'<div class="' + PLACEHOLDER_CLASS + r'"[^>]*>.*?</button>\s*</div>\s*</div>',
    re.DOTALL,
)


def extract_attribute(tag: str, name: str, default: str | None = None) -> str | None:
    match = re.search(
        r"(?<![\w-])" + re.escape(name) + r"""\s*=\s*["']([^"']*)["']""",
        tag,
        re.IGNORECASE,
    )
    return match.group(1) if match else default


def _css_length(value: str) -> str:
    """Bare numbers are pixels; anything else (100%, 20em) is used as is."""
    value = value.strip()
    return f"{value}px" if value.isdigit() else value


def placeholder_html(
    src: str,
    host: str,
    category: Category | str,
    width: str | None = None,
    height: str | None = None,
    message: str = "Content from {host} is blocked until you accept cookies.",
    button_label: str = "Accept & Load Content",
) -> str:
    """
    Build the placeholder shown instead of a blocked embed.

    Args:
        src: Original iframe src
        host: Host shown in the message
        category: Category that has to be granted to load the embed
        width: Original width attribute (default 100%)
        height: Original height attribute (default 400)
        message: Message template; ``{host}`` is replaced by the bold host
        button_label: Label of the load button

    Returns:
        str: Placeholder markup; every interpolated value is HTML-escaped
    """
    category_value = category.value if isinstance(category, Category) else str(category)
    width = width or DEFAULT_WIDTH
    height = height or DEFAULT_HEIGHT

    text = html.escape(message).replace("{host}", f"<strong>{html.escape(host)}</strong>")

    return (
        f'<div class="{PLACEHOLDER_CLASS}"'
        f' data-src="{html.escape(src)}"'
        f' data-category="{html.escape(category_value)}"'
        f' data-width="{html.escape(width)}"'
        f' data-height="{html.escape(height)}"'
        f' style="width:{html.escape(_css_length(width))};height:{html.escape(_css_length(height))}">'
        f'<div class="{PLACEHOLDER_CLASS}__inner">'
        f"<p>{text}</p>"
        f'<button type="button" class="{LOAD_BUTTON_CLASS}" data-category="{html.escape(category_value)}">'
        f"{html.escape(button_label)}</button>"
        f"</div></div>"
    )


def placeholder_src(placeholder: str) -> str | None:
    value = extract_attribute(placeholder, "data-src")
    return html.unescape(value) if value is not None else None


def placeholder_category(placeholder: str) -> str | None:
    return extract_attribute(placeholder, "data-category")


def revive_placeholder(placeholder: str) -> str:
    """Build the live iframe for a placeholder produced by placeholder_html."""
    src = extract_attribute(placeholder, "data-src", "")
    width = extract_attribute(placeholder, "data-width", DEFAULT_WIDTH)
    height = extract_attribute(placeholder, "data-height", DEFAULT_HEIGHT)

    # src/width/height are still escaped from the placeholder attributes
    return (
        f'<iframe src="{src}" width="{width}" height="{height}"'
        f' frameborder="0" allowfullscreen allow="{IFRAME_ALLOW}"></iframe>'
    )
