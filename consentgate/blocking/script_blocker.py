"""
Script tag blocking.

A blocked script keeps its src, attributes and inline body but gets an inert
type so the browser never executes it. The category marker lets the browser
bridge find and revive it once the category is granted.
"""

import re
from collections.abc import Callable

from consentgate.constants import Category

CATEGORY_ATTR = "data-consent-category"
ORIGINAL_TYPE_ATTR = "data-consent-type"
INERT_TYPE = "text/plain"
EXECUTABLE_TYPE = "text/javascript"

SCRIPT_TAG_RE = re.compile(r"<script\b[^>]*>.*?</script\s*>", re.IGNORECASE | re.DOTALL)
_OPEN_TAG_RE = re.compile(r"<script\b[^>]*>", re.IGNORECASE)


def _attr_re(name: str) -> re.Pattern:
    return re.compile(r"(?<![\w-])" + re.escape(name) + r"""\s*=\s*(["'])(.*?)\1""", re.IGNORECASE | re.DOTALL)


_SRC_RE = _attr_re("src")
_TYPE_RE = _attr_re("type")
_CATEGORY_RE = _attr_re(CATEGORY_ATTR)
_ORIGINAL_TYPE_RE = _attr_re(ORIGINAL_TYPE_ATTR)

# (src, category) -> False to keep a matching script running
ShouldBlock = Callable[[str, Category], bool]


def _split(tag: str) -> tuple[str, str]:
    match = _OPEN_TAG_RE.match(tag)
    if match is None:
        return "", tag
    return match.group(0), tag[match.end() :]


def script_src(tag: str) -> str | None:
    """Return the src attribute of a script tag, if any."""
    open_tag, _ = _split(tag)
    match = _SRC_RE.search(open_tag)
    return match.group(2) if match else None


def blocked_category(tag: str) -> str | None:
    """Return the category a blocked script is waiting for, or None if not blocked."""
    open_tag, _ = _split(tag)
    match = _CATEGORY_RE.search(open_tag)
    return match.group(2) if match else None


def block_script_tag(tag: str, category: Category | str) -> str:
    """
    Make a script tag inert and mark it with its category.

    Any type is replaced by text/plain; a non-JavaScript type (e.g. module) is
    remembered so revival can restore it. Already blocked tags are returned
    unchanged.
    """
    open_tag, rest = _split(tag)
    if not open_tag or _CATEGORY_RE.search(open_tag):
        return tag

    category_value = category.value if isinstance(category, Category) else str(category)
    extra = f' {CATEGORY_ATTR}="{category_value}"'

    type_match = _TYPE_RE.search(open_tag)
    if type_match is None:
        new_open = open_tag[: len("<script")] + f' type="{INERT_TYPE}"' + extra + open_tag[len("<script") :]
    else:
        original = type_match.group(2).strip()
        if original and original.lower() != EXECUTABLE_TYPE:
            extra += f' {ORIGINAL_TYPE_ATTR}="{original}"'
        new_open = open_tag[: type_match.start()] + f'type="{INERT_TYPE}"' + open_tag[type_match.end() :]
        new_open = new_open[: len("<script")] + extra + new_open[len("<script") :]

    return new_open + rest


def revive_script_tag(tag: str) -> str:
    """Undo block_script_tag: executable type back, markers removed, body kept."""
    open_tag, rest = _split(tag)
    if not open_tag or not _CATEGORY_RE.search(open_tag):
        return tag

    original = _ORIGINAL_TYPE_RE.search(open_tag)
    restored_type = original.group(2) if original else EXECUTABLE_TYPE

    new_open = open_tag
    for name in (CATEGORY_ATTR, ORIGINAL_TYPE_ATTR, "type"):
        new_open = re.sub(r"\s+" + re.escape(name) + r"""\s*=\s*(["']).*?\1""", "", new_open, flags=re.IGNORECASE)
    new_open = new_open[: len("<script")] + f' type="{restored_type}"' + new_open[len("<script") :]

    return new_open + rest
