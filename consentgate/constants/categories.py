"""
Consent Category Constants

Defines the closed set of consent categories and the consent action types
so that category names are never hardcoded throughout the codebase.
"""

from collections.abc import Mapping
from enum import Enum
from typing import Any


class Category(str, Enum):
    """Enumeration of consent categories, in display order."""

    NECESSARY = "necessary"
    FUNCTIONAL = "functional"
    ANALYTICS = "analytics"
    MARKETING = "marketing"


class ActionType(str, Enum):
    """Consent actions recorded in the audit log."""

    ACCEPT_ALL = "accept_all"
    REJECT_ALL = "reject_all"
    CUSTOMIZE = "customize"
    # Audit-only: written when a visitor withdraws consent and revocation
    # logging is enabled. Never accepted by the save endpoint.
    REVOKE = "revoke"


# Category order is significant for disclosure listings and signal payloads
CATEGORY_ORDER: tuple[Category, ...] = (
    Category.NECESSARY,
    Category.FUNCTIONAL,
    Category.ANALYTICS,
    Category.MARKETING,
)

OPTIONAL_CATEGORIES: tuple[Category, ...] = tuple(c for c in CATEGORY_ORDER if c is not Category.NECESSARY)

# Actions a visitor may submit through the save-consent flow
SAVE_ACTIONS: frozenset[ActionType] = frozenset({ActionType.ACCEPT_ALL, ActionType.REJECT_ALL, ActionType.CUSTOMIZE})


def parse_category(value: str) -> Category | None:
    """
    Resolve a category name to a Category member.

    Args:
        value: Category name (case-insensitive)

    Returns:
        Category | None: The matching category, or None for unknown names
    """
    if isinstance(value, Category):
        return value
    try:
        return Category(str(value).strip().lower())
    except ValueError:
        return None


def default_category_map() -> dict[str, bool]:
    """Return the fail-closed category map: necessary granted, everything else denied."""
    return {category.value: category is Category.NECESSARY for category in CATEGORY_ORDER}


def categories_for_action(action: ActionType, categories: Mapping[str, Any]) -> Mapping[str, Any]:
    """
    Return the category map a save action stands for.

    accept_all grants every category and reject_all only necessary, whatever
    the submitted map says; customize keeps the submitted map.
    """
    if action is ActionType.ACCEPT_ALL:
        return {category.value: True for category in CATEGORY_ORDER}
    if action is ActionType.REJECT_ALL:
        return default_category_map()
    return categories
