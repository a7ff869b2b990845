"""Constants package for consentgate."""

from .categories import (
    CATEGORY_ORDER,
    OPTIONAL_CATEGORIES,
    SAVE_ACTIONS,
    ActionType,
    Category,
    categories_for_action,
    default_category_map,
    parse_category,
)
from .cookies import (
    CONSENT_COOKIE_NAME,
    CSRF_COOKIE_NAME,
    CSRF_HEADER_NAME,
    DAY_IN_SECONDS,
    YEAR_IN_SECONDS,
)

__all__ = [
    # Category constants
    "Category",
    "ActionType",
    "CATEGORY_ORDER",
    "OPTIONAL_CATEGORIES",
    "SAVE_ACTIONS",
    "parse_category",
    "default_category_map",
    "categories_for_action",
    # Cookie constants
    "CONSENT_COOKIE_NAME",
    "CSRF_COOKIE_NAME",
    "CSRF_HEADER_NAME",
    "DAY_IN_SECONDS",
    "YEAR_IN_SECONDS",
]
