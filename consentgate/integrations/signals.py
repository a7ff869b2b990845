"""
Third-party consent signals.

Pure translations of a category map into what tag managers and pixels
expect. The browser bridge hands the resulting Signal objects to its sink in
the order they are listed by consent_signals().
"""

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from consentgate.constants import OPTIONAL_CATEGORIES, ActionType, Category

DATALAYER_EVENT = "consentgate_consent_update"

GRANTED = "granted"
DENIED = "denied"


@dataclass(frozen=True)
class Signal:
    """One call into a global page function, e.g. ``gtag('consent', 'update', {...})``."""

    target: str
    args: tuple[Any, ...]


def _flag(categories: Mapping[str, bool], category: Category) -> str:
    return GRANTED if categories.get(category.value) is True else DENIED


def google_consent_update(categories: Mapping[str, bool]) -> dict[str, str]:
    """Google Consent Mode v2 update flags."""
    return {
        "analytics_storage": _flag(categories, Category.ANALYTICS),
        "ad_storage": _flag(categories, Category.MARKETING),
        "ad_user_data": _flag(categories, Category.MARKETING),
        "ad_personalization": _flag(categories, Category.MARKETING),
    }


def meta_pixel_action(categories: Mapping[str, bool]) -> str:
    return "grant" if categories.get(Category.MARKETING.value) is True else "revoke"


def datalayer_event(categories: Mapping[str, bool], action_type: ActionType | str) -> dict[str, Any]:
    action = action_type.value if isinstance(action_type, ActionType) else str(action_type)
    consent = {Category.NECESSARY.value: True}
    consent.update({category.value: categories.get(category.value) is True for category in OPTIONAL_CATEGORIES})
    return {
        "event": DATALAYER_EVENT,
        "consentgate_consent": consent,
        "consentgate_action": action,
    }


def consent_signals(categories: Mapping[str, bool], action_type: ActionType | str) -> list[Signal]:
    """All signals for one consent change: dataLayer push, gtag update, fbq consent."""
    return [
        Signal("dataLayer.push", (datalayer_event(categories, action_type),)),
        Signal("gtag", ("consent", "update", google_consent_update(categories))),
        Signal("fbq", ("consent", meta_pixel_action(categories))),
    ]
