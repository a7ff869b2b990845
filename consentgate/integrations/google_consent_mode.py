"""
Google Consent Mode v2 defaults.

Rendered into the page head before any Google tag runs. A second default
call denies everything for visitors in the EEA, the UK and Switzerland until
an update arrives.
"""

import json
from collections.abc import Mapping
from typing import Any

from consentgate.constants import Category
from consentgate.integrations.signals import DENIED, GRANTED, google_consent_update

WAIT_FOR_UPDATE_MS = 500

EEA_REGIONS: tuple[str, ...] = (
    "AT", "BE", "BG", "HR", "CY", "CZ", "DK", "EE", "FI", "FR", "DE",
    "GR", "HU", "IE", "IT", "LV", "LT", "LU", "MT", "NL", "PL", "PT",
    "RO", "SK", "SI", "ES", "SE", "IS", "LI", "NO", "GB", "CH",
)  # fmt: skip


def consent_defaults(categories: Mapping[str, bool]) -> dict[str, Any]:
    """Default flags for the current visitor (fail-closed map expected)."""
    functional = GRANTED if categories.get(Category.FUNCTIONAL.value) is True else DENIED
    defaults: dict[str, Any] = dict(google_consent_update(categories))
    defaults.update(
        {
            "functionality_storage": functional,
            "personalization_storage": functional,
            "security_storage": GRANTED,
            "wait_for_update": WAIT_FOR_UPDATE_MS,
        }
    )
    return defaults


def region_defaults() -> dict[str, Any]:
    return {
        "analytics_storage": DENIED,
        "ad_storage": DENIED,
        "ad_user_data": DENIED,
        "ad_personalization": DENIED,
        "region": list(EEA_REGIONS),
    }


def render_defaults_script(categories: Mapping[str, bool]) -> str:
    """Inline <script> that declares gtag() and sets both default calls."""
    # json.dumps output is safe inside <script> once "</" is broken up
    defaults = json.dumps(consent_defaults(categories)).replace("</", "<\\/")
    regional = json.dumps(region_defaults()).replace("</", "<\\/")
    return (
        "<script>"
        "window.dataLayer=window.dataLayer||[];"
        "function gtag(){dataLayer.push(arguments);}"
        f"gtag('consent','default',{defaults});"
        f"gtag('consent','default',{regional});"
        "</script>"
    )
