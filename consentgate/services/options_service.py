"""
Consent Options Service

Stores per-site overrides of the consent options in the consent_options table
and builds the ConsentConfig snapshot every request works from.

There is no process-wide cache: each call to load_consent_config reads the
table again, so an updated option is picked up by the next request.
"""

import json
import logging
from typing import Any

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from consentgate.config import ConsentConfig, option_defaults
from consentgate.constants import CATEGORY_ORDER
from consentgate.exceptions import ValidationError
from consentgate.models.consent_option import ConsentOption

logger = logging.getLogger(__name__)


async def get_stored_options(db: AsyncSession) -> dict[str, Any]:
    """Return the stored overrides only (JSON-decoded), skipping unreadable rows."""
    result = await db.execute(select(ConsentOption))
    stored: dict[str, Any] = {}
    for option in result.scalars().all():
        try:
            stored[option.key] = json.loads(option.value)
        except ValueError:
            logger.warning(f"Ignoring unreadable consent option {option.key!r}")
    return stored


async def get_options(db: AsyncSession) -> dict[str, Any]:
    """Return every option: the defaults overlaid with the stored overrides."""
    return (await load_consent_config(db)).model_dump(mode="json")


async def load_consent_config(db: AsyncSession) -> ConsentConfig:
    """
    Build a fresh ConsentConfig snapshot.

    Unknown keys are ignored. A stored value that fails validation is logged
    and dropped, leaving that option at its default.
    """
    defaults = option_defaults()
    merged = dict(defaults)

    for key, value in (await get_stored_options(db)).items():
        if key not in defaults:
            logger.debug(f"Ignoring unknown consent option {key!r}")
            continue
        try:
            ConsentConfig(**{key: value})
        except PydanticValidationError as e:
            logger.warning(f"Ignoring invalid value for consent option {key!r}: {e.errors()[0]['msg']}")
            continue
        merged[key] = value

    return ConsentConfig(**merged)


async def set_option(key: str, value: Any, db: AsyncSession) -> Any:
    """
    Validate and store a single option override.

    Returns:
        The value as normalized by ConsentConfig

    Raises:
        ValidationError: If the key is unknown or the value is invalid
    """
    if key not in option_defaults():
        raise ValidationError(f"Unknown option: {key}", field=key)

    try:
        normalized = ConsentConfig(**{key: value}).model_dump(mode="json")[key]
    except PydanticValidationError as e:
        messages = [err["msg"] for err in e.errors()]
        raise ValidationError(f"Invalid value for {key}", field=key, details={"errors": messages}) from e

    option = await db.get(ConsentOption, key)
    if option is None:
        db.add(ConsentOption(key=key, value=json.dumps(normalized)))
    else:
        option.value = json.dumps(normalized)
    await db.commit()

    logger.info("Consent option updated: %s", key)
    return normalized


async def reset_options(db: AsyncSession) -> int:
    """Drop every stored override. Returns the number of rows removed."""
    result = await db.execute(delete(ConsentOption))
    await db.commit()
    logger.info("Consent options reset to defaults (%d overrides removed)", result.rowcount)
    return result.rowcount


def declared_cookie_groups(config: ConsentConfig) -> list[dict[str, Any]]:
    """
    Declared cookies grouped by category, in category display order.

    Entries without a name are dropped; categories without cookies are omitted.
    """
    labels = config.category_labels()
    grouped: dict[str, list] = {}
    for cookie in config.declared_cookies:
        if not cookie.name.strip():
            continue
        grouped.setdefault(cookie.category.value, []).append(cookie)

    return [
        {
            "category": category.value,
            "name": labels[category.value]["name"],
            "description": labels[category.value]["description"],
            "cookies": grouped[category.value],
        }
        for category in CATEGORY_ORDER
        if category.value in grouped
    ]
