"""
ConsentRecord: the canonical consent decision.

A record is never mutated. Every accept/reject/save builds a new record with
a fresh UUID4, and revocation discards it.
"""

import time
import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from consentgate.constants import CATEGORY_ORDER, Category, parse_category


def as_bool(value: Any) -> bool:
    """Coerce a submitted category value to a boolean, treating anything odd as denial."""
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return False


def normalize_categories(categories: Mapping[str, Any] | None) -> dict[str, bool]:
    """
    Build a complete category map from untrusted input.

    Unknown keys are dropped, missing categories default to False and
    ``necessary`` is always True.
    """
    normalized = {category.value: False for category in CATEGORY_ORDER}
    if isinstance(categories, Mapping):
        for key, value in categories.items():
            category = parse_category(key)
            if category is not None:
                normalized[category.value] = as_bool(value)
    normalized[Category.NECESSARY.value] = True
    return normalized


@dataclass(frozen=True)
class ConsentRecord:
    id: str
    policy_version: str
    timestamp: int
    categories: dict[str, bool] = field(default_factory=dict)

    @classmethod
    def create(cls, categories: Mapping[str, Any], policy_version: str) -> "ConsentRecord":
        """Stamp a new decision with a fresh id and the current time."""
        return cls(
            id=str(uuid.uuid4()),
            policy_version=policy_version,
            timestamp=int(time.time()),
            categories=normalize_categories(categories),
        )

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "ConsentRecord":
        """
        Build a record from a decoded cookie payload.

        Categories are kept as stored; whitelisting happens in ConsentManager.
        """
        categories = payload.get("categories")
        timestamp = payload.get("timestamp")
        return cls(
            id=str(payload.get("id") or ""),
            policy_version=str(payload.get("version") or ""),
            timestamp=timestamp if isinstance(timestamp, int) and not isinstance(timestamp, bool) else 0,
            categories=dict(categories) if isinstance(categories, Mapping) else {},
        )

    def to_payload(self) -> dict[str, Any]:
        """Return the persisted cookie payload."""
        return {
            "id": self.id,
            "version": self.policy_version,
            "timestamp": self.timestamp,
            "categories": dict(self.categories),
        }
