"""
Consent Manager

The per-request consent state machine:

    UNKNOWN ──save──▶ RECORDED_VALID ──policy version bump──▶ RECORDED_STALE
       ▲                    │                                      │
       └──────revoke────────┴──────────────revoke──────────────────┘

Queries are pure and never raise. Anything short of a present record whose
policy version matches the live one denies every optional category.

The in-memory record is only replaced once the store has accepted the new
cookie; SaveResult reports the persisted and logged outcomes separately.
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from consentgate.config import ConsentConfig
from consentgate.consent.logger import ConsentLogger
from consentgate.consent.record import ConsentRecord, normalize_categories
from consentgate.consent.store import ConsentStore
from consentgate.constants import (
    CATEGORY_ORDER,
    OPTIONAL_CATEGORIES,
    SAVE_ACTIONS,
    ActionType,
    Category,
    categories_for_action,
    default_category_map,
    parse_category,
)
from consentgate.exceptions import InvalidActionTypeError

logger = logging.getLogger(__name__)


class ConsentState(str, Enum):
    UNKNOWN = "unknown"
    RECORDED_VALID = "recorded_valid"
    RECORDED_STALE = "recorded_stale"


@dataclass(frozen=True)
class ConsentSnapshot:
    """Read-only view of the consent state, consumed by gating."""

    categories: dict[str, bool] = field(default_factory=default_category_map)
    has_consent: bool = False
    is_valid: bool = False
    consent_id: str | None = None
    state: ConsentState = ConsentState.UNKNOWN

    def is_category_allowed(self, category: Category | str) -> bool:
        resolved = parse_category(category)
        if resolved is None:
            return False
        if resolved is Category.NECESSARY:
            return True
        return self.categories.get(resolved.value, False) is True

    @property
    def all_allowed(self) -> bool:
        return all(self.is_category_allowed(category) for category in OPTIONAL_CATEGORIES)


@dataclass(frozen=True)
class SaveResult:
    record: ConsentRecord
    persisted: bool
    logged: bool

    @property
    def success(self) -> bool:
        return self.persisted


def _coerce_action(action_type: ActionType | str) -> ActionType:
    allowed = sorted(action.value for action in SAVE_ACTIONS)
    try:
        action = ActionType(action_type)
    except ValueError as e:
        raise InvalidActionTypeError(str(action_type), allowed) from e
    if action not in SAVE_ACTIONS:
        raise InvalidActionTypeError(action.value, allowed)
    return action


class ConsentManager:
    """
    Owns the current consent decision for one request.

    Args:
        store: Cookie storage
        config: Consent options snapshot (policy version, logging flags)
        audit_logger: Audit writer; None for read-only use such as gating
    """

    def __init__(self, store: ConsentStore, config: ConsentConfig, audit_logger: ConsentLogger | None = None):
        self.store = store
        self.config = config
        self.audit_logger = audit_logger
        self._record: ConsentRecord | None = store.load()

    # ── Queries ───────────────────────────────────────────────────────────────

    @property
    def record(self) -> ConsentRecord | None:
        return self._record

    @property
    def state(self) -> ConsentState:
        if not self.has_consent():
            return ConsentState.UNKNOWN
        if self.is_valid():
            return ConsentState.RECORDED_VALID
        return ConsentState.RECORDED_STALE

    def has_consent(self) -> bool:
        """True if a record with an id is loaded, stale or not."""
        return self._record is not None and bool(self._record.id)

    def is_valid(self) -> bool:
        """True if the loaded record was given under the live policy version."""
        return self.has_consent() and self._record.policy_version == self.config.policy_version

    def is_category_allowed(self, category: Category | str) -> bool:
        resolved = parse_category(category)
        if resolved is Category.NECESSARY:
            return True
        if resolved is None or not self.is_valid():
            return False
        return self._record.categories.get(resolved.value) is True

    def allowed_categories(self) -> dict[str, bool]:
        """Full category map for the current decision; fail-closed unless valid."""
        if not self.is_valid():
            return default_category_map()
        return {category.value: self.is_category_allowed(category) for category in CATEGORY_ORDER}

    def prior_categories(self) -> dict[str, bool]:
        """
        Stored choices even when stale.

        Used only to pre-fill the preferences UI while the banner re-prompts;
        never for gating.
        """
        if not self.has_consent():
            return default_category_map()
        return normalize_categories(
            {key: value for key, value in self._record.categories.items() if value is True}
        )

    def consent_id(self) -> str | None:
        return self._record.id if self.has_consent() else None

    def snapshot(self) -> ConsentSnapshot:
        return ConsentSnapshot(
            categories=self.allowed_categories(),
            has_consent=self.has_consent(),
            is_valid=self.is_valid(),
            consent_id=self.consent_id(),
            state=self.state,
        )

    # ── Transitions ───────────────────────────────────────────────────────────

    async def accept_all(self) -> SaveResult:
        return await self.save_consent({category.value: True for category in CATEGORY_ORDER}, ActionType.ACCEPT_ALL)

    async def reject_all(self) -> SaveResult:
        return await self.save_consent(default_category_map(), ActionType.REJECT_ALL)

    async def customize(self, categories: Mapping[str, Any]) -> SaveResult:
        return await self.save_consent(categories, ActionType.CUSTOMIZE)

    async def save_consent(self, categories: Mapping[str, Any], action_type: ActionType | str) -> SaveResult:
        """
        Record a new decision: persist the cookie, then write the audit row.

        Raises:
            InvalidActionTypeError: If action_type is not a visitor save action
        """
        action = _coerce_action(action_type)
        record = ConsentRecord.create(categories_for_action(action, categories), self.config.policy_version)

        persisted = self.store.save(record)
        if persisted:
            self._record = record
        else:
            logger.warning("Consent %s not persisted; keeping previous state", record.id)

        logged = False
        if self.audit_logger is not None:
            logged = await self.audit_logger.log(record.id, record.categories, action, record.policy_version)

        logger.info(
            "Consent saved: id=%s action=%s persisted=%s logged=%s",
            record.id,
            action.value,
            persisted,
            logged,
        )
        return SaveResult(record=record, persisted=persisted, logged=logged)

    async def revoke(self) -> bool:
        """
        Withdraw consent: forget the record and expire the cookie.

        The in-memory record is cleared even if the cookie cannot be expired.
        """
        withdrawn = self._record
        self._record = None
        deleted = self.store.delete()

        if self.config.log_revocations and self.audit_logger is not None and withdrawn is not None and withdrawn.id:
            await self.audit_logger.log(
                withdrawn.id,
                default_category_map(),
                ActionType.REVOKE,
                self.config.policy_version,
            )

        logger.info("Consent revoked: id=%s cookie_deleted=%s", withdrawn.id if withdrawn else None, deleted)
        return deleted
