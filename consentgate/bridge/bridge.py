"""
Consent Bridge

Browser-side mirror of ConsentManager. Starts from the server-rendered
BridgeConfig, keeps the working category map, and on every save:

    1. writes the consent cookie (same codec and payload as the server)
    2. updates the working map, hides the banner, publishes a ConsentEvent
    3. schedules the server report (fire-and-forget)
    4. emits the third-party consent signals
    5. asks for a reload if analytics or marketing became newly granted

The cookie write comes first so the decision holds even if the report never
arrives.
"""

import asyncio
import logging
from collections.abc import Callable, Mapping, MutableMapping
from dataclasses import dataclass, field
from typing import Any

from consentgate.bridge.channel import ConsentChannel, ConsentEvent
from consentgate.bridge.page import Page, attach_page_revivers
from consentgate.bridge.reporter import ConsentReporter
from consentgate.consent import codec
from consentgate.consent.record import ConsentRecord, normalize_categories
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
from consentgate.integrations.signals import Signal, consent_signals
from consentgate.schemas.consent import BridgeConfig

logger = logging.getLogger(__name__)

# Categories whose scripts cannot be hot-swapped safely
RELOAD_CATEGORIES = (Category.ANALYTICS, Category.MARKETING)

# Delay the page waits before reloading, so the cookie write settles
RELOAD_DELAY_MS = 100


@dataclass(frozen=True)
class BridgeSaveOutcome:
    record: ConsentRecord
    signals: list[Signal]
    reload: bool
    report_task: asyncio.Task | None = field(default=None, compare=False)


def newly_enables(previous: Mapping[str, bool], current: Mapping[str, bool]) -> bool:
    """True if analytics or marketing is granted now but was not before."""
    return any(
        current.get(category.value) is True and previous.get(category.value) is not True
        for category in RELOAD_CATEGORIES
    )


class ConsentBridge:
    """
    Args:
        config: Server-rendered bridge configuration
        cookie_jar: The page's cookies (document.cookie)
        page: Rendered page to revive content in
        reporter: Sends decisions to the server; None keeps everything local
        signal_sink: Receives every third-party Signal
        channel: Event channel; a private one is created if omitted
    """

    def __init__(
        self,
        config: BridgeConfig,
        cookie_jar: MutableMapping[str, str],
        page: Page | None = None,
        reporter: ConsentReporter | None = None,
        signal_sink: Callable[[Signal], Any] | None = None,
        channel: ConsentChannel | None = None,
    ):
        self.config = config
        self.cookie_jar = cookie_jar
        self.reporter = reporter
        self.signal_sink = signal_sink
        self.channel = channel or ConsentChannel()

        self._categories = normalize_categories(config.categories) if config.is_valid else default_category_map()
        self._is_valid = config.is_valid
        self.banner_visible = not config.is_valid
        self.preferences_open = False
        self.checkboxes: dict[str, bool] = {}

        self.page = page
        if page is not None:
            page.bridge = self
            attach_page_revivers(self.channel, page)

    # ── Queries ───────────────────────────────────────────────────────────────

    def get_consent(self) -> dict[str, bool]:
        return dict(self._categories)

    def is_allowed(self, category: Category | str) -> bool:
        resolved = parse_category(category)
        if resolved is None:
            return False
        return self._categories.get(resolved.value) is True

    def has_consent(self) -> bool:
        return self.config.cookie_name in self.cookie_jar

    # ── UI operations ─────────────────────────────────────────────────────────

    def accept_all(self) -> BridgeSaveOutcome:
        return self.save_consent({category.value: True for category in CATEGORY_ORDER}, ActionType.ACCEPT_ALL)

    def reject_all(self) -> BridgeSaveOutcome:
        return self.save_consent(default_category_map(), ActionType.REJECT_ALL)

    def customize(self, categories: Mapping[str, Any]) -> BridgeSaveOutcome:
        return self.save_consent(categories, ActionType.CUSTOMIZE)

    def open_preferences(self) -> dict[str, bool]:
        """Show the preferences form, pre-filled from the current (or stale prior) choices."""
        self.banner_visible = False
        self.preferences_open = True
        source = self._categories if self._is_valid else self.config.prior_categories
        self.checkboxes = {category.value: source.get(category.value) is True for category in OPTIONAL_CATEGORIES}
        return dict(self.checkboxes)

    def close_preferences(self) -> None:
        self.preferences_open = False
        if not self._is_valid and not self.has_consent():
            self.banner_visible = True

    def save_preferences(self, checkbox_states: Mapping[str, bool] | None = None) -> BridgeSaveOutcome:
        """Save the preferences form; unchecked or missing boxes deny their category."""
        states = dict(self.checkboxes)
        if checkbox_states:
            states.update(checkbox_states)

        categories = {Category.NECESSARY.value: True}
        categories.update({category.value: states.get(category.value) is True for category in OPTIONAL_CATEGORIES})

        outcome = self.customize(categories)
        self.close_preferences()
        return outcome

    # ── Transitions ───────────────────────────────────────────────────────────

    def save_consent(self, categories: Mapping[str, Any], action_type: ActionType | str) -> BridgeSaveOutcome:
        try:
            action = ActionType(action_type)
        except ValueError as e:
            raise InvalidActionTypeError(str(action_type), sorted(a.value for a in SAVE_ACTIONS)) from e
        if action not in SAVE_ACTIONS:
            raise InvalidActionTypeError(action.value, sorted(a.value for a in SAVE_ACTIONS))

        previous = dict(self._categories)
        record = ConsentRecord.create(categories_for_action(action, categories), self.config.policy_version)

        self.cookie_jar[self.config.cookie_name] = codec.encode(record.to_payload())

        self._categories = dict(record.categories)
        self._is_valid = True
        self.banner_visible = False
        self.channel.publish(ConsentEvent(categories=dict(record.categories), action_type=action.value))

        task = self._schedule(self.reporter.report(record.categories, action)) if self.reporter else None

        signals = consent_signals(record.categories, action)
        for signal in signals:
            self._emit(signal)

        reload = newly_enables(previous, self._categories)
        if reload:
            logger.debug("Reload requested in %dms: analytics or marketing newly granted", RELOAD_DELAY_MS)

        return BridgeSaveOutcome(record=record, signals=signals, reload=reload, report_task=task)

    def revoke(self) -> bool:
        """
        Withdraw consent: delete every cookie of the site and show the banner again.

        Returns True: the page has to reload so blocked content is gated again.
        """
        for name in list(self.cookie_jar.keys()):
            del self.cookie_jar[name]

        self._categories = default_category_map()
        self._is_valid = False
        self.banner_visible = True
        self.preferences_open = False

        if self.reporter is not None:
            self._schedule(self.reporter.report_revoke())
        return True

    # ── Internals ─────────────────────────────────────────────────────────────

    def _schedule(self, coro) -> asyncio.Task | None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            coro.close()
            logger.warning("No running event loop; consent report not sent")
            return None
        return loop.create_task(coro)

    def _emit(self, signal: Signal) -> None:
        if self.signal_sink is None:
            return
        try:
            self.signal_sink(signal)
        except Exception as e:
            logger.error(f"Consent signal {signal.target} failed: {e}")
