"""
Gating Engine

Decides, for a consent snapshot, which scripts and embeds on a page may run
and rewrites the HTML accordingly. The engine holds no state beyond its
inputs; build one per request.

Decision per resource:

    PASS   no registry entry matches; left untouched
    ALLOW  matched, and the category is granted (necessary always is)
    BLOCK  matched, and the category is not granted
"""

import html
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from enum import Enum

from consentgate.blocking.content_blocker import (
    IFRAME_RE,
    PLACEHOLDER_RE,
    extract_attribute,
    placeholder_category,
    placeholder_html,
    revive_placeholder,
)
from consentgate.blocking.known_hosts import category_for_embed, declared_host_matchers, embed_host
from consentgate.blocking.known_scripts import category_for_url
from consentgate.blocking.script_blocker import (
    SCRIPT_TAG_RE,
    ShouldBlock,
    blocked_category,
    block_script_tag,
    revive_script_tag,
    script_src,
)
from consentgate.config import ConsentConfig
from consentgate.consent.manager import ConsentSnapshot
from consentgate.constants import Category

logger = logging.getLogger(__name__)


class GateAction(str, Enum):
    ALLOW = "allow"
    BLOCK = "block"
    PASS = "pass"


@dataclass(frozen=True)
class GateDecision:
    action: GateAction
    category: Category | None = None

    @property
    def blocked(self) -> bool:
        return self.action is GateAction.BLOCK


class GatingEngine:
    """
    Applies a consent snapshot to scripts and embeds.

    Args:
        snapshot: Consent state for the current visitor
        config: Consent options (blocking switches, placeholder texts, declared cookies)
        script_filters: Callables ``(src, category) -> bool``; any False keeps
            a matching script running
    """

    def __init__(
        self,
        snapshot: ConsentSnapshot,
        config: ConsentConfig,
        script_filters: Iterable[ShouldBlock] = (),
    ):
        self.snapshot = snapshot
        self.config = config
        self.script_filters = tuple(script_filters)
        self._extra_hosts = declared_host_matchers(config.declared_cookies)

    def _decide(self, category: Category | None) -> GateDecision:
        if category is None:
            return GateDecision(GateAction.PASS)
        if self.snapshot.is_category_allowed(category):
            return GateDecision(GateAction.ALLOW, category)
        return GateDecision(GateAction.BLOCK, category)

    def decide_script(self, src: str | None) -> GateDecision:
        decision = self._decide(category_for_url(src))
        if decision.blocked and not all(check(src, decision.category) for check in self.script_filters):
            logger.debug("Script %s kept running by filter", src)
            return GateDecision(GateAction.ALLOW, decision.category)
        return decision

    def decide_embed(self, src: str | None) -> GateDecision:
        return self._decide(category_for_embed(src, self._extra_hosts))

    # ── Rewriting ─────────────────────────────────────────────────────────────

    def gate_script_tag(self, tag: str) -> str:
        decision = self.decide_script(script_src(tag))
        if not decision.blocked:
            return tag
        return block_script_tag(tag, decision.category)

    def gate_iframe(self, tag: str) -> str:
        match = IFRAME_RE.match(tag)
        if match is None:
            return tag

        src = html.unescape(match.group(1))
        decision = self.decide_embed(src)
        if not decision.blocked:
            return tag

        return placeholder_html(
            src=src,
            host=embed_host(src) or src,
            category=decision.category,
            width=extract_attribute(tag, "width"),
            height=extract_attribute(tag, "height"),
            message=self.config.blocked_content_message,
            button_label=self.config.blocked_content_button,
        )

    def process_html(self, page: str) -> str:
        """
        Rewrite a full page: block ungranted tracker scripts and embeds.

        Returns the page unchanged when every optional category is granted.
        """
        if not self.config.enabled or self.snapshot.all_allowed:
            return page

        if self.config.script_blocking:
            page = SCRIPT_TAG_RE.sub(lambda m: self.gate_script_tag(m.group(0)), page)
        if self.config.content_blocking:
            page = IFRAME_RE.sub(lambda m: self.gate_iframe(m.group(0)), page)
        return page


def revive_html(page: str, categories: Mapping[str, bool]) -> str:
    """
    Revive blocked scripts and embed placeholders whose category is now granted.

    Mirrors what the browser does after a consent change; untouched markup
    keeps its blocked form.
    """

    def granted(category: str | None) -> bool:
        if category is None:
            return False
        return category == Category.NECESSARY.value or categories.get(category) is True

    def revive_script(match) -> str:
        tag = match.group(0)
        return revive_script_tag(tag) if granted(blocked_category(tag)) else tag

    def revive_embed(match) -> str:
        placeholder = match.group(0)
        return revive_placeholder(placeholder) if granted(placeholder_category(placeholder)) else placeholder

    page = SCRIPT_TAG_RE.sub(revive_script, page)
    return PLACEHOLDER_RE.sub(revive_embed, page)
