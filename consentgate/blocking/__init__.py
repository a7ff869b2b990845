"""Script and embed gating driven by the consent snapshot."""

from .content_blocker import placeholder_html, revive_placeholder
from .engine import GateAction, GateDecision, GatingEngine, revive_html
from .known_hosts import EMBED_HOSTS, category_for_embed
from .known_scripts import KNOWN_SCRIPTS, category_for_url, patterns_for_category
from .script_blocker import block_script_tag, revive_script_tag

__all__ = [
    "EMBED_HOSTS",
    "GateAction",
    "GateDecision",
    "GatingEngine",
    "KNOWN_SCRIPTS",
    "block_script_tag",
    "category_for_embed",
    "category_for_url",
    "patterns_for_category",
    "placeholder_html",
    "revive_html",
    "revive_placeholder",
    "revive_script_tag",
]
