"""Browser-side consent runtime: bridge, event channel, page revival and server reporting."""

from .bridge import BridgeSaveOutcome, ConsentBridge, newly_enables
from .channel import ConsentChannel, ConsentEvent
from .page import Page, attach_page_revivers
from .reporter import ConsentReporter

__all__ = [
    "BridgeSaveOutcome",
    "ConsentBridge",
    "ConsentChannel",
    "ConsentEvent",
    "ConsentReporter",
    "Page",
    "attach_page_revivers",
    "newly_enables",
]
