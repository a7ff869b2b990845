"""
Consent change channel.

Explicit publish/subscribe with a fixed payload. Subscribers run
synchronously, in subscription order, after the publisher has updated its
working state. A failing subscriber is logged and does not stop the rest.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConsentEvent:
    categories: dict[str, bool]
    action_type: str


Subscriber = Callable[[ConsentEvent], None]


class ConsentChannel:
    def __init__(self):
        self._subscribers: list[Subscriber] = []

    def subscribe(self, subscriber: Subscriber) -> Callable[[], None]:
        """Register a subscriber; returns a callable that removes it again."""
        self._subscribers.append(subscriber)

        def unsubscribe() -> None:
            if subscriber in self._subscribers:
                self._subscribers.remove(subscriber)

        return unsubscribe

    def publish(self, event: ConsentEvent) -> int:
        """Deliver an event; returns how many subscribers handled it without error."""
        delivered = 0
        for subscriber in list(self._subscribers):
            try:
                subscriber(event)
                delivered += 1
            except Exception as e:
                logger.error(f"Consent subscriber {subscriber!r} failed: {e}", exc_info=True)
        return delivered
