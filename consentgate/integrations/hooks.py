"""
Integration points for other server-side code.

ConsentQueries wraps a ConsentManager so code that only needs to ask
questions about the visitor's consent never sees the transitions.
"""

from consentgate.consent.manager import ConsentManager
from consentgate.constants import Category


class ConsentQueries:
    def __init__(self, manager: ConsentManager):
        self._manager = manager

    def consent_categories(self) -> dict[str, bool]:
        return self._manager.allowed_categories()

    def has_consent(self) -> bool:
        return self._manager.has_consent()

    def is_category_allowed(self, category: Category | str) -> bool:
        return self._manager.is_category_allowed(category)

    def consent_id(self) -> str | None:
        return self._manager.consent_id()

    def as_dict(self) -> dict:
        return {
            "categories": self.consent_categories(),
            "has_consent": self.has_consent(),
            "is_valid": self._manager.is_valid(),
            "consent_id": self.consent_id(),
        }
