"""Consent state: record codec, cookie store, audit logger and the state machine."""

from .logger import ConsentLogger, anonymize_ip, hash_ip, resolve_client_ip
from .manager import ConsentManager, ConsentSnapshot, ConsentState, SaveResult
from .record import ConsentRecord, normalize_categories
from .store import ConsentStore, is_secure_request

__all__ = [
    "ConsentLogger",
    "ConsentManager",
    "ConsentRecord",
    "ConsentSnapshot",
    "ConsentState",
    "ConsentStore",
    "SaveResult",
    "anonymize_ip",
    "hash_ip",
    "is_secure_request",
    "normalize_categories",
    "resolve_client_ip",
]
