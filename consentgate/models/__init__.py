from .consent_log import ConsentLog
from .consent_option import ConsentOption

__all__ = [
    "ConsentLog",
    "ConsentOption",
]
