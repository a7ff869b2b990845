from .audit import ConsentLogList, ConsentLogOut, ConsentStats, ErasureResponse
from .consent import (
    BridgeConfig,
    CategoryStatusResponse,
    ConsentRevokeResponse,
    ConsentSaveRequest,
    ConsentSaveResponse,
    ConsentStateResponse,
    DeclaredCookieGroup,
)

# Define the public API of this module
__all__ = [
    "BridgeConfig",
    "CategoryStatusResponse",
    "ConsentLogList",
    "ConsentLogOut",
    "ConsentRevokeResponse",
    "ConsentSaveRequest",
    "ConsentSaveResponse",
    "ConsentStateResponse",
    "ConsentStats",
    "DeclaredCookieGroup",
    "ErasureResponse",
]
