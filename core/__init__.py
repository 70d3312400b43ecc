from .config import Settings
from .errors import (
    MarketplaceError,
    NotAuthenticated,
    NotFound,
    PermissionDenied,
    InvalidRequest,
    RemoteWriteFailure,
    require_user,
)

__all__ = [
    "Settings",
    "MarketplaceError",
    "NotAuthenticated",
    "NotFound",
    "PermissionDenied",
    "InvalidRequest",
    "RemoteWriteFailure",
    "require_user",
]
