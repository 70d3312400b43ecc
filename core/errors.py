from typing import Optional


class MarketplaceError(Exception):
    pass


class NotAuthenticated(MarketplaceError):
    pass


class PermissionDenied(MarketplaceError):
    pass


class NotFound(MarketplaceError):
    pass


class InvalidRequest(MarketplaceError):
    pass


class RemoteWriteFailure(MarketplaceError):
    """A write against the document store did not go through.

    The message is the store's own and is shown to the user unchanged.
    """


def require_user(user_id: Optional[str]) -> str:
    if not user_id:
        raise NotAuthenticated("Please sign in first")
    return user_id
