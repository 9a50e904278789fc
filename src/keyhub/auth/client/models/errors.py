"""Exception hierarchy for OAuth client errors.

Provides specific exception types for different failure modes so callers can
tell a rejected host from an expired flow from a server failure, and show the
user a readable message for each.
"""

from __future__ import annotations


class OAuth2Error(Exception):
    """Base exception for all OAuth client errors."""

    pass


class UnauthorizedHostError(OAuth2Error):
    """Raised when a host is not in the allow-list.

    Always raised before any network call is made.
    """

    def __init__(self, host: str):
        super().__init__(f"Unauthorized API host: {host}")
        self.host = host


class PKCEError(OAuth2Error):
    """Raised when PKCE parameter generation fails."""

    pass


class FlowError(OAuth2Error):
    """Raised for pending-flow bookkeeping failures."""

    pass


class FlowExpiredError(FlowError):
    """Raised when no live flow matches a state.

    Covers unknown states, flows past their lifetime, and replays of a state
    that was already exchanged.
    """

    def __init__(self, message: str = "OAuth flow expired or not found"):
        super().__init__(message)


class FlowStateCollisionError(FlowError):
    """Raised when a new flow reuses the state of a live flow."""

    pass


class TokenError(OAuth2Error):
    """Raised when token operations fail."""

    pass


class TokenExchangeFailedError(TokenError):
    """Raised when the token or API key endpoint rejects a request.

    ``status`` is the HTTP status code, or None when the request never got a
    response (connection refused, timeout, ...).
    """

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status


class InvalidResponseFormatError(OAuth2Error):
    """Raised when a server response fails structural validation."""

    def __init__(
        self,
        message: str = "Invalid response format from server",
        reason: str | None = None,
    ):
        super().__init__(message)
        self.reason = reason


class NoApiKeysError(OAuth2Error):
    """Raised when the API key endpoint returned no usable keys."""

    def __init__(self, message: str = "No API keys received"):
        super().__init__(message)


class NoTokenError(OAuth2Error):
    """Raised when an authenticated call is made without an access token."""

    def __init__(self, message: str = "No OAuth token found"):
        super().__init__(message)


class BalanceError(OAuth2Error):
    """Raised when the balance endpoint fails or reports an unsuccessful result."""

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status


class TokenStoreError(OAuth2Error):
    """Raised when tokens cannot be persisted."""

    pass
