"""Authorization flow models.

Contains the pending-flow record kept between flow start and code exchange,
the authorization request that becomes the browser URL, and the results
handed back to callers.
"""

from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import urlencode

from keyhub.config import AUTHORIZE_PATH


@dataclass(frozen=True)
class PendingFlow:
    """A started flow waiting for its authorization code.

    ``created_at`` is a reading of the registry's monotonic clock.
    """

    state: str
    code_verifier: str
    oauth_server: str
    api_host: str
    created_at: float

    def age(self, now: float) -> float:
        return now - self.created_at


@dataclass(frozen=True)
class AuthorizationRequest:
    """Authorization request parameters for the authorization code flow."""

    client_id: str
    redirect_uri: str
    scope: str
    state: str
    code_challenge: str
    code_challenge_method: str = "S256"
    response_type: str = "code"

    def to_query_params(self) -> dict[str, str]:
        return {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": self.response_type,
            "scope": self.scope,
            "state": self.state,
            "code_challenge": self.code_challenge,
            "code_challenge_method": self.code_challenge_method,
        }

    def build_authorization_url(self, oauth_server: str) -> str:
        """Build the complete authorization URL on ``oauth_server``."""
        return f"{oauth_server}{AUTHORIZE_PATH}?{urlencode(self.to_query_params())}"


@dataclass(frozen=True)
class FlowStart:
    """What a caller needs to send the user off and correlate the callback."""

    auth_url: str
    state: str


@dataclass(frozen=True)
class TokenExchangeResult:
    """Comma-joined API keys obtained by a successful exchange."""

    api_keys: str
