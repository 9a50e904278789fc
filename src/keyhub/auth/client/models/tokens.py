"""Token models.

Contains the token pair held by the token store, the token endpoint response
model, and the form-encoded requests sent to the token and revocation
endpoints.
"""

from __future__ import annotations

from dataclasses import dataclass

from pydantic import BaseModel, Field, TypeAdapter


@dataclass(frozen=True)
class TokenPair:
    """Access token plus the refresh token, when the server issued one."""

    access_token: str
    refresh_token: str | None = None


class TokenResponse(BaseModel):
    """Successful token endpoint response (RFC 6749 Section 5.1).

    Only ``access_token`` is required. Servers do not always reissue a
    refresh token, and expiry is informational.
    """

    access_token: str = Field(min_length=1)
    refresh_token: str | None = None
    token_type: str | None = None
    expires_in: float | None = None

    def to_token_pair(self) -> TokenPair:
        return TokenPair(
            access_token=self.access_token,
            refresh_token=self.refresh_token or None,
        )


TOKEN_RESPONSE_ADAPTER = TypeAdapter(TokenResponse)


@dataclass(frozen=True)
class TokenRequest:
    """Authorization code exchange request (RFC 6749 Section 4.1.3).

    Includes the PKCE code_verifier (RFC 7636).
    """

    token_endpoint: str
    code: str
    redirect_uri: str
    client_id: str
    code_verifier: str
    grant_type: str = "authorization_code"

    def to_form_data(self) -> dict[str, str]:
        """Convert to form data for application/x-www-form-urlencoded request.

        Token requests must use form encoding, not JSON (RFC 6749 Section 4.1.3).
        """
        return {
            "grant_type": self.grant_type,
            "client_id": self.client_id,
            "code": self.code,
            "redirect_uri": self.redirect_uri,
            "code_verifier": self.code_verifier,
        }


@dataclass(frozen=True)
class RefreshTokenRequest:
    """Refresh token request (RFC 6749 Section 6)."""

    token_endpoint: str
    refresh_token: str
    client_id: str
    grant_type: str = "refresh_token"

    def to_form_data(self) -> dict[str, str]:
        return {
            "grant_type": self.grant_type,
            "refresh_token": self.refresh_token,
            "client_id": self.client_id,
        }


@dataclass(frozen=True)
class RevocationRequest:
    """Token revocation request (RFC 7009 Section 2.1)."""

    revocation_endpoint: str
    token: str
    token_type_hint: str = "access_token"

    def to_form_data(self) -> dict[str, str]:
        return {"token": self.token, "token_type_hint": self.token_type_hint}
