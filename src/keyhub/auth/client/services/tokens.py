"""Token endpoint and API key endpoint interactions.

Implements RFC 6749 code exchange and refresh with PKCE (RFC 7636), RFC 7009
revocation, and the bearer-authenticated API key fetch that follows a
successful exchange.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from keyhub.auth.client.models.credentials import API_KEYS_ADAPTER, flatten_api_keys
from keyhub.auth.client.models.errors import (
    InvalidResponseFormatError,
    NoApiKeysError,
    TokenExchangeFailedError,
)
from keyhub.auth.client.models.tokens import (
    TOKEN_RESPONSE_ADAPTER,
    RefreshTokenRequest,
    RevocationRequest,
    TokenRequest,
    TokenResponse,
)
from keyhub.auth.client.models.validation import Invalid, validate
from keyhub.config import API_KEYS_PATH

logger = logging.getLogger(__name__)

FORM_HEADERS = {
    "Content-Type": "application/x-www-form-urlencoded",
    "Accept": "application/json",
}


class OAuth2TokenManager:
    """Manages token exchange, refresh, revocation and API key retrieval.

    Uses application/x-www-form-urlencoded encoding for every token endpoint
    call, as RFC 6749 requires.
    """

    def __init__(
        self, http_client: httpx.AsyncClient | None = None, timeout: float = 30.0
    ):
        """Initialize the token manager.

        Args:
            http_client: Shared HTTP client; one is created (and owned) if omitted
            timeout: HTTP request timeout in seconds for an owned client
        """
        self._owns_client = http_client is None
        self._http_client = (
            http_client
            if http_client is not None
            else httpx.AsyncClient(timeout=timeout)
        )

    async def exchange_code_for_token(self, token_request: TokenRequest) -> TokenResponse:
        """Exchange an authorization code for tokens.

        Args:
            token_request: Code, verifier and client details

        Returns:
            TokenResponse: Validated token response

        Raises:
            TokenExchangeFailedError: If the endpoint is unreachable or answers non-2xx
            InvalidResponseFormatError: If the response lacks an access token
        """
        logger.debug(f"Exchanging authorization code at {token_request.token_endpoint}")

        try:
            response = await self._http_client.post(
                token_request.token_endpoint,
                data=token_request.to_form_data(),
                headers=FORM_HEADERS,
            )
        except httpx.HTTPError as e:
            raise TokenExchangeFailedError(
                f"Failed to exchange code for token: {e}"
            ) from e

        if not response.is_success:
            logger.error(
                f"Token exchange failed: {response.status_code} {_snippet(response)}"
            )
            raise TokenExchangeFailedError(
                f"Failed to exchange code for token: {response.status_code}",
                status=response.status_code,
            )

        result = validate(TOKEN_RESPONSE_ADAPTER, _json_body(response))
        if isinstance(result, Invalid):
            logger.error(f"Invalid token response format: {result.reason}")
            raise InvalidResponseFormatError(reason=result.reason)

        logger.info("Token exchange successful")
        return result.value

    async def refresh_access_token(
        self, refresh_request: RefreshTokenRequest
    ) -> TokenResponse | None:
        """Refresh an access token using a refresh token.

        Implements RFC 6749 Section 6. Never raises: any failure is logged and
        reported as None so callers can fall back to their previous state.
        """
        logger.debug(f"Refreshing access token at {refresh_request.token_endpoint}")

        try:
            response = await self._http_client.post(
                refresh_request.token_endpoint,
                data=refresh_request.to_form_data(),
                headers=FORM_HEADERS,
            )
        except httpx.HTTPError as e:
            logger.error(f"Token refresh request failed: {e}")
            return None

        if not response.is_success:
            logger.error(
                f"Token refresh failed: {response.status_code} {_snippet(response)}"
            )
            return None

        try:
            payload = response.json()
        except ValueError:
            logger.error("Token refresh response is not valid JSON")
            return None

        result = validate(TOKEN_RESPONSE_ADAPTER, payload)
        if isinstance(result, Invalid):
            logger.error(f"Token refresh response rejected: {result.reason}")
            return None

        return result.value

    async def revoke_token(self, revocation_request: RevocationRequest) -> bool:
        """Ask the server to invalidate a token (RFC 7009).

        Best effort: returns False instead of raising when the server is
        unreachable or rejects the request.
        """
        try:
            response = await self._http_client.post(
                revocation_request.revocation_endpoint,
                data=revocation_request.to_form_data(),
                headers=FORM_HEADERS,
            )
        except httpx.HTTPError as e:
            logger.warning(f"Failed to revoke token on server: {e}")
            return False

        if not response.is_success:
            logger.warning(f"Token revocation returned {response.status_code}")
            return False

        logger.debug("Revoked token on server")
        return True

    async def fetch_api_keys(self, api_host: str, access_token: str) -> str:
        """Fetch the account's API keys with a fresh access token.

        Returns:
            All non-empty keys joined with ","

        Raises:
            TokenExchangeFailedError: If the endpoint is unreachable or answers non-2xx
            InvalidResponseFormatError: If the response has an unknown shape
            NoApiKeysError: If no usable key remains after normalization
        """
        try:
            response = await self._http_client.get(
                f"{api_host}{API_KEYS_PATH}",
                headers={"Authorization": f"Bearer {access_token}"},
            )
        except httpx.HTTPError as e:
            raise TokenExchangeFailedError(f"Failed to fetch API keys: {e}") from e

        if not response.is_success:
            logger.error(
                f"Failed to fetch API keys: {response.status_code} {_snippet(response)}"
            )
            raise TokenExchangeFailedError(
                f"Failed to fetch API keys: {response.status_code}",
                status=response.status_code,
            )

        result = validate(API_KEYS_ADAPTER, _json_body(response))
        if isinstance(result, Invalid):
            logger.error(f"Invalid API key response format: {result.reason}")
            raise InvalidResponseFormatError(reason=result.reason)

        api_keys = ",".join(flatten_api_keys(result.value))
        if not api_keys:
            raise NoApiKeysError()

        logger.debug("Successfully obtained API keys")
        return api_keys

    async def close(self) -> None:
        """Close the HTTP client if this manager created it."""
        if self._owns_client:
            await self._http_client.aclose()


def _json_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError as e:
        raise InvalidResponseFormatError(reason="response body is not JSON") from e


def _snippet(response: httpx.Response, limit: int = 200) -> str:
    return response.text[:limit]
