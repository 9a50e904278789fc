"""OAuth client for the key service.

Ties the flow manager, token manager, refresher and request executor
together behind the operations the desktop application calls: start a
login, exchange the callback code for API keys, read and write tokens, look
up the balance, and log out.
"""

from __future__ import annotations

import logging

import httpx

from keyhub.auth.client.models.credentials import (
    BALANCE_RESPONSE_ADAPTER,
    Balance,
)
from keyhub.auth.client.models.errors import (
    BalanceError,
    InvalidResponseFormatError,
    TokenStoreError,
)
from keyhub.auth.client.models.flow import FlowStart, TokenExchangeResult
from keyhub.auth.client.models.tokens import RevocationRequest, TokenRequest
from keyhub.auth.client.models.validation import Invalid, validate
from keyhub.auth.client.primitives.hosts import HostValidator
from keyhub.auth.client.services.flow import OAuth2FlowManager
from keyhub.auth.client.services.refresh import TokenRefresher
from keyhub.auth.client.services.requests import AuthenticatedRequestExecutor
from keyhub.auth.client.services.storage import TokenStore
from keyhub.auth.client.services.tokens import OAuth2TokenManager
from keyhub.config import BALANCE_PATH, REVOKE_PATH, TOKEN_PATH, OAuthSettings

logger = logging.getLogger(__name__)


class OAuthKeyClient:
    """Authorization code + PKCE client that turns a login into API keys.

    All collaborators are injected so tests can swap the HTTP client, the
    token store, the clock and the random source. One instance is meant to
    live for the whole application run; its flow registry holds the pending
    logins.
    """

    def __init__(
        self,
        token_store: TokenStore,
        settings: OAuthSettings | None = None,
        http_client: httpx.AsyncClient | None = None,
        flow_manager: OAuth2FlowManager | None = None,
        coalesce_refreshes: bool = False,
    ):
        """Initialize the client.

        Args:
            token_store: Where access and refresh tokens are kept
            settings: Client configuration; defaults are used if omitted
            http_client: Shared HTTP client; one is created (and owned) if omitted
            flow_manager: Pre-built flow manager, e.g. with a fixed clock or RNG;
                its host validator is used for every host check
            coalesce_refreshes: Share one in-flight refresh per API host
        """
        self.settings = settings if settings is not None else OAuthSettings()
        self.token_store = token_store

        self._owns_client = http_client is None
        self._http_client = (
            http_client
            if http_client is not None
            else httpx.AsyncClient(timeout=self.settings.http_timeout)
        )

        if flow_manager is None:
            flow_manager = OAuth2FlowManager(
                self.settings,
                host_validator=HostValidator(self.settings.allowed_hosts),
            )
        self.flow_manager = flow_manager
        # Every host check goes through the flow manager's allow-list
        self._host_validator = flow_manager.host_validator
        self.token_manager = OAuth2TokenManager(http_client=self._http_client)
        self.refresher = TokenRefresher(
            self.token_manager, token_store, self.settings, coalesce=coalesce_refreshes
        )
        self.executor = AuthenticatedRequestExecutor(
            self._http_client, token_store, self.refresher
        )

    async def start_oauth_flow(
        self, oauth_server: str, api_host: str | None = None
    ) -> FlowStart:
        """Begin a login and return the URL to open in the browser.

        Raises:
            UnauthorizedHostError: If either host is not allow-listed
        """
        return self.flow_manager.start_authorization_flow(oauth_server, api_host)

    async def exchange_token(self, code: str, state: str) -> TokenExchangeResult:
        """Exchange the callback code for tokens, then fetch the API keys.

        The pending flow is consumed before any network call, so a state can
        only ever be exchanged once, whatever the outcome.

        Args:
            code: Authorization code from the callback
            state: State from the callback

        Returns:
            TokenExchangeResult with the comma-joined API keys

        Raises:
            FlowExpiredError: Unknown, expired or already used state
            TokenExchangeFailedError: Token or key endpoint failed
            InvalidResponseFormatError: Malformed token or key response
            NoApiKeysError: The account has no usable keys
            TokenStoreError: Tokens could not be saved
        """
        flow = self.flow_manager.consume_flow(state)

        logger.debug("Exchanging code for token")
        token_response = await self.token_manager.exchange_code_for_token(
            TokenRequest(
                token_endpoint=f"{flow.oauth_server}{TOKEN_PATH}",
                code=code,
                redirect_uri=self.settings.redirect_uri,
                client_id=self.settings.client_id,
                code_verifier=flow.code_verifier,
            )
        )

        tokens = token_response.to_token_pair()
        await self.save_token(tokens.access_token, tokens.refresh_token)
        logger.debug("Obtained access token, fetching API keys")

        api_keys = await self.token_manager.fetch_api_keys(
            flow.api_host, tokens.access_token
        )
        return TokenExchangeResult(api_keys=api_keys)

    async def save_token(
        self, access_token: str, refresh_token: str | None = None
    ) -> None:
        """Store tokens; an empty refresh token keeps the stored one.

        Raises:
            TokenStoreError: If the store fails
        """
        try:
            await self.token_store.save(access_token, refresh_token or None)
        except Exception as e:
            logger.error(f"Failed to save token: {e}")
            raise TokenStoreError("Failed to save OAuth token") from e
        logger.debug("Saved OAuth tokens")

    async def get_token(self) -> str | None:
        """Return the stored access token, or None (also when the store fails)."""
        try:
            return await self.token_store.get_access_token() or None
        except Exception as e:
            logger.error(f"Failed to read token: {e}")
            return None

    async def has_token(self) -> bool:
        return bool(await self.get_token())

    async def get_balance(self, api_host: str) -> Balance:
        """Look up the remaining balance in currency units.

        Raises:
            UnauthorizedHostError: If api_host is not allow-listed
            NoTokenError: If not logged in
            BalanceError: If the endpoint fails or reports success=false
            InvalidResponseFormatError: If the response has an unknown shape
        """
        self._host_validator.validate(api_host)

        try:
            response = await self.executor.call(api_host, BALANCE_PATH)
        except httpx.HTTPError as e:
            logger.error(f"Failed to get balance: {e}")
            raise BalanceError(f"Failed to get balance: {e}") from e

        if not response.is_success:
            logger.error(f"Failed to get balance: HTTP {response.status_code}")
            raise BalanceError(
                f"Failed to get balance: HTTP {response.status_code}",
                status=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise InvalidResponseFormatError(reason="response body is not JSON") from e

        result = validate(BALANCE_RESPONSE_ADAPTER, payload)
        if isinstance(result, Invalid):
            logger.error(f"Invalid balance response format: {result.reason}")
            raise InvalidResponseFormatError(reason=result.reason)

        if not result.value.success:
            raise BalanceError("API returned success: false", status=response.status_code)

        balance = result.value.data.quota / self.settings.quota_per_currency_unit
        logger.info(f"Balance fetched successfully: {balance}")
        return Balance(balance=balance)

    async def logout(self, api_host: str) -> None:
        """Revoke the access token (best effort) and clear local tokens.

        Local tokens are cleared even when revocation fails.

        Raises:
            UnauthorizedHostError: If api_host is not allow-listed
            TokenStoreError: If the local tokens could not be cleared
        """
        self._host_validator.validate(api_host)

        token = await self.get_token()
        if token:
            try:
                await self.token_manager.revoke_token(
                    RevocationRequest(
                        revocation_endpoint=f"{api_host}{REVOKE_PATH}", token=token
                    )
                )
            except Exception as e:
                logger.warning(f"Failed to revoke token on server: {e}")

        try:
            await self.token_store.clear()
        except Exception as e:
            logger.error(f"Failed to logout: {e}")
            raise TokenStoreError("Failed to clear OAuth tokens") from e
        logger.debug("Cleared OAuth tokens")

    async def close(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._owns_client:
            await self._http_client.aclose()

    async def __aenter__(self) -> OAuthKeyClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()
