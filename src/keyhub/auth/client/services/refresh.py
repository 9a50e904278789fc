"""Access token refresh against the token store."""

from __future__ import annotations

import asyncio
import logging

from keyhub.auth.client.models.tokens import RefreshTokenRequest
from keyhub.auth.client.services.storage import TokenStore
from keyhub.auth.client.services.tokens import OAuth2TokenManager
from keyhub.config import TOKEN_PATH, OAuthSettings

logger = logging.getLogger(__name__)


class TokenRefresher:
    """Exchanges the stored refresh token for a new token pair.

    Refresh failures are never fatal: every failure path returns None and the
    caller keeps whatever response it already had.

    By default, concurrent refreshes run independently. With ``coalesce=True``
    concurrent refreshes for the same API host share a single in-flight
    request and all callers receive its result.
    """

    def __init__(
        self,
        token_manager: OAuth2TokenManager,
        token_store: TokenStore,
        settings: OAuthSettings,
        coalesce: bool = False,
    ):
        self._token_manager = token_manager
        self._token_store = token_store
        self._settings = settings
        self.coalesce = coalesce
        self._in_flight: dict[str, asyncio.Task[str | None]] = {}

    async def refresh(self, api_host: str) -> str | None:
        """Refresh the access token.

        Returns:
            The new access token, or None if there was no refresh token or
            the refresh failed
        """
        if not self.coalesce:
            return await self._refresh(api_host)

        task = self._in_flight.get(api_host)
        if task is None:
            task = asyncio.ensure_future(self._refresh(api_host))
            self._in_flight[api_host] = task
            task.add_done_callback(lambda done: self._forget(api_host, done))
        else:
            logger.debug(f"Joining in-flight token refresh for {api_host}")
        return await asyncio.shield(task)

    def _forget(self, api_host: str, task: asyncio.Task[str | None]) -> None:
        if self._in_flight.get(api_host) is task:
            del self._in_flight[api_host]

    async def _refresh(self, api_host: str) -> str | None:
        try:
            refresh_token = await self._token_store.get_refresh_token()
            if not refresh_token:
                logger.warning("No refresh token available")
                return None

            logger.info("Attempting to refresh access token")
            token_response = await self._token_manager.refresh_access_token(
                RefreshTokenRequest(
                    token_endpoint=f"{api_host}{TOKEN_PATH}",
                    refresh_token=refresh_token,
                    client_id=self._settings.client_id,
                )
            )
            if token_response is None:
                return None

            tokens = token_response.to_token_pair()
            await self._token_store.save(tokens.access_token, tokens.refresh_token)
            logger.info("Successfully refreshed access token")
            return tokens.access_token

        except Exception as e:
            logger.error(f"Failed to refresh token: {e}")
            return None
