"""Bearer-authenticated requests with a single refresh-and-retry."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from keyhub.auth.client.models.errors import NoTokenError
from keyhub.auth.client.services.refresh import TokenRefresher
from keyhub.auth.client.services.storage import TokenStore

logger = logging.getLogger(__name__)

_OVERRIDDEN_HEADERS = frozenset({"authorization", "content-type"})


class AuthenticatedRequestExecutor:
    """Sends requests with the stored access token attached.

    On a 401 the refresher runs once. If it yields a new token, the request
    is retried once with it; otherwise the original 401 response is returned
    as-is. There is never more than one retry, so a permanently invalid
    refresh token cannot cause a loop.

    No timeout is applied beyond the one configured on the HTTP client.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        token_store: TokenStore,
        refresher: TokenRefresher,
    ):
        self._http_client = http_client
        self._token_store = token_store
        self._refresher = refresher

    async def call(
        self,
        api_host: str,
        path: str,
        method: str = "GET",
        headers: dict[str, str] | None = None,
        **kwargs: Any,
    ) -> httpx.Response:
        """Send ``method {api_host}{path}`` with bearer authentication.

        Args:
            api_host: Origin of the API; callers check it against the allow-list
            path: Path appended to api_host, including the leading slash
            method: HTTP method
            headers: Extra headers; Authorization and Content-Type are overridden
            **kwargs: Passed through to ``httpx.AsyncClient.request``

        Returns:
            The final response (the retry's, or the original one)

        Raises:
            NoTokenError: If no access token is stored
        """
        token = await self._token_store.get_access_token()
        if not token:
            raise NoTokenError()

        url = f"{api_host}{path}"
        response = await self._send(method, url, token, headers, kwargs)

        if response.status_code == 401:
            logger.info("Got 401, attempting token refresh")
            new_token = await self._refresher.refresh(api_host)
            if new_token:
                response = await self._send(method, url, new_token, headers, kwargs)
            else:
                logger.warning("Token refresh failed, returning original 401")

        return response

    async def _send(
        self,
        method: str,
        url: str,
        access_token: str,
        headers: dict[str, str] | None,
        kwargs: dict[str, Any],
    ) -> httpx.Response:
        merged = {
            name: value
            for name, value in (headers or {}).items()
            if name.lower() not in _OVERRIDDEN_HEADERS
        }
        merged["Authorization"] = f"Bearer {access_token}"
        merged["Content-Type"] = "application/json"
        return await self._http_client.request(method, url, headers=merged, **kwargs)
