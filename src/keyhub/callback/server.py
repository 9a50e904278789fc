"""Loopback HTTP receiver for the authorization redirect.

When the redirect URI points at ``http://127.0.0.1:<port>/callback``, this
app receives the browser redirect, runs the code exchange, and shows the user
a short result page. Tokens and keys are never echoed into the page.
"""

from __future__ import annotations

import asyncio
import html
import logging
from typing import Awaitable, Callable

import uvicorn
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import HTMLResponse
from starlette.routing import Route

from keyhub.auth.client.models.errors import OAuth2Error
from keyhub.auth.client.models.flow import TokenExchangeResult
from keyhub.auth.client.oauth_client import OAuthKeyClient

logger = logging.getLogger(__name__)

ResultCallback = Callable[[TokenExchangeResult], Awaitable[None]]

SUCCESS_MESSAGE = "Authorization successful! You can close this window and return to the app."


def build_callback_app(
    client: OAuthKeyClient,
    path: str = "/callback",
    on_result: ResultCallback | None = None,
) -> Starlette:
    """Build the Starlette app that completes the exchange.

    Args:
        client: OAuth client holding the pending flow
        path: Route that the redirect URI points at
        on_result: Awaited with the exchange result after a successful login
    """

    async def handle_callback(request: Request) -> HTMLResponse:
        params = request.query_params

        error = params.get("error")
        if error:
            description = params.get("error_description", "")
            logger.warning(f"Authorization server returned error: {error}")
            message = f"Authorization failed: {error}"
            if description:
                message += f" - {description}"
            return _page(message, status_code=400)

        code = params.get("code")
        state = params.get("state")
        if not code or not state:
            return _page("Authorization response is missing code or state.", 400)

        try:
            result = await client.exchange_token(code, state)
        except OAuth2Error as e:
            logger.error(f"Authorization callback failed: {e}")
            return _page(f"Authorization failed: {e}", status_code=400)

        if on_result is not None:
            await on_result(result)
        return _page(SUCCESS_MESSAGE)

    return Starlette(routes=[Route(path, handle_callback, methods=["GET"])])


def _page(message: str, status_code: int = 200) -> HTMLResponse:
    return HTMLResponse(
        f"<html><body><h2>{html.escape(message)}</h2></body></html>",
        status_code=status_code,
    )


class CallbackServer:
    """Runs the callback app on the loopback interface with uvicorn.

    The app is built here from ``path`` so the served route and
    :attr:`redirect_uri` always agree.
    """

    def __init__(
        self,
        client: OAuthKeyClient,
        host: str = "127.0.0.1",
        port: int = 8765,
        path: str = "/callback",
        on_result: ResultCallback | None = None,
    ):
        self.host = host
        self.port = port
        self.path = path
        self.app = build_callback_app(client, path=path, on_result=on_result)
        self._server: uvicorn.Server | None = None
        self._task: asyncio.Task[None] | None = None

    @property
    def redirect_uri(self) -> str:
        return f"http://{self.host}:{self.port}{self.path}"

    async def start(self) -> None:
        """Start serving in a background task."""
        config = uvicorn.Config(
            app=self.app, host=self.host, port=self.port, log_level="warning"
        )
        self._server = uvicorn.Server(config)
        self._task = asyncio.create_task(self._server.serve())
        logger.info(f"Callback server started on {self.host}:{self.port}")

    async def stop(self) -> None:
        """Ask the server to exit and wait for it."""
        if self._server is None:
            return
        self._server.should_exit = True
        if self._task is not None:
            await self._task
        self._server = None
        self._task = None
        logger.info("Callback server stopped")
