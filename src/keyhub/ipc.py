"""IPC surface for the UI process.

The UI invokes channels with a transport-specific event object as the first
argument. The registry strips that argument, calls the OAuth client with the
domain parameters only, and converts results to the camelCase dictionaries
the UI expects.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Awaitable, Callable

from keyhub.auth.client.oauth_client import OAuthKeyClient

logger = logging.getLogger(__name__)

IpcHandler = Callable[..., Awaitable[Any]]


class IpcChannel(str, Enum):
    START_OAUTH_FLOW = "oauth:start-flow"
    EXCHANGE_TOKEN = "oauth:exchange-token"
    SAVE_TOKEN = "oauth:save-token"
    GET_TOKEN = "oauth:get-token"
    HAS_TOKEN = "oauth:has-token"
    GET_BALANCE = "oauth:get-balance"
    LOGOUT = "oauth:logout"


class IpcHandlerRegistry:
    def __init__(self):
        self.handlers: dict[str, IpcHandler] = {}

    def register(self, channel: str | IpcChannel, handler: IpcHandler) -> None:
        """Register an async handler for a channel.

        Handlers receive only the domain arguments; the transport event is
        dropped by :meth:`invoke`. Exceptions raised by handlers propagate to
        the transport, which reports them to the UI.

        Args:
            channel: Channel name.
            handler: Async function called with the channel arguments.
        """
        self.handlers[_channel_name(channel)] = handler

    async def invoke(
        self, channel: str | IpcChannel, event: Any, *args: Any
    ) -> Any:
        """Dispatch an incoming IPC call.

        Raises:
            KeyError: If no handler is registered for the channel.
        """
        handler = self.handlers[_channel_name(channel)]  # Can raise KeyError
        logger.debug(f"Handling IPC call on {_channel_name(channel)}")
        return await handler(*args)


def register_oauth_handlers(
    registry: IpcHandlerRegistry, client: OAuthKeyClient
) -> None:
    """Wire every OAuth client operation to its IPC channel."""

    async def start_oauth_flow(
        oauth_server: str, api_host: str | None = None
    ) -> dict[str, str]:
        flow = await client.start_oauth_flow(oauth_server, api_host)
        return {"authUrl": flow.auth_url, "state": flow.state}

    async def exchange_token(code: str, state: str) -> dict[str, str]:
        result = await client.exchange_token(code, state)
        return {"apiKeys": result.api_keys}

    async def get_balance(api_host: str) -> dict[str, float]:
        balance = await client.get_balance(api_host)
        return {"balance": balance.balance}

    registry.register(IpcChannel.START_OAUTH_FLOW, start_oauth_flow)
    registry.register(IpcChannel.EXCHANGE_TOKEN, exchange_token)
    registry.register(IpcChannel.SAVE_TOKEN, client.save_token)
    registry.register(IpcChannel.GET_TOKEN, client.get_token)
    registry.register(IpcChannel.HAS_TOKEN, client.has_token)
    registry.register(IpcChannel.GET_BALANCE, get_balance)
    registry.register(IpcChannel.LOGOUT, client.logout)


def _channel_name(channel: str | IpcChannel) -> str:
    return channel.value if isinstance(channel, IpcChannel) else channel
