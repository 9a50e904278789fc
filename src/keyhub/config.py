"""Settings for the key service OAuth client.

Endpoint paths, the host allow-list, the flow lifetime and the quota
conversion constant are fixed. Client registration details can be overridden
from the environment (or a ``.env`` file) for development builds.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# Hosts the client may talk to. Checked before any URL is built.
ALLOWED_HOSTS: tuple[str, ...] = (
    "https://open.cherryin.ai",
    "https://open.cherryin.net",
    "https://open.cherryin.cc",
)

AUTHORIZE_PATH = "/oauth2/auth"
TOKEN_PATH = "/oauth2/token"
REVOKE_PATH = "/oauth2/revoke"
API_KEYS_PATH = "/api/v1/oauth/tokens"
BALANCE_PATH = "/api/v1/oauth/balance"

FLOW_TTL_SECONDS = 10 * 60

# 500000 quota units = 1 currency unit
QUOTA_PER_CURRENCY_UNIT = 500_000

DEFAULT_CLIENT_ID = "2a348c87-bd42-4d0f-a1e4-cd5e1b0b4f0b"
DEFAULT_REDIRECT_URI = "cherrystudio://oauth/callback"
DEFAULT_SCOPES = "openid profile email offline_access balance:read usage:read tokens:read"
DEFAULT_HTTP_TIMEOUT = 30.0


@dataclass(frozen=True)
class OAuthSettings:
    """Immutable client configuration shared by all OAuth services."""

    client_id: str = DEFAULT_CLIENT_ID
    redirect_uri: str = DEFAULT_REDIRECT_URI
    scopes: str = DEFAULT_SCOPES
    http_timeout: float = DEFAULT_HTTP_TIMEOUT
    flow_ttl_seconds: float = FLOW_TTL_SECONDS
    quota_per_currency_unit: int = QUOTA_PER_CURRENCY_UNIT
    allowed_hosts: tuple[str, ...] = field(default=ALLOWED_HOSTS)

    @classmethod
    def from_env(cls, dotenv_path: str | None = None) -> OAuthSettings:
        """Build settings from ``KEYHUB_*`` environment variables.

        Loads ``.env`` first (existing environment variables win). The host
        allow-list is never read from the environment.

        Args:
            dotenv_path: Optional explicit path to a ``.env`` file

        Returns:
            OAuthSettings with environment overrides applied
        """
        load_dotenv(dotenv_path)

        timeout_raw = os.getenv("KEYHUB_HTTP_TIMEOUT")
        http_timeout = DEFAULT_HTTP_TIMEOUT
        if timeout_raw:
            try:
                http_timeout = float(timeout_raw)
            except ValueError:
                logger.warning(
                    f"Ignoring invalid KEYHUB_HTTP_TIMEOUT value: {timeout_raw!r}"
                )

        return cls(
            client_id=os.getenv("KEYHUB_CLIENT_ID") or DEFAULT_CLIENT_ID,
            redirect_uri=os.getenv("KEYHUB_REDIRECT_URI") or DEFAULT_REDIRECT_URI,
            scopes=os.getenv("KEYHUB_SCOPES") or DEFAULT_SCOPES,
            http_timeout=http_timeout,
        )
