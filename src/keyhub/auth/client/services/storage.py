"""Token storage.

The OAuth services only read and write tokens through the narrow
:class:`TokenStore` protocol. Where the tokens actually live (application
state, keychain, a file) is up to the embedding application.

Two implementations ship with the package:

- :class:`InMemoryTokenStore` for tests and short-lived processes.
- :class:`FileTokenStore`, a JSON file written atomically with ``0o600``
  permissions so tokens are never world-readable, even momentarily.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Protocol

from keyhub.auth.client.models.tokens import TokenPair

logger = logging.getLogger(__name__)


class TokenStore(Protocol):
    """Durable holder for the access and refresh token."""

    async def get_access_token(self) -> str | None:
        """Return the stored access token, or None if there is none."""
        ...

    async def get_refresh_token(self) -> str | None:
        """Return the stored refresh token, or None if there is none."""
        ...

    async def save(self, access_token: str, refresh_token: str | None = None) -> None:
        """Store a new access token.

        A falsy ``refresh_token`` leaves the stored refresh token untouched,
        since servers do not always reissue one.
        """
        ...

    async def clear(self) -> None:
        """Remove both tokens."""
        ...


class InMemoryTokenStore:
    """Process-local token store."""

    def __init__(self, tokens: TokenPair | None = None) -> None:
        self._access_token = tokens.access_token if tokens else None
        self._refresh_token = tokens.refresh_token if tokens else None

    async def get_access_token(self) -> str | None:
        return self._access_token or None

    async def get_refresh_token(self) -> str | None:
        return self._refresh_token or None

    async def save(self, access_token: str, refresh_token: str | None = None) -> None:
        self._access_token = access_token
        if refresh_token:
            self._refresh_token = refresh_token

    async def clear(self) -> None:
        self._access_token = None
        self._refresh_token = None


class FileTokenStore:
    """Token store backed by a single JSON file.

    File I/O runs in a worker thread so the event loop is never blocked.
    All writes are atomic: content goes to a temporary file in the same
    directory, is fsynced, then renamed into place. A missing, unreadable or
    corrupt file reads as "no tokens".

    Args:
        path: Location of the JSON file. Parent directories are created on
            first write.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    async def get_access_token(self) -> str | None:
        data = await asyncio.to_thread(self._read)
        return data.get("access_token") or None

    async def get_refresh_token(self) -> str | None:
        data = await asyncio.to_thread(self._read)
        return data.get("refresh_token") or None

    async def save(self, access_token: str, refresh_token: str | None = None) -> None:
        await asyncio.to_thread(self._save, access_token, refresh_token)

    async def clear(self) -> None:
        await asyncio.to_thread(self._path.unlink, missing_ok=True)

    def _save(self, access_token: str, refresh_token: str | None) -> None:
        data = self._read()
        data["access_token"] = access_token
        if refresh_token:
            data["refresh_token"] = refresh_token
        self._write(data)

    def _read(self) -> dict[str, str]:
        if not self._path.is_file():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as e:
            logger.warning(f"Ignoring unreadable token file {self._path}: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Ignoring malformed token file {self._path}")
            return {}
        return {k: v for k, v in data.items() if isinstance(v, str)}

    def _write(self, data: dict[str, str]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        text = json.dumps(data, indent=2) + "\n"

        fd = None
        tmp_path: str | None = None
        try:
            fd = tempfile.NamedTemporaryFile(
                mode="w",
                dir=self._path.parent,
                prefix=f".{self._path.name}.",
                suffix=".tmp",
                delete=False,
                encoding="utf-8",
            )
            tmp_path = fd.name
            # Restrict permissions before any secret is written
            os.chmod(tmp_path, 0o600)
            fd.write(text)
            fd.flush()
            os.fsync(fd.fileno())
            fd.close()
            fd = None
            os.replace(tmp_path, self._path)
        except BaseException:
            if fd is not None:
                fd.close()
            if tmp_path is not None:
                try:
                    os.unlink(tmp_path)
                except OSError:
                    pass
            raise
