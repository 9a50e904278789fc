"""Host allow-list check.

Every URL the client builds starts from a caller-supplied host, so the host
is checked against a fixed list before anything touches the network.
"""

from __future__ import annotations

from collections.abc import Iterable

from keyhub.auth.client.models.errors import UnauthorizedHostError
from keyhub.config import ALLOWED_HOSTS


class HostValidator:
    """Rejects hosts that are not exact members of the allow-list."""

    def __init__(self, allowed_hosts: Iterable[str] = ALLOWED_HOSTS):
        self._allowed = frozenset(allowed_hosts)

    def is_allowed(self, host: str) -> bool:
        return host in self._allowed

    def validate(self, host: str) -> None:
        """Raise UnauthorizedHostError unless host is allow-listed.

        Comparison is exact: no normalization of scheme, case or trailing
        slashes.
        """
        if not self.is_allowed(host):
            raise UnauthorizedHostError(host)
