"""In-memory registry of pending authorization flows."""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable

from keyhub.auth.client.models.errors import FlowStateCollisionError
from keyhub.auth.client.models.flow import PendingFlow
from keyhub.config import FLOW_TTL_SECONDS

logger = logging.getLogger(__name__)


class FlowRegistry:
    """Maps state tokens to pending flows.

    Each state maps to at most one live flow, and each flow is handed out at
    most once. Expired flows are swept lazily whenever a flow is started or
    taken, so the map never outgrows the number of flows started within one
    TTL window.

    All operations hold a single lock; they are short, synchronous and never
    await.
    """

    def __init__(
        self,
        ttl_seconds: float = FLOW_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._flows: dict[str, PendingFlow] = {}  # state -> flow
        self._lock = threading.Lock()

    def now(self) -> float:
        """Current reading of the registry clock, for stamping new flows."""
        return self._clock()

    # ================================
    # Registration
    # ================================

    def begin(self, flow: PendingFlow) -> None:
        """Register a new pending flow.

        Raises:
            FlowStateCollisionError: If a live flow already uses this state
        """
        with self._lock:
            self._sweep_locked(self._clock())
            if flow.state in self._flows:
                raise FlowStateCollisionError("A pending flow already uses this state")
            self._flows[flow.state] = flow

        logger.debug(f"Registered pending flow for {flow.oauth_server}")

    # ================================
    # Consumption
    # ================================

    def take_and_remove(self, state: str) -> PendingFlow | None:
        """Remove and return the live flow for ``state``.

        Returns None if the state is unknown, expired, or was already taken.
        """
        with self._lock:
            self._sweep_locked(self._clock())
            return self._flows.pop(state, None)

    # ================================
    # Expiry
    # ================================

    def sweep_expired(self, now: float | None = None) -> int:
        """Drop flows older than the TTL.

        Returns the number of flows removed.
        """
        with self._lock:
            return self._sweep_locked(self._clock() if now is None else now)

    def _sweep_locked(self, now: float) -> int:
        expired = [
            state
            for state, flow in self._flows.items()
            if flow.age(now) > self.ttl_seconds
        ]
        for state in expired:
            del self._flows[state]

        if expired:
            logger.debug(f"Swept {len(expired)} expired pending flow(s)")
        return len(expired)

    # ================================
    # Inspection
    # ================================

    def __len__(self) -> int:
        with self._lock:
            return len(self._flows)

    def __contains__(self, state: object) -> bool:
        with self._lock:
            return state in self._flows
