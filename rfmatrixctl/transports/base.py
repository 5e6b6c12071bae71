"""Transport interfaces."""

from __future__ import annotations

from typing import Protocol

DEFAULT_IDLE_TIMEOUT_S = 0.2
DEFAULT_OVERALL_TIMEOUT_S = 1.5


class Transport(Protocol):
    async def request(
        self,
        host: str,
        port: int,
        message: bytes,
        *,
        idle_timeout_s: float = DEFAULT_IDLE_TIMEOUT_S,
        overall_timeout_s: float = DEFAULT_OVERALL_TIMEOUT_S,
    ) -> str:
        """Send one message over a fresh connection and return the ASCII reply."""
