"""Stable public API for building tooling on top of rfmatrixctl.

This module is the supported integration surface for third-party callers
(host UI plugins, dashboards, scripts). Avoid importing from private/internal
modules unless intentionally depending on non-stable internals.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from rfmatrixctl.core.errors import (
    ConfigLoadError,
    ConfigValidationError,
    EncodingError,
    RfMatrixError,
    TransportError,
    TransportTimeoutError,
    ValidationError,
)
from rfmatrixctl.core.model import (
    AliasDump,
    DeviceConfig,
    FullStatus,
    HealthFlags,
    HealthState,
    MatrixState,
    QuickStatus,
    StateEvent,
)
from rfmatrixctl.core.service import MatrixService
from rfmatrixctl.protocol.commands import BoundPolicy
from rfmatrixctl.transports.base import Transport

__all__ = [
    "RfMatrixError",
    "ConfigLoadError",
    "ConfigValidationError",
    "EncodingError",
    "TransportError",
    "TransportTimeoutError",
    "ValidationError",
    "AliasDump",
    "DeviceConfig",
    "FullStatus",
    "HealthFlags",
    "HealthState",
    "MatrixState",
    "QuickStatus",
    "StateEvent",
    "BoundPolicy",
    "Transport",
    "Snapshot",
    "Client",
]


@dataclass(frozen=True)
class Snapshot:
    """Read model handed to presentation layers."""

    state: MatrixState
    health: HealthState
    health_message: str
    variables: dict[str, str]


class Client:
    """Public client for one RF matrix device.

    A `Client` wraps configuration loading, the TCP transport, polling and
    the matrix model behind a stable async API. Command coroutines return
    ``True``/``False`` instead of raising; the reason for a ``False`` is in
    ``snapshot().variables["last_error"]``.
    """

    def __init__(
        self,
        config: DeviceConfig | None = None,
        *,
        config_path: Path | None = None,
        overrides: dict[str, Any] | None = None,
        transport: Transport | None = None,
    ) -> None:
        self._service = MatrixService(
            config,
            config_path=config_path,
            overrides=overrides,
            transport=transport,
        )

    @property
    def config(self) -> DeviceConfig:
        return self._service.config

    @property
    def load_warnings(self) -> tuple[str, ...]:
        return self._service.load_warnings

    def snapshot(self) -> Snapshot:
        return Snapshot(
            state=self._service.state,
            health=self._service.health,
            health_message=self._service.health_message,
            variables=self._service.variables(),
        )

    def subscribe(self, listener: Callable[[StateEvent, MatrixState], None]) -> Callable[[], None]:
        return self._service.subscribe(listener)

    async def start(self) -> None:
        await self._service.start()

    async def reconfigure(self, config: DeviceConfig) -> None:
        await self._service.reconfigure(config)

    async def close(self) -> None:
        await self._service.close()

    async def refresh_aliases(self) -> HealthState:
        return await self._service.poll_aliases_once()

    async def refresh_status(self) -> HealthState:
        return await self._service.poll_status_once()

    async def refresh_quick_status(self) -> HealthState:
        return await self._service.poll_quick_status_once()

    async def test_connect(self) -> bool:
        return await self._service.test_connect()

    async def route(self, output: int, input_: int, *, policy: BoundPolicy = BoundPolicy.STRICT) -> bool:
        return await self._service.route(output, input_, policy=policy)

    async def route_pair(self, output_odd: int, input_odd: int) -> bool:
        return await self._service.route_pair(output_odd, input_odd)

    async def route_to_selected(self, input_: int) -> bool:
        return await self._service.route_to_selected(input_)

    async def route_pair_to_selected(self, input_odd: int) -> bool:
        return await self._service.route_pair_to_selected(input_odd)

    def select_destination(self, output: int) -> int | None:
        return self._service.select_destination(output)

    def clear_selection(self) -> None:
        self._service.clear_selection()

    def destination_selected(self, output: int) -> bool:
        return self._service.destination_selected(output)

    def source_matches_selected(self, input_: int) -> bool:
        return self._service.source_matches_selected(input_)

    def pair_matches_selected(self, input_odd: int) -> bool:
        return self._service.pair_matches_selected(input_odd)
