"""Service layer used by the CLI and by host UI integrations."""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path
from typing import Any

from rfmatrixctl.core import state as matrix
from rfmatrixctl.core.config_loader import MIN_ALIAS_POLL_MS, MIN_STATUS_POLL_MS, load_config
from rfmatrixctl.core.errors import EncodingError, RfMatrixError, TransportError, ValidationError
from rfmatrixctl.core.model import DeviceConfig, HealthState, MatrixState, StateEvent
from rfmatrixctl.core.scheduler import PeriodicTask
from rfmatrixctl.protocol import codec, commands
from rfmatrixctl.protocol.commands import AddressPair, BoundPolicy
from rfmatrixctl.protocol.parsers import parse_alias_dump, parse_full_status, parse_quick_status
from rfmatrixctl.transports.base import Transport
from rfmatrixctl.transports.tcp import TCPTransport

LOGGER = logging.getLogger(__name__)

Listener = Callable[[StateEvent, MatrixState], None]

NO_DATA = "(no data)"


class MatrixService:
    """Owns the matrix model for one device and drives it from the wire.

    Poll and command methods never raise for transport, encoding or
    validation problems. They record ``last_error``, update :attr:`health`
    and log, so a failing tick cannot take down its scheduler.
    """

    def __init__(
        self,
        config: DeviceConfig | None = None,
        *,
        config_path: Path | None = None,
        overrides: dict[str, Any] | None = None,
        transport: Transport | None = None,
    ) -> None:
        if config is None:
            loaded = load_config(config_path, overrides)
            config = loaded.config
            self.load_warnings = loaded.warnings
        else:
            self.load_warnings = ()
        self.config = config
        self.transport = transport or TCPTransport()
        self.state = matrix.initial_state(config.inputs, config.outputs)
        self.health = HealthState.UNKNOWN
        self.health_message = "not polled yet"
        self.last_reply = ""
        self.last_error = ""
        self.last_alias_dump = ""
        self.last_status_raw = ""
        self._listeners: list[Listener] = []
        self._alias_task: PeriodicTask | None = None
        self._status_task: PeriodicTask | None = None

    @property
    def address(self) -> AddressPair:
        return AddressPair(dst=self.config.dst_addr, src=self.config.src_addr)

    # ---- published state ----

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def variables(self) -> dict[str, str]:
        values = matrix.published_values(self.state)
        values["last_reply"] = self.last_reply
        values["last_error"] = self.last_error
        values["last_alias_dump"] = self.last_alias_dump
        values["last_status_raw"] = self.last_status_raw
        return values

    def destination_selected(self, output: int) -> bool:
        return matrix.destination_selected(self.state, output)

    def source_matches_selected(self, input_: int) -> bool:
        return matrix.source_matches_selected(self.state, input_)

    def pair_matches_selected(self, input_odd: int) -> bool:
        return matrix.pair_matches_selected(self.state, input_odd)

    def _commit(self, reconciled: matrix.Reconciled) -> None:
        self.state, events = reconciled
        for event in events:
            for listener in list(self._listeners):
                try:
                    listener(event, self.state)
                except Exception:
                    LOGGER.exception("State listener failed on %s", event.value)

    # ---- health ----

    def _mark_ok(self, message: str) -> HealthState:
        self.health = HealthState.OK
        self.health_message = message
        LOGGER.debug(message)
        return self.health

    def _mark_unknown(self, message: str) -> HealthState:
        self.health = HealthState.UNKNOWN
        self.health_message = message
        LOGGER.debug(message)
        return self.health

    def _mark_failure(self, exc: Exception) -> HealthState:
        message = str(exc) or type(exc).__name__
        self.health = HealthState.CONNECTION_FAILURE
        self.health_message = message
        self.last_error = message
        LOGGER.error(message)
        return self.health

    # ---- wire ----

    async def _request(self, command: str) -> str:
        packet = codec.encode(self.address.body(command))
        return await self.transport.request(
            self.config.host,
            self.config.port,
            codec.to_wire(packet),
            idle_timeout_s=self.config.idle_timeout_ms / 1000,
            overall_timeout_s=self.config.overall_timeout_ms / 1000,
        )

    def _checksum_rejected(self, reply: str) -> bool:
        return self.config.verify_reply_checksum and not codec.checksum_matches(reply)

    # ---- polls ----

    async def poll_aliases_once(self) -> HealthState:
        try:
            reply = await self._request(commands.ALIAS_DUMP)
        except (TransportError, EncodingError) as exc:
            return self._mark_failure(exc)
        if not reply:
            return self._mark_unknown("Alias poll: empty reply")

        self.last_alias_dump = reply
        self.last_error = ""
        LOGGER.debug("Alias dump RX: %r", reply)
        if self._checksum_rejected(reply):
            return self._mark_unknown("Alias poll: checksum mismatch")

        parsed = parse_alias_dump(reply)
        if parsed is None:
            return self._mark_unknown("Alias poll: parse failed")
        self._commit(matrix.apply_alias_dump(self.state, parsed))
        return self._mark_ok("Alias poll ok")

    async def poll_status_once(self) -> HealthState:
        try:
            reply = await self._request(commands.STATUS)
        except (TransportError, EncodingError) as exc:
            return self._mark_failure(exc)
        if not reply:
            return self._mark_unknown("Status poll: empty reply")

        self.last_status_raw = reply
        self.last_error = ""
        LOGGER.debug("Status RX: %r", reply)
        if self._checksum_rejected(reply):
            return self._mark_unknown("Status poll: checksum mismatch")

        parsed = parse_full_status(reply)
        if parsed is None:
            return self._mark_unknown("Status poll: parse failed")
        self._commit(matrix.apply_full_status(self.state, parsed))
        return self._mark_ok("Full status poll ok")

    async def poll_quick_status_once(self) -> HealthState:
        try:
            reply = await self._request(commands.QUICK_STATUS)
        except (TransportError, EncodingError) as exc:
            return self._mark_failure(exc)
        if not reply:
            return self._mark_unknown("Quick status: empty reply")

        self.last_reply = reply
        self.last_error = ""
        if self._checksum_rejected(reply):
            return self._mark_unknown("Quick status: checksum mismatch")

        parsed = parse_quick_status(reply)
        if parsed is None:
            return self._mark_unknown("Quick status: parse failed")
        self._commit(matrix.apply_quick_status(self.state, parsed))
        return self._mark_ok("Quick status poll ok")

    # ---- commands ----

    async def send_body(self, command: str) -> bool:
        """Send one command body and record the raw reply."""
        try:
            reply = await self._request(command)
        except (TransportError, EncodingError) as exc:
            self._mark_failure(exc)
            LOGGER.error("Send failed: %s", exc)
            return False
        self.last_reply = reply or NO_DATA
        self.last_error = ""
        self._mark_ok(f"Sent {command!r}")
        return True

    async def test_connect(self) -> bool:
        return await self.send_body(commands.STATUS)

    def _reject(self, exc: RfMatrixError) -> bool:
        self.last_error = str(exc)
        LOGGER.error(str(exc))
        return False

    async def route(self, output: int, input_: int, *, policy: BoundPolicy = BoundPolicy.STRICT) -> bool:
        try:
            body = commands.build_route(
                output,
                input_,
                max_outputs=matrix.max_outputs(self.state),
                max_inputs=matrix.max_inputs(self.state),
                policy=policy,
            )
        except ValidationError as exc:
            return self._reject(exc)
        return await self.send_body(body)

    async def route_pair(self, output_odd: int, input_odd: int) -> bool:
        try:
            bodies = commands.build_pair_route(
                output_odd,
                input_odd,
                max_outputs=matrix.max_outputs(self.state),
                max_inputs=matrix.max_inputs(self.state),
            )
        except ValidationError as exc:
            return self._reject(exc)
        for body in bodies:
            if not await self.send_body(body):
                return False
        return True

    async def route_to_selected(self, input_: int) -> bool:
        if self.state.selected_output is None:
            return self._reject(ValidationError("Select a destination first"))
        return await self.route(self.state.selected_output, input_)

    async def route_pair_to_selected(self, input_odd: int) -> bool:
        if self.state.selected_output is None:
            return self._reject(ValidationError("Select a destination first"))
        return await self.route_pair(self.state.selected_output, input_odd)

    def select_destination(self, output: int) -> int | None:
        self._commit(matrix.select_output(self.state, output))
        return self.state.selected_output

    def clear_selection(self) -> None:
        self._commit(matrix.clear_selection(self.state))

    # ---- lifecycle ----

    def start_polling(self) -> None:
        self.stop_polling()
        self._alias_task = PeriodicTask(
            "alias poll",
            self.config.alias_poll_ms / 1000,
            self.poll_aliases_once,
            min_interval_s=MIN_ALIAS_POLL_MS / 1000,
        )
        self._status_task = PeriodicTask(
            "status poll",
            self.config.status_poll_ms / 1000,
            self.poll_status_once,
            min_interval_s=MIN_STATUS_POLL_MS / 1000,
        )
        self._alias_task.start()
        self._status_task.start()

    def stop_polling(self) -> None:
        for task in (self._alias_task, self._status_task):
            if task is not None:
                task.stop()
        self._alias_task = None
        self._status_task = None

    @property
    def polling(self) -> bool:
        return any(task is not None and task.running for task in (self._alias_task, self._status_task))

    async def start(self) -> None:
        """Start both timers and run one alias and one status poll right away."""
        self.health = HealthState.UNKNOWN
        self.start_polling()
        await self.poll_aliases_once()
        await self.poll_status_once()

    async def reconfigure(self, config: DeviceConfig) -> None:
        """Apply new settings, restart both timers and poll immediately."""
        self.config = config
        self._commit(matrix.apply_configured_counts(self.state, config.inputs, config.outputs))
        await self.start()

    async def close(self) -> None:
        self.stop_polling()
        self._listeners.clear()
