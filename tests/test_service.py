from __future__ import annotations

import asyncio

import pytest

from rfmatrixctl.core.errors import TransportError, TransportTimeoutError
from rfmatrixctl.core.model import DeviceConfig, HealthState, StateEvent
from rfmatrixctl.core.service import MatrixService
from rfmatrixctl.protocol.codec import encode

ALIASES = "{BAT?,C1-1,C2-2,C3-3,C4-4,ANT1,ANT2,ANT3,ANT4}g"
STATUS = "{BASTATUS,001,002,003,004,O,O,O,O}x"


class FakeTransport:
    def __init__(self, replies: dict[str, object] | None = None) -> None:
        self.replies = dict(replies or {})
        self.calls: list[tuple[str, int, bytes, float, float]] = []

    async def request(
        self,
        host: str,
        port: int,
        message: bytes,
        *,
        idle_timeout_s: float = 0.2,
        overall_timeout_s: float = 1.5,
    ) -> str:
        self.calls.append((host, port, message, idle_timeout_s, overall_timeout_s))
        body = message.decode("ascii")[1:].split("}")[0]
        reply = self.replies.get(body[2:], "")
        if isinstance(reply, Exception):
            raise reply
        return reply

    @property
    def bodies(self) -> list[str]:
        return [m.decode("ascii").split("}")[0][1:] for _, _, m, _, _ in self.calls]


def _service(replies: dict[str, object] | None = None, **config) -> tuple[MatrixService, FakeTransport]:
    transport = FakeTransport(replies)
    return MatrixService(DeviceConfig(**config), transport=transport), transport


@pytest.mark.asyncio
async def test_request_uses_config_addresses_and_timeouts() -> None:
    service, transport = _service({"?": STATUS}, host="10.0.0.5", port=4100, dst_addr="C", src_addr="D")
    await service.poll_status_once()
    host, port, message, idle, overall = transport.calls[0]
    assert (host, port) == ("10.0.0.5", 4100)
    assert message == (encode("CD?") + "\r\n").encode("ascii")
    assert (idle, overall) == (0.2, 1.5)


@pytest.mark.asyncio
async def test_alias_poll_updates_topology_and_emits_events() -> None:
    service, _ = _service({"T?": ALIASES})
    seen: list[StateEvent] = []
    service.subscribe(lambda event, state: seen.append(event))

    assert await service.poll_aliases_once() is HealthState.OK
    assert service.state.outputs_count == 4
    assert service.state.input_aliases == ("ANT1", "ANT2", "ANT3", "ANT4")
    assert service.last_alias_dump == ALIASES
    assert seen == [StateEvent.TOPOLOGY_CHANGED, StateEvent.ALIASES_CHANGED]

    await service.poll_aliases_once()
    assert seen == [StateEvent.TOPOLOGY_CHANGED, StateEvent.ALIASES_CHANGED]


@pytest.mark.asyncio
async def test_status_poll_updates_routing_and_flags() -> None:
    service, _ = _service({"?": "{BASTATUS,003,--,O,F,O,F}x"})
    assert await service.poll_status_once() is HealthState.OK
    assert service.state.sources == (3, 0)
    variables = service.variables()
    assert variables["out_001_src"] == "3"
    assert variables["psu2_ok"] == "F"
    assert variables["last_status_raw"] == "{BASTATUS,003,--,O,F,O,F}x"


@pytest.mark.asyncio
async def test_empty_reply_is_unknown_and_keeps_state() -> None:
    service, transport = _service({"?": STATUS})
    await service.poll_status_once()
    transport.replies["?"] = ""

    assert await service.poll_status_once() is HealthState.UNKNOWN
    assert service.state.sources == (1, 2, 3, 4)
    assert service.last_error == ""


@pytest.mark.asyncio
async def test_unparsable_reply_is_unknown_and_keeps_state() -> None:
    service, transport = _service({"Q": "{BAQOOOO}x"})
    await service.poll_quick_status_once()
    transport.replies["Q"] = "garbage"

    assert await service.poll_quick_status_once() is HealthState.UNKNOWN
    assert service.health_message == "Quick status: parse failed"
    assert service.state.health.as_tuple() == ("O", "O", "O", "O")


@pytest.mark.asyncio
async def test_transport_failure_is_connection_failure() -> None:
    service, _ = _service({"T?": TransportTimeoutError("TCP overall timeout")})
    assert await service.poll_aliases_once() is HealthState.CONNECTION_FAILURE
    assert service.last_error == "TCP overall timeout"
    assert service.variables()["last_error"] == "TCP overall timeout"


@pytest.mark.asyncio
async def test_checksum_verification_is_opt_in() -> None:
    bad = "{BASTATUS,001,O,O,O,O}!"
    service, _ = _service({"?": bad})
    assert await service.poll_status_once() is HealthState.OK

    strict, _ = _service({"?": bad}, verify_reply_checksum=True)
    assert await strict.poll_status_once() is HealthState.UNKNOWN
    assert strict.state.sources == ()

    good, _ = _service({"?": encode("BASTATUS,001,O,O,O,O")}, verify_reply_checksum=True)
    assert await good.poll_status_once() is HealthState.OK


@pytest.mark.asyncio
async def test_route_sends_short_switch() -> None:
    service, transport = _service({"s,002,003": "{BAs,002,003}x"})
    assert await service.route(2, 3)
    assert transport.bodies == ["ABs,002,003"]
    assert service.last_reply == "{BAs,002,003}x"
    assert service.state.sources == ()


@pytest.mark.asyncio
async def test_route_records_no_data_reply() -> None:
    service, _ = _service()
    assert await service.route(1, 1)
    assert service.last_reply == "(no data)"


@pytest.mark.asyncio
async def test_route_validation_failure_sends_nothing() -> None:
    service, transport = _service()
    assert not await service.route(1, 0)
    assert transport.calls == []
    assert "Input must be" in service.last_error


@pytest.mark.asyncio
async def test_pair_route_validates_before_sending_either_half() -> None:
    service, transport = _service({"T?": ALIASES})
    await service.poll_aliases_once()
    assert not await service.route_pair(3, 4)
    assert not await service.route_pair(5, 1)
    assert transport.bodies == ["ABT?"]

    assert await service.route_pair(3, 1)
    assert transport.bodies[1:] == ["ABs,003,001", "ABs,004,002"]


@pytest.mark.asyncio
async def test_pair_route_stops_after_failed_half() -> None:
    service, transport = _service({"s,001,001": TransportError("connection reset")})
    assert not await service.route_pair(1, 1)
    assert transport.bodies == ["ABs,001,001"]
    assert service.health is HealthState.CONNECTION_FAILURE


@pytest.mark.asyncio
async def test_xy_workflow() -> None:
    service, transport = _service({"?": "{BASTATUS,001,002,005,006,O,O,O,O}x"})
    assert not await service.route_to_selected(1)
    assert service.last_error == "Select a destination first"

    await service.poll_status_once()
    assert service.select_destination(3) == 3
    assert service.destination_selected(3)
    assert service.source_matches_selected(5)
    assert service.pair_matches_selected(5)

    assert await service.route_to_selected(7)
    assert await service.route_pair_to_selected(7)
    assert transport.bodies[1:] == ["ABs,003,007", "ABs,003,007", "ABs,004,008"]

    service.clear_selection()
    assert service.variables()["selected_output"] == ""
    assert not service.pair_matches_selected(5)


@pytest.mark.asyncio
async def test_listener_failure_does_not_break_others() -> None:
    service, _ = _service({"T?": ALIASES})
    seen: list[StateEvent] = []

    def broken(event, state):
        raise RuntimeError("ui crashed")

    service.subscribe(broken)
    unsubscribe = service.subscribe(lambda event, state: seen.append(event))
    await service.poll_aliases_once()
    assert StateEvent.ALIASES_CHANGED in seen

    unsubscribe()
    service.select_destination(1)
    assert StateEvent.SELECTION_CHANGED not in seen


@pytest.mark.asyncio
async def test_start_polls_immediately_and_close_stops_timers() -> None:
    service, transport = _service({"T?": ALIASES, "?": STATUS})
    await service.start()
    assert service.polling
    assert transport.bodies[:2] == ["ABT?", "AB?"]
    assert service.health is HealthState.OK

    await service.close()
    assert not service.polling
    count = len(transport.calls)
    await asyncio.sleep(0.3)
    assert len(transport.calls) == count


@pytest.mark.asyncio
async def test_status_timer_keeps_polling_after_failures() -> None:
    service, transport = _service({"?": TransportError("unreachable")}, status_poll_ms=200, alias_poll_ms=60000)
    service.start_polling()
    await asyncio.sleep(0.75)
    service.stop_polling()

    status_calls = [body for body in transport.bodies if body == "AB?"]
    assert len(status_calls) >= 2
    assert service.health is HealthState.CONNECTION_FAILURE


@pytest.mark.asyncio
async def test_reconfigure_applies_new_fallback_sizes() -> None:
    service, _ = _service({"T?": "", "?": ""})
    seen: list[StateEvent] = []
    service.subscribe(lambda event, state: seen.append(event))

    await service.reconfigure(DeviceConfig(inputs=8, outputs=4))
    assert service.state.effective_outputs == 4
    assert StateEvent.TOPOLOGY_CHANGED in seen
    assert service.health is HealthState.UNKNOWN
    await service.close()
