from __future__ import annotations

from pathlib import Path

import pytest

from rfmatrixctl.api import Client, DeviceConfig, HealthState, Snapshot, StateEvent


class FakeTransport:
    def __init__(self) -> None:
        self.sent: list[bytes] = []

    async def request(self, host, port, message, *, idle_timeout_s=0.2, overall_timeout_s=1.5):
        self.sent.append(message)
        if message.startswith(b"{ABT?}"):
            return "{BAT?,C1-1,C2-2,ANT1,ANT2}g"
        if message.startswith(b"{AB?}"):
            return "{BASTATUS,002,001,O,O,O,F}x"
        return ""


@pytest.mark.asyncio
async def test_public_client_snapshot_after_refresh() -> None:
    client = Client(DeviceConfig(), transport=FakeTransport())
    assert client.snapshot().health is HealthState.UNKNOWN

    assert await client.refresh_aliases() is HealthState.OK
    assert await client.refresh_status() is HealthState.OK

    snapshot = client.snapshot()
    assert isinstance(snapshot, Snapshot)
    assert snapshot.state.sources == (2, 1)
    assert snapshot.variables["output_002_name"] == "C2-2"
    assert snapshot.variables["summary_alarm_ok"] == "F"


@pytest.mark.asyncio
async def test_public_client_selection_and_route() -> None:
    transport = FakeTransport()
    client = Client(DeviceConfig(), transport=transport)
    events: list[StateEvent] = []
    client.subscribe(lambda event, state: events.append(event))

    await client.refresh_status()
    assert client.select_destination(2) == 2
    assert client.destination_selected(2)
    assert client.source_matches_selected(1)
    assert await client.route_to_selected(2)
    assert transport.sent[-1] == b"{ABs,002,002}n\r\n"

    client.clear_selection()
    assert events.count(StateEvent.SELECTION_CHANGED) == 2
    await client.close()


def test_public_client_loads_config_file(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "cfg"))
    path = tmp_path / "matrix.yaml"
    path.write_text("host: 10.9.8.7\nstatus_poll_ms: 100\n", encoding="utf-8")

    client = Client(config_path=path, overrides={"port": 4010}, transport=FakeTransport())
    assert client.config.host == "10.9.8.7"
    assert client.config.port == 4010
    assert client.config.status_poll_ms == 200
    assert len(client.load_warnings) == 1
