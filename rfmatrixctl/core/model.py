"""Core data models used across protocol, service, and CLI."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


@dataclass(frozen=True)
class DeviceConfig:
    host: str = "192.168.0.252"
    port: int = 4000
    dst_addr: str = "A"
    src_addr: str = "B"
    inputs: int = 16
    outputs: int = 16
    alias_poll_ms: int = 5000
    status_poll_ms: int = 750
    idle_timeout_ms: int = 200
    overall_timeout_ms: int = 1500
    verify_reply_checksum: bool = False


@dataclass(frozen=True)
class RawReply:
    raw: str
    inner: str
    tokens: tuple[str, ...]
    checksum: str | None


@dataclass(frozen=True)
class HealthFlags:
    psu1: str | None = None
    psu2: str | None = None
    link: str | None = None
    summary_alarm: str | None = None

    @classmethod
    def from_sequence(cls, flags: tuple[str, ...] | list[str]) -> HealthFlags:
        values = [flag if flag else None for flag in list(flags)[:4]]
        values.extend([None] * (4 - len(values)))
        return cls(*values)

    def as_tuple(self) -> tuple[str | None, ...]:
        return (self.psu1, self.psu2, self.link, self.summary_alarm)


@dataclass(frozen=True)
class AliasDump:
    output_aliases: tuple[str, ...]
    input_aliases: tuple[str, ...]


@dataclass(frozen=True)
class FullStatus:
    sources: tuple[int, ...]
    flags: HealthFlags


@dataclass(frozen=True)
class QuickStatus:
    flags: HealthFlags


class HealthState(str, Enum):
    OK = "ok"
    UNKNOWN = "unknown"
    CONNECTION_FAILURE = "connection_failure"


class StateEvent(str, Enum):
    TOPOLOGY_CHANGED = "topology_changed"
    ALIASES_CHANGED = "aliases_changed"
    ROUTING_CHANGED = "routing_changed"
    HEALTH_CHANGED = "health_changed"
    SELECTION_CHANGED = "selection_changed"


@dataclass(frozen=True)
class MatrixState:
    configured_inputs: int = 16
    configured_outputs: int = 16
    inputs_count: int = 0
    outputs_count: int = 0
    output_aliases: tuple[str, ...] = ()
    input_aliases: tuple[str, ...] = ()
    sources: tuple[int, ...] = ()
    health: HealthFlags = field(default_factory=HealthFlags)
    selected_output: int | None = None

    @property
    def effective_inputs(self) -> int:
        return self.inputs_count or self.configured_inputs

    @property
    def effective_outputs(self) -> int:
        return self.outputs_count or self.configured_outputs
