"""Typer CLI entrypoint."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict
from pathlib import Path

import typer

from rfmatrixctl.core import state as matrix
from rfmatrixctl.core.errors import RfMatrixError
from rfmatrixctl.core.model import HealthState, MatrixState, StateEvent
from rfmatrixctl.core.service import MatrixService
from rfmatrixctl.protocol.commands import BoundPolicy

app = typer.Typer(help="RF matrix switch control over the bracketed ASCII TCP protocol")

_FLAG_LABELS = ("PSU1", "PSU2", "Link", "Summary")


@app.callback()
def main(
    ctx: typer.Context,
    config: Path | None = typer.Option(None, "--config", help="YAML config file"),
    host: str | None = typer.Option(None, "--host", help="Device host, overrides config"),
    port: int | None = typer.Option(None, "--port", help="Device TCP port, overrides config"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log TX/RX frames"),
) -> None:
    """Talk to one matrix switch. Settings come from --config or the XDG user file."""
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(asctime)s %(name)s %(levelname)s %(message)s")
    ctx.obj = {"config_path": config, "overrides": {"host": host, "port": port}}


def _build_service(ctx: typer.Context) -> MatrixService:
    options = ctx.obj or {}
    service = MatrixService(
        config_path=options.get("config_path"),
        overrides=options.get("overrides"),
    )
    for warning in getattr(service, "load_warnings", ()):
        typer.echo(f"Warning: {warning}", err=True)
    return service


def _fail(message: str) -> None:
    typer.echo(f"Error: {message}", err=True)
    raise typer.Exit(code=1)


def _check_health(service: MatrixService, health: HealthState) -> None:
    if health is HealthState.CONNECTION_FAILURE:
        _fail(service.health_message)
    if health is HealthState.UNKNOWN:
        typer.echo(f"Warning: {service.health_message}", err=True)
        raise typer.Exit(code=1)


def _flag_text(flag: str | None) -> str:
    return flag if flag is not None else "?"


def _echo_flags(state: MatrixState) -> None:
    pairs = zip(_FLAG_LABELS, state.health.as_tuple())
    typer.echo("  ".join(f"{label}={_flag_text(flag)}" for label, flag in pairs))


@app.command("config")
def show_config(ctx: typer.Context) -> None:
    """Print the effective configuration."""
    try:
        service = _build_service(ctx)
        for key, value in asdict(service.config).items():
            typer.echo(f"{key}: {value}")
    except RfMatrixError as exc:
        _fail(str(exc))


@app.command("test-connect")
def test_connect(ctx: typer.Context) -> None:
    """Send a full status request and print the raw reply."""
    try:
        service = _build_service(ctx)
        if not asyncio.run(service.test_connect()):
            _fail(service.last_error)
        typer.echo(f"Reply: {service.last_reply}")
    except RfMatrixError as exc:
        _fail(str(exc))


@app.command("status")
def full_status(ctx: typer.Context) -> None:
    """Read routing and health flags (?)."""
    try:
        service = _build_service(ctx)
        _check_health(service, asyncio.run(service.poll_status_once()))
        state = service.state
        for output in range(1, len(state.sources) + 1):
            source = matrix.source_of(state, output)
            typer.echo(
                f"{output:03d} {matrix.output_name(state, output)} <- {source:03d} "
                f"{matrix.input_name(state, source) if source else '-'}"
            )
        _echo_flags(state)
    except RfMatrixError as exc:
        _fail(str(exc))


@app.command("quick-status")
def quick_status(ctx: typer.Context) -> None:
    """Read health flags only (Q)."""
    try:
        service = _build_service(ctx)
        _check_health(service, asyncio.run(service.poll_quick_status_once()))
        _echo_flags(service.state)
    except RfMatrixError as exc:
        _fail(str(exc))


@app.command("aliases")
def aliases(ctx: typer.Context) -> None:
    """Read output and input alias names (T?)."""
    try:
        service = _build_service(ctx)
        _check_health(service, asyncio.run(service.poll_aliases_once()))
        state = service.state
        typer.echo(f"Outputs ({state.outputs_count}):")
        for index, name in enumerate(state.output_aliases, start=1):
            typer.echo(f"  {index:03d} {name}")
        typer.echo(f"Inputs ({state.inputs_count}):")
        for index, name in enumerate(state.input_aliases, start=1):
            typer.echo(f"  {index:03d} {name}")
    except RfMatrixError as exc:
        _fail(str(exc))


@app.command("route")
def route(
    ctx: typer.Context,
    output: int,
    input_: int = typer.Argument(..., metavar="INPUT"),
    legacy_bounds: bool = typer.Option(False, "--legacy-bounds", help="Accept input 0 like the legacy route"),
) -> None:
    """Route INPUT to OUTPUT (s,OOO,III)."""
    try:
        service = _build_service(ctx)
        policy = BoundPolicy.LEGACY if legacy_bounds else BoundPolicy.STRICT
        if not asyncio.run(service.route(output, input_, policy=policy)):
            _fail(service.last_error)
        typer.echo(f"Routed {input_:03d} -> {output:03d} reply={service.last_reply}")
    except RfMatrixError as exc:
        _fail(str(exc))


@app.command("route-pair")
def route_pair(
    ctx: typer.Context,
    output_odd: int,
    input_odd: int,
) -> None:
    """Route odd INPUT_ODD and its partner to odd OUTPUT_ODD and its partner."""

    async def _run(service: MatrixService) -> bool:
        # Pair bounds use the device's real size when it answers.
        await service.poll_aliases_once()
        return await service.route_pair(output_odd, input_odd)

    try:
        service = _build_service(ctx)
        if not asyncio.run(_run(service)):
            _fail(service.last_error)
        typer.echo(
            f"Routed {input_odd:03d}+{input_odd + 1:03d} -> {output_odd:03d}+{output_odd + 1:03d}"
        )
    except RfMatrixError as exc:
        _fail(str(exc))


@app.command("monitor")
def monitor(
    ctx: typer.Context,
    duration: float = typer.Option(10.0, "--duration", help="Seconds to run; 0 runs until interrupted"),
) -> None:
    """Poll aliases and status on their intervals and print changes."""

    def _on_event(event: StateEvent, state: MatrixState) -> None:
        if event is StateEvent.ROUTING_CHANGED:
            routes = " ".join(f"{o}<-{s}" for o, s in enumerate(state.sources, start=1))
            typer.echo(f"[{event.value}] {routes}")
        elif event is StateEvent.HEALTH_CHANGED:
            typer.echo(f"[{event.value}] " + " ".join(_flag_text(f) for f in state.health.as_tuple()))
        elif event is StateEvent.TOPOLOGY_CHANGED:
            typer.echo(f"[{event.value}] outputs={state.effective_outputs} inputs={state.effective_inputs}")
        else:
            typer.echo(f"[{event.value}]")

    async def _run(service: MatrixService) -> None:
        service.subscribe(_on_event)
        try:
            await service.start()
            typer.echo(f"Health: {service.health.value} ({service.health_message})")
            if duration > 0:
                await asyncio.sleep(duration)
            else:
                await asyncio.Event().wait()
        finally:
            await service.close()

    try:
        service = _build_service(ctx)
        asyncio.run(_run(service))
    except KeyboardInterrupt:
        typer.echo("Stopped")
    except RfMatrixError as exc:
        _fail(str(exc))


def run() -> None:
    app()


if __name__ == "__main__":
    run()
