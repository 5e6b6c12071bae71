"""Reconciliation of parsed replies into the matrix model.

Every function here is pure: it takes the current :class:`MatrixState` and
returns the new state together with the events the change produced. The
service applies the result in one synchronous step.
"""

from __future__ import annotations

from dataclasses import replace

from rfmatrixctl.core.model import (
    AliasDump,
    FullStatus,
    HealthFlags,
    MatrixState,
    QuickStatus,
    StateEvent,
)

Reconciled = tuple[MatrixState, tuple[StateEvent, ...]]


def _pad3(n: int) -> str:
    return f"{n:03d}"


def initial_state(configured_inputs: int = 16, configured_outputs: int = 16) -> MatrixState:
    return MatrixState(
        configured_inputs=configured_inputs,
        configured_outputs=configured_outputs,
    )


def apply_alias_dump(state: MatrixState, dump: AliasDump) -> Reconciled:
    events: list[StateEvent] = []
    outputs = len(dump.output_aliases)
    inputs = len(dump.input_aliases)
    if outputs != state.outputs_count or inputs != state.inputs_count:
        events.append(StateEvent.TOPOLOGY_CHANGED)
    if dump.output_aliases != state.output_aliases or dump.input_aliases != state.input_aliases:
        events.append(StateEvent.ALIASES_CHANGED)
    if not events:
        return state, ()
    new_state = replace(
        state,
        outputs_count=outputs,
        inputs_count=inputs,
        output_aliases=dump.output_aliases,
        input_aliases=dump.input_aliases,
    )
    return new_state, tuple(events)


def _apply_flags(state: MatrixState, flags: HealthFlags, events: list[StateEvent]) -> MatrixState:
    if flags == state.health:
        return state
    events.append(StateEvent.HEALTH_CHANGED)
    return replace(state, health=flags)


def apply_full_status(state: MatrixState, status: FullStatus) -> Reconciled:
    events: list[StateEvent] = []
    new_state = state
    if len(status.sources) != state.outputs_count:
        events.append(StateEvent.TOPOLOGY_CHANGED)
        new_state = replace(new_state, outputs_count=len(status.sources))
    if status.sources != state.sources:
        events.append(StateEvent.ROUTING_CHANGED)
        new_state = replace(new_state, sources=status.sources)
    new_state = _apply_flags(new_state, status.flags, events)
    return new_state, tuple(events)


def apply_quick_status(state: MatrixState, status: QuickStatus) -> Reconciled:
    events: list[StateEvent] = []
    new_state = _apply_flags(state, status.flags, events)
    return new_state, tuple(events)


def apply_configured_counts(state: MatrixState, inputs: int, outputs: int) -> Reconciled:
    """Replace the fallback sizes used while the device has not reported any."""
    new_state = replace(state, configured_inputs=inputs, configured_outputs=outputs)
    if (new_state.effective_inputs, new_state.effective_outputs) == (
        state.effective_inputs,
        state.effective_outputs,
    ):
        return new_state, ()
    return new_state, (StateEvent.TOPOLOGY_CHANGED,)


def select_output(state: MatrixState, output: int) -> Reconciled:
    """Select a destination, clamped to the effective output range."""
    clamped = max(1, min(state.effective_outputs, output))
    if clamped == state.selected_output:
        return state, ()
    return replace(state, selected_output=clamped), (StateEvent.SELECTION_CHANGED,)


def clear_selection(state: MatrixState) -> Reconciled:
    if state.selected_output is None:
        return state, ()
    return replace(state, selected_output=None), (StateEvent.SELECTION_CHANGED,)


def max_outputs(state: MatrixState) -> int:
    return len(state.output_aliases) or state.effective_outputs


def max_inputs(state: MatrixState) -> int:
    return len(state.input_aliases) or state.effective_inputs


def output_name(state: MatrixState, output: int) -> str:
    if 1 <= output <= len(state.output_aliases) and state.output_aliases[output - 1]:
        return state.output_aliases[output - 1]
    return f"O{_pad3(output)}"


def input_name(state: MatrixState, input_: int) -> str:
    if 1 <= input_ <= len(state.input_aliases) and state.input_aliases[input_ - 1]:
        return state.input_aliases[input_ - 1]
    return f"I{_pad3(input_)}"


def source_of(state: MatrixState, output: int) -> int | None:
    if 1 <= output <= len(state.sources):
        return state.sources[output - 1]
    return None


def destination_selected(state: MatrixState, output: int) -> bool:
    return state.selected_output == output


def source_matches_selected(state: MatrixState, input_: int) -> bool:
    if state.selected_output is None:
        return False
    return source_of(state, state.selected_output) == input_


def pair_matches_selected(state: MatrixState, input_odd: int) -> bool:
    """True when the selected odd output pair routes from ``input_odd`` and its partner."""
    first = state.selected_output
    if first is None or first % 2 == 0 or input_odd % 2 == 0:
        return False
    return (
        source_of(state, first) == input_odd
        and source_of(state, first + 1) == input_odd + 1
    )


def published_values(state: MatrixState) -> dict[str, str]:
    values: dict[str, str] = {}
    for output in range(1, state.effective_outputs + 1):
        values[f"output_{_pad3(output)}_name"] = output_name(state, output)
        source = source_of(state, output)
        values[f"out_{_pad3(output)}_src"] = "" if source is None else str(source)
    for input_ in range(1, state.effective_inputs + 1):
        values[f"input_{_pad3(input_)}_name"] = input_name(state, input_)

    psu1, psu2, link, summary = state.health.as_tuple()
    values["psu1_ok"] = psu1 or ""
    values["psu2_ok"] = psu2 or ""
    values["link_ok"] = link or ""
    values["summary_alarm_ok"] = summary or ""

    if state.selected_output is None:
        values["selected_output"] = ""
        values["selected_output_name"] = ""
    else:
        values["selected_output"] = str(state.selected_output)
        values["selected_output_name"] = output_name(state, state.selected_output)
    return values
