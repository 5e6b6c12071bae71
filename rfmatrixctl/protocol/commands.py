"""Command bodies and bound-checked route builders.

A body is the text placed between the braces of a packet. Route bodies are
built here without the address prefix; :class:`AddressPair` adds it.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from rfmatrixctl.core.errors import ValidationError

STATUS = "?"
QUICK_STATUS = "Q"
ALIAS_DUMP = "T?"

# Route indices are always sent as three digits.
ROUTE_INDEX_CEILING = 999


class BoundPolicy(Enum):
    """Lower bound applied to the input index of a single route.

    ``STRICT`` is used by the XY workflow (select a destination, then a
    source). ``LEGACY`` matches the older explicit route action, which
    also accepts input 0.
    """

    STRICT = 1
    LEGACY = 0

    @property
    def min_input(self) -> int:
        return self.value


@dataclass(frozen=True)
class AddressPair:
    dst: str = "A"
    src: str = "B"

    def body(self, command: str) -> str:
        return f"{self.dst}{self.src}{command}"


def _pad3(n: int) -> str:
    return f"{n:03d}"


def route_body(output: int, input_: int) -> str:
    return f"s,{_pad3(output)},{_pad3(input_)}"


def build_route(
    output: int,
    input_: int,
    *,
    max_outputs: int,
    max_inputs: int,
    policy: BoundPolicy = BoundPolicy.STRICT,
) -> str:
    """Build a short-switch body routing ``input_`` to ``output``.

    Args:
        output: 1-based output index.
        input_: Input index; lower bound depends on ``policy``.
        max_outputs: Outputs currently known for the matrix.
        max_inputs: Inputs currently known for the matrix.
        policy: Input lower bound policy of the calling workflow.

    Raises:
        ValidationError: If either index is out of range.
    """
    out_ceiling = max(ROUTE_INDEX_CEILING, max_outputs)
    in_ceiling = max(ROUTE_INDEX_CEILING, max_inputs)
    if not 1 <= output <= out_ceiling:
        raise ValidationError(f"Output must be 1..{out_ceiling}, got {output}")
    if not policy.min_input <= input_ <= in_ceiling:
        raise ValidationError(
            f"Input must be {policy.min_input}..{in_ceiling}, got {input_}"
        )
    return route_body(output, input_)


def build_pair_route(
    output_odd: int,
    input_odd: int,
    *,
    max_outputs: int,
    max_inputs: int,
) -> tuple[str, str]:
    """Build both bodies of a paired route anchored at odd indices.

    Routes ``input_odd`` to ``output_odd`` and ``input_odd + 1`` to
    ``output_odd + 1``. Both halves are validated before either is returned.

    Raises:
        ValidationError: If an anchor is even, out of range, or its pair
            partner would exceed the matrix size.
    """
    if output_odd < 1 or output_odd % 2 == 0 or output_odd > max_outputs:
        raise ValidationError(f"Output must be odd 1..{max_outputs}, got {output_odd}")
    if input_odd < 1 or input_odd % 2 == 0 or input_odd > max_inputs:
        raise ValidationError(f"Input must be odd 1..{max_inputs}, got {input_odd}")
    if output_odd + 1 > max_outputs:
        raise ValidationError(f"Output pair overflows. Need {output_odd + 1}, have {max_outputs}")
    if input_odd + 1 > max_inputs:
        raise ValidationError(f"Input pair overflows. Need {input_odd + 1}, have {max_inputs}")
    return (
        route_body(output_odd, input_odd),
        route_body(output_odd + 1, input_odd + 1),
    )
