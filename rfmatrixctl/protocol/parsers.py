"""Reply parsing for device messages.

Every parser returns ``None`` for a reply it cannot use. That is the
signal for "no usable data this cycle" and never raises.
"""

from __future__ import annotations

import re

from rfmatrixctl.core.model import AliasDump, FullStatus, HealthFlags, QuickStatus
from rfmatrixctl.protocol.codec import decode

_LEADING_INT_RE = re.compile(r"^\s*([+-]?\d+)")

ALIAS_HEADER_SUFFIX = "T?"
STATUS_HEADER_MARKER = "STATUS"
QUICK_STATUS_MARKER = "Q"
FLAG_COUNT = 4


def _lenient_int(token: str) -> int:
    match = _LEADING_INT_RE.match(token)
    return int(match.group(1)) if match else 0


def parse_alias_dump(raw: str) -> AliasDump | None:
    """Parse an alias dump reply.

    Example: ``{BAT?,C1-1,C2-2,ANT1,ANT2}x`` has outputs ``C1-1, C2-2`` and
    inputs ``ANT1, ANT2``. The token list after the header is split in half.
    """
    reply = decode(raw)
    if reply is None or len(reply.tokens) < 2:
        return None
    if not reply.tokens[0].endswith(ALIAS_HEADER_SUFFIX):
        return None
    names = reply.tokens[1:]
    if len(names) % 2 != 0:
        return None
    half = len(names) // 2
    return AliasDump(output_aliases=names[:half], input_aliases=names[half:])


def parse_full_status(raw: str) -> FullStatus | None:
    """Parse a full status reply.

    Example: ``{BASTATUS,001,002,O,F,O,F}x``. Tokens between the header and
    the four trailing flags are routed input numbers, one per output.
    """
    reply = decode(raw)
    if reply is None:
        return None
    if STATUS_HEADER_MARKER not in reply.tokens[0]:
        return None
    if len(reply.tokens) < 2 + FLAG_COUNT:
        return None
    sources = tuple(_lenient_int(token) for token in reply.tokens[1:-FLAG_COUNT])
    flags = HealthFlags.from_sequence(reply.tokens[-FLAG_COUNT:])
    return FullStatus(sources=sources, flags=flags)


def parse_quick_status(raw: str) -> QuickStatus | None:
    """Parse a quick status reply such as ``{BAQOFOF}x``."""
    reply = decode(raw)
    if reply is None:
        return None
    inner = reply.inner
    if len(inner) < 6 or inner[2] != QUICK_STATUS_MARKER:
        return None
    return QuickStatus(flags=HealthFlags.from_sequence(list(inner[3 : 3 + FLAG_COUNT])))
