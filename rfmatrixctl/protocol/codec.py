"""Packet framing for the bracketed, checksummed ASCII protocol.

Packet layout::

    {<DA><SA><command>}<checksum>\\r\\n

- The checksum is one character computed over the bracketed payload,
  braces included: ``chr(sum(ord(c) - 32) % 95 + 32)``.
- CRLF is appended only when the packet is put on the wire.
- Replies use the same framing; the checksum is not verified on receipt
  unless a caller asks for it explicitly.
"""

from __future__ import annotations

from rfmatrixctl.core.errors import EncodingError
from rfmatrixctl.core.model import RawReply

OPEN = "{"
CLOSE = "}"
TERMINATOR = "\r\n"


def checksum_of(payload: str) -> str:
    """Return the checksum character for a bracketed payload.

    Characters outside the printable range are not rejected; they simply
    contribute to the sum the way the device firmware counts them.
    """
    total = sum(ord(c) - 32 for c in payload)
    return chr(total % 95 + 32)


def encode(body: str) -> str:
    """Wrap ``body`` in braces and append its checksum character.

    Raises:
        EncodingError: If the body is not representable as ASCII.
    """
    try:
        body.encode("ascii")
    except UnicodeEncodeError as exc:
        raise EncodingError(f"Body {body!r} is not ASCII: {exc}") from exc
    payload = f"{OPEN}{body}{CLOSE}"
    return payload + checksum_of(payload)


def to_wire(packet: str) -> bytes:
    """Terminate a packet with CRLF and return the bytes to transmit."""
    if len(packet) < 3 or not packet.startswith(OPEN) or packet[-2] != CLOSE:
        raise EncodingError(f"Malformed packet {packet!r}: missing braces")
    try:
        return (packet + TERMINATOR).encode("ascii")
    except UnicodeEncodeError as exc:
        raise EncodingError(f"Packet {packet!r} is not ASCII: {exc}") from exc


def decode(raw: str) -> RawReply | None:
    """Locate the bracketed payload of a reply and split it on commas.

    Returns ``None`` when the reply has no ``{ ... }`` span, which callers
    treat as "no usable data" rather than as an error.
    """
    start = raw.find(OPEN)
    end = raw.rfind(CLOSE)
    if start < 0 or end < 0 or end <= start:
        return None
    inner = raw[start + 1 : end]
    trailer = raw[end + 1 : end + 2]
    return RawReply(
        raw=raw,
        inner=inner,
        tokens=tuple(inner.split(",")),
        checksum=trailer if trailer and trailer not in "\r\n" else None,
    )


def checksum_matches(raw: str) -> bool:
    """Check the trailing checksum character of a reply against its payload."""
    start = raw.find(OPEN)
    end = raw.rfind(CLOSE)
    if start < 0 or end < 0 or end <= start:
        return False
    trailer = raw[end + 1 : end + 2]
    if not trailer:
        return False
    return checksum_of(raw[start : end + 1]) == trailer
