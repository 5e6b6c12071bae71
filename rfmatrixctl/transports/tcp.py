"""One-shot TCP transport implementation using asyncio streams."""

from __future__ import annotations

import asyncio
import logging
import socket

from rfmatrixctl.core.errors import TransportError, TransportTimeoutError
from rfmatrixctl.transports.base import DEFAULT_IDLE_TIMEOUT_S, DEFAULT_OVERALL_TIMEOUT_S

LOGGER = logging.getLogger(__name__)

_READ_SIZE = 4096


class _Exchange:
    """A single connect/write/collect cycle with idempotent teardown."""

    def __init__(self, host: str, port: int) -> None:
        self.host = host
        self.port = port
        self._writer: asyncio.StreamWriter | None = None
        self._closed = False

    async def run(self, message: bytes, idle_timeout_s: float) -> str:
        try:
            reader, writer = await asyncio.open_connection(self.host, self.port)
            self._writer = writer

            sock = writer.get_extra_info("socket")
            if sock is not None:
                sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)

            LOGGER.debug("TX %s:%s %r", self.host, self.port, message)
            writer.write(message)
            await writer.drain()

            chunks: list[bytes] = []
            while True:
                try:
                    chunk = await asyncio.wait_for(reader.read(_READ_SIZE), timeout=idle_timeout_s)
                except asyncio.TimeoutError:
                    # Quiet line: the device is done talking.
                    break
                if not chunk:
                    break
                chunks.append(chunk)
        except OSError as exc:
            raise TransportError(f"TCP request to {self.host}:{self.port} failed: {exc}") from exc

        return b"".join(chunks).decode("ascii", errors="replace")

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._writer is not None:
            self._writer.transport.abort()
            self._writer = None


class TCPTransport:
    async def request(
        self,
        host: str,
        port: int,
        message: bytes,
        *,
        idle_timeout_s: float = DEFAULT_IDLE_TIMEOUT_S,
        overall_timeout_s: float = DEFAULT_OVERALL_TIMEOUT_S,
    ) -> str:
        exchange = _Exchange(host, port)
        try:
            reply = await asyncio.wait_for(
                exchange.run(message, idle_timeout_s),
                timeout=overall_timeout_s,
            )
        except asyncio.TimeoutError as exc:
            raise TransportTimeoutError(
                f"TCP overall timeout after {overall_timeout_s:.3f}s talking to {host}:{port}"
            ) from exc
        finally:
            exchange.close()

        LOGGER.debug("RX %s:%s %r", host, port, reply)
        return reply
