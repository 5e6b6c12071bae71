"""Periodic task runner used for alias and status polling."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

LOGGER = logging.getLogger(__name__)

TickFn = Callable[[], Awaitable[object]]
ErrorHook = Callable[[str, BaseException], None]


def _log_error(name: str, exc: BaseException) -> None:
    LOGGER.debug("%s tick failed: %s", name, exc)


class PeriodicTask:
    """Run ``task`` every ``interval_s`` seconds on the running event loop.

    A tick is awaited to completion before the next one is scheduled, so a
    task never overlaps itself. Exceptions from a tick go to ``on_error`` and
    the schedule carries on; there is no backoff.

    ``stop()`` takes effect before the next fire. A tick already in flight
    is left to finish (or time out) on its own.
    """

    def __init__(
        self,
        name: str,
        interval_s: float,
        task: TickFn,
        *,
        min_interval_s: float = 0.0,
        on_error: ErrorHook | None = None,
    ) -> None:
        self.name = name
        self.interval_s = max(min_interval_s, interval_s)
        self._task = task
        self._on_error = on_error or _log_error
        self._runner: asyncio.Task[None] | None = None
        self._generation = 0
        self._ticking: set[asyncio.Task[None]] = set()
        # Stopped runners finishing an in-flight tick.
        self._draining: set[asyncio.Task[None]] = set()

    @property
    def running(self) -> bool:
        return self._runner is not None

    def start(self) -> None:
        self.stop()
        self._runner = asyncio.get_running_loop().create_task(
            self._run(self._generation),
            name=f"periodic:{self.name}",
        )

    def stop(self) -> None:
        self._generation += 1
        runner = self._runner
        self._runner = None
        if runner is None or runner.done():
            return
        if runner in self._ticking:
            self._draining.add(runner)
            runner.add_done_callback(self._draining.discard)
        else:
            runner.cancel()

    async def _run(self, generation: int) -> None:
        loop = asyncio.get_running_loop()
        me = asyncio.current_task()
        next_fire = loop.time() + self.interval_s
        while generation == self._generation:
            await asyncio.sleep(max(0.0, next_fire - loop.time()))
            if generation != self._generation:
                return
            self._ticking.add(me)
            try:
                await self._task()
            except Exception as exc:
                self._on_error(self.name, exc)
            finally:
                self._ticking.discard(me)
            next_fire = max(next_fire + self.interval_s, loop.time())
