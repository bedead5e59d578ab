"""Owned periodic timers.

A :class:`PeriodicTask` wraps one asyncio task that invokes a callback on a
fixed interval.  ``start()`` hands back the task object itself and ``stop()``
is the only way to release it; ``async with`` guarantees the stop on every
exit path.
"""

from __future__ import annotations

import asyncio
import contextlib
import inspect
import logging
from collections.abc import Callable
from typing import Any

__all__ = ["PeriodicTask"]

logger = logging.getLogger("agrolink.timers")


class PeriodicTask:
    """Run *callback* every *interval_s* seconds on the running event loop.

    Parameters:
        callback:
            Sync or async callable taking no arguments.
        interval_s:
            Delay between invocations.
        name:
            Label used for the asyncio task and in log records.
        run_immediately:
            Invoke once right after ``start()`` instead of waiting a full
            interval first.
        on_error:
            Called with the exception after a failed invocation has ended
            the task.

    An exception escaping *callback* is logged and ends the task; the handle
    then reports ``running == False`` and can be started again.
    """

    def __init__(
        self,
        callback: Callable[[], Any],
        interval_s: float,
        *,
        name: str = "periodic",
        run_immediately: bool = False,
        on_error: Callable[[Exception], Any] | None = None,
    ) -> None:
        if interval_s <= 0:
            raise ValueError(f"interval_s must be positive, got {interval_s}")
        self._callback = callback
        self._is_async = inspect.iscoroutinefunction(callback)
        self.interval_s = interval_s
        self.name = name
        self._run_immediately = run_immediately
        self._on_error = on_error
        self._task: asyncio.Task[None] | None = None
        self.invocations = 0

    # -- lifecycle --

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> PeriodicTask:
        """Schedule the loop on the running event loop and return ``self``."""
        if self.running:
            raise RuntimeError(f"Periodic task '{self.name}' is already running")
        self._task = asyncio.get_running_loop().create_task(self._run(), name=self.name)
        logger.debug("Started periodic task '%s' (every %.3fs)", self.name, self.interval_s)
        return self

    def stop(self) -> None:
        """Cancel the loop.  Safe to call more than once."""
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            logger.debug("Stopped periodic task '%s'", self.name)

    async def aclose(self) -> None:
        """Stop and wait until the underlying asyncio task has finished."""
        task = self._task
        self.stop()
        if task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await task

    async def __aenter__(self) -> PeriodicTask:
        if not self.running:
            self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    # -- internal --

    async def _invoke(self) -> None:
        if self._is_async:
            await self._callback()
        else:
            self._callback()
        self.invocations += 1

    async def _run(self) -> None:
        try:
            if self._run_immediately:
                await self._invoke()
            while True:
                await asyncio.sleep(self.interval_s)
                await self._invoke()
        except Exception as exc:
            logger.exception("Periodic task '%s' failed - stopping", self.name)
            if self._on_error is not None:
                self._on_error(exc)
