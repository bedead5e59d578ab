"""Bounded exponential-backoff retry for remote calls.

Usage::

    result = await call_with_retry(lambda: transport.generate(request), policy)

The wrapped callable is attempted up to ``policy.max_attempts`` times.
Failures are classified with :func:`~agrolink.client.errors.classify_error`;
only :class:`~agrolink.client.errors.TransientServiceError` is retried.
"""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TypeVar

from pydantic import BaseModel, Field

from agrolink.client.errors import RequestCancelledError, ServiceError, classify_error

__all__ = ["RetryPolicy", "RetryState", "call_with_retry", "compute_backoff"]

logger = logging.getLogger("agrolink.client.retry")

T = TypeVar("T")


class RetryPolicy(BaseModel):
    """Retry knobs shared by every operation of a client.

    Attributes:
        max_attempts: Total attempts including the first one.
        base_delay_s: Delay before the second attempt; doubles every retry.
        max_jitter_s: Upper bound of the uniform random delay added to each wait.
    """

    model_config = {"frozen": True}

    max_attempts: int = Field(default=5, ge=1)
    base_delay_s: float = Field(default=1.0, ge=0.0)
    max_jitter_s: float = Field(default=0.5, ge=0.0)


@dataclass
class RetryState:
    """Per-call bookkeeping; created by :func:`call_with_retry`, never shared."""

    attempt: int = 0
    last_error: ServiceError | None = None
    delays: list[float] = field(default_factory=list)


def compute_backoff(attempt: int, policy: RetryPolicy, rng: random.Random | None = None) -> float:
    """Delay after failed attempt *attempt* (0-based): ``base * 2**attempt + jitter``."""
    jitter = (rng or random).uniform(0.0, policy.max_jitter_s)
    return policy.base_delay_s * (2 ** attempt) + jitter


async def _wait(delay: float, cancel_event: asyncio.Event | None) -> None:
    if cancel_event is None:
        await asyncio.sleep(delay)
        return
    if cancel_event.is_set():
        raise RequestCancelledError("Call cancelled before retry")
    try:
        await asyncio.wait_for(cancel_event.wait(), timeout=delay)
    except asyncio.TimeoutError:
        return
    raise RequestCancelledError("Call cancelled during backoff")


async def call_with_retry(
    fn: Callable[[], Awaitable[T]],
    policy: RetryPolicy | None = None,
    *,
    cancel_event: asyncio.Event | None = None,
    rng: random.Random | None = None,
    on_backoff: Callable[[RetryState, float], None] | None = None,
    label: str = "remote call",
) -> T:
    """Await ``fn()`` until it succeeds, fails fatally, or attempts run out.

    Parameters:
        fn: Zero-argument coroutine factory; called once per attempt.
        policy: Attempt budget and backoff parameters.
        cancel_event: When set, any pending backoff wait ends immediately
            with :class:`RequestCancelledError`.
        rng: Jitter source.
        on_backoff: Observer called with the state and chosen delay before
            every wait.
        label: Name used in log records.

    Raises:
        ServiceError: the classified error of the last attempt.
    """
    policy = policy or RetryPolicy()
    state = RetryState()

    while True:
        if cancel_event is not None and cancel_event.is_set():
            raise RequestCancelledError(f"{label} cancelled")
        try:
            return await fn()
        except Exception as exc:
            error = classify_error(exc)
            state.last_error = error

        made = state.attempt + 1
        if not error.retryable:
            raise error
        if made >= policy.max_attempts:
            logger.error("%s failed after %d attempts: %s", label, made, error)
            raise error

        delay = compute_backoff(state.attempt, policy, rng)
        state.delays.append(delay)
        if on_backoff is not None:
            on_backoff(state, delay)
        logger.warning(
            "%s attempt %d/%d failed: %s - retrying in %.2fs",
            label,
            made,
            policy.max_attempts,
            error,
            delay,
        )
        await _wait(delay, cancel_event)
        state.attempt += 1
