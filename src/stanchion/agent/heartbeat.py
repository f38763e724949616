"""Liveness heartbeat ("still working" signal) around a unit of async work."""

import asyncio
import contextlib
import logging
from typing import (
    Awaitable,
    Callable,
    TypeVar,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_INTERVAL_MS = 4000.0


async def _safe_beat(beat: Callable[[], Awaitable[None]]) -> None:
    try:
        await beat()
    except Exception as exc:  # noqa: BLE001
        # heartbeat failures never fail the turn
        logger.warning("Heartbeat signal failed: %s", exc)


async def _tick(beat: Callable[[], Awaitable[None]], interval_s: float) -> None:
    while True:
        await asyncio.sleep(interval_s)
        await _safe_beat(beat)


async def with_heartbeat(
    beat: Callable[[], Awaitable[None]],
    work: Callable[[], Awaitable[T]],
    interval_ms: float = DEFAULT_INTERVAL_MS,
) -> T:
    """
    Await ``work()`` while calling ``beat()`` once immediately and then every *interval_ms*.

    The ticker task is cancelled and reaped on every exit path (result, exception or
    cancellation), so no beat fires after this coroutine returns.  A failing beat is logged and
    never interrupts *work*.
    """
    await _safe_beat(beat)
    ticker = asyncio.create_task(_tick(beat, interval_ms / 1000))
    try:
        return await work()
    finally:
        ticker.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await ticker
