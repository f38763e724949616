"""Bounded exponential-backoff retry around a single backend invoker."""

import asyncio
import logging
from typing import (
    Awaitable,
    Callable,
    FrozenSet,
)

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
)

from stanchion.core.schema import (
    BackendRequest,
    BackendResponse,
)
from stanchion.diagnostics import (
    Diagnostics,
    LoggingDiagnostics,
)

Invoker = Callable[[BackendRequest], Awaitable[BackendResponse]]
"""One backend round: request in, response out.  Each resilience decorator wraps one."""

RETRYABLE_STATUSES: FrozenSet[int] = frozenset({429, 500, 502, 503})

DEFAULT_MAX_RETRIES = 3
DEFAULT_BASE_DELAY_MS = 1000.0


def backoff_delay(attempt: int, base_delay_ms: float = DEFAULT_BASE_DELAY_MS) -> float:
    """Return the delay in ms to wait after failed attempt *attempt* (1-based): 1s, 2s, 4s, ..."""
    return (2 ** (attempt - 1)) * base_delay_ms


def error_status(exc: BaseException) -> int | None:
    """
    Return the HTTP-ish status carried by *exc*, if any.

    Our own :class:`~stanchion.backends.BackendError` uses ``status``; the httpx, anthropic and
    openai SDK errors expose ``status_code``.
    """
    for attr in ("status", "status_code"):
        value = getattr(exc, attr, None)
        if isinstance(value, int):
            return value
    return None


def is_retryable(exc: BaseException) -> bool:
    """True when *exc* signals a transient backend failure."""
    return error_status(exc) in RETRYABLE_STATUSES


class BackoffRetrier:
    """
    Retry *invoker* on transient failures with exponential backoff.

    Each call runs under a fresh :class:`tenacity.AsyncRetrying` whose wait, stop and sleep come
    from the parameters below; the last error is re-raised once attempts run out.

    Parameters
    ----------
    invoker:
        The wrapped backend call.
    max_retries:
        Total number of attempts (the first call included).
    base_delay_ms:
        Delay after the first failed attempt; doubles every attempt.
    delay_fn:
        Pure ``(attempt, base_delay_ms) -> ms`` function.  Override to change the curve.
    sleep:
        Awaitable sleep taking seconds.  Tests pass a no-op.
    """

    def __init__(
        self,
        invoker: Invoker,
        *,
        name: str = "backend",
        max_retries: int = DEFAULT_MAX_RETRIES,
        base_delay_ms: float = DEFAULT_BASE_DELAY_MS,
        delay_fn: Callable[[int, float], float] = backoff_delay,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        diagnostics: Diagnostics | None = None,
    ):
        self._invoker = invoker
        self.name = name
        self.max_retries = max(1, max_retries)
        self.base_delay_ms = base_delay_ms
        self._delay_fn = delay_fn
        self._sleep = sleep
        self._diagnostics = diagnostics or LoggingDiagnostics()

    def retry_delay(self, attempt: int) -> float:
        """Delay in ms before the attempt following *attempt*."""
        return self._delay_fn(attempt, self.base_delay_ms)

    def _wait(self, retry_state: RetryCallState) -> float:
        return self.retry_delay(retry_state.attempt_number) / 1000

    def _before_sleep(self, retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception()
        self._diagnostics.emit(
            logging.WARNING,
            "provider",
            "retrying",
            backend=self.name,
            attempt=retry_state.attempt_number,
            delay_ms=self.retry_delay(retry_state.attempt_number),
            status=error_status(exc),
            error=str(exc),
        )

    async def __call__(self, request: BackendRequest) -> BackendResponse:
        retrying = AsyncRetrying(
            retry=retry_if_exception(is_retryable),
            stop=stop_after_attempt(self.max_retries),
            wait=self._wait,
            before_sleep=self._before_sleep,
            sleep=self._sleep,
            reraise=True,
        )
        return await retrying(self._invoker, request)
