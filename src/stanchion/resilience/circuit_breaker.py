"""
Circuit breaker decorator for backend invokers.

Wraps an :data:`~stanchion.resilience.retry.Invoker` (normally a
:class:`~stanchion.resilience.retry.BackoffRetrier`) with a three-state breaker:

    CLOSED    -> calls pass through; ``threshold`` consecutive failures open the circuit
    OPEN      -> calls are rejected with :class:`CircuitOpenError` until ``cooldown_ms`` elapses
    HALF_OPEN -> exactly one trial call; success closes, failure reopens immediately

OPEN -> HALF_OPEN happens lazily on the next call attempt; there is no background timer.
"""

import asyncio
import logging
import math
import threading
import time
from typing import Callable

from stanchion.core.schema import (
    BackendRequest,
    BackendResponse,
    CircuitState,
    CircuitStatus,
)
from stanchion.diagnostics import (
    Diagnostics,
    LoggingDiagnostics,
)
from stanchion.resilience.retry import Invoker

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLD = 5
DEFAULT_COOLDOWN_MS = 60_000.0


def _now_ms() -> float:
    return time.time() * 1000


class CircuitOpenError(RuntimeError):
    """Raised instead of calling a backend whose circuit is open."""

    def __init__(self, backend_name: str, retry_after_ms: float):
        self.backend_name = backend_name
        self.retry_after_ms = max(0.0, retry_after_ms)
        if self.retry_after_ms:
            detail = f"retry in {math.ceil(self.retry_after_ms / 1000)}s"
        else:
            detail = "trial call in progress"
        super().__init__(f"Circuit breaker OPEN for {backend_name}, {detail}")


class CircuitBreaker:
    """
    Refuse calls fast once a backend is persistently failing.

    State is shared by every turn that calls the same backend.  All reads and transitions happen
    under ``self._lock`` in sections that never await, so reserving the half-open trial slot is
    atomic even with concurrent turns on one event loop or on several threads.
    """

    def __init__(
        self,
        invoker: Invoker,
        *,
        name: str = "backend",
        threshold: int = DEFAULT_THRESHOLD,
        cooldown_ms: float = DEFAULT_COOLDOWN_MS,
        clock: Callable[[], float] = _now_ms,
        diagnostics: Diagnostics | None = None,
    ):
        self._invoker = invoker
        self.name = name
        self.threshold = threshold
        self.cooldown_ms = cooldown_ms
        self._clock = clock
        self._diagnostics = diagnostics or LoggingDiagnostics()
        self._lock = threading.Lock()

        self._state = CircuitState.CLOSED
        self._failures = 0
        self._last_failure: float | None = None
        self._last_success: float | None = clock()
        self._trial_in_flight = False

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #
    @property
    def state(self) -> CircuitState:
        """Current state (a plain enum value)."""
        with self._lock:
            return self._state

    def status(self) -> CircuitStatus:
        """Return a snapshot of the breaker for diagnostics."""
        with self._lock:
            return CircuitStatus(
                backend=self.name,
                state=self._state,
                failures=self._failures,
                last_success=self._last_success,
                last_failure=self._last_failure,
                threshold=self.threshold,
                cooldown_ms=self.cooldown_ms,
            )

    async def __call__(self, request: BackendRequest) -> BackendResponse:
        is_trial = self._before_call()
        try:
            response = await self._invoker(request)
        except (Exception, asyncio.CancelledError) as exc:
            # a cancelled call (e.g. a timeout) counts as a failure and frees the trial slot
            self._on_failure(exc, is_trial)
            raise
        self._on_success(is_trial)
        return response

    # ------------------------------------------------------------------ #
    # Transitions
    # ------------------------------------------------------------------ #
    def _before_call(self) -> bool:
        """Admit or reject a call.  Returns True when the admitted call is the half-open trial."""
        with self._lock:
            if self._state is CircuitState.CLOSED:
                return False

            if self._state is CircuitState.HALF_OPEN:
                if self._trial_in_flight:
                    raise CircuitOpenError(self.name, 0)
                self._trial_in_flight = True
                return True

            elapsed = self._clock() - (self._last_failure or 0.0)
            if elapsed < self.cooldown_ms:
                raise CircuitOpenError(self.name, self.cooldown_ms - elapsed)

            self._state = CircuitState.HALF_OPEN
            self._trial_in_flight = True
        self._diagnostics.emit(logging.INFO, "provider", "circuit_half_open", backend=self.name)
        return True

    def _on_success(self, is_trial: bool) -> None:
        with self._lock:
            was_recovering = self._state is not CircuitState.CLOSED
            previous_failures = self._failures
            self._failures = 0
            self._state = CircuitState.CLOSED
            self._last_success = self._clock()
            if is_trial:
                self._trial_in_flight = False
        if was_recovering:
            self._diagnostics.emit(
                logging.INFO,
                "provider",
                "circuit_closed",
                backend=self.name,
                previous_failures=previous_failures,
            )

    def _on_failure(self, exc: BaseException, is_trial: bool) -> None:
        with self._lock:
            self._failures += 1
            self._last_failure = self._clock()
            if is_trial:
                self._trial_in_flight = False
            opened = False
            if self._state is not CircuitState.OPEN and (
                self._state is CircuitState.HALF_OPEN or self._failures >= self.threshold
            ):
                self._state = CircuitState.OPEN
                opened = True
            failures = self._failures
        if opened:
            self._diagnostics.emit(
                logging.WARNING,
                "provider",
                "circuit_opened",
                backend=self.name,
                failures=failures,
                cooldown_ms=self.cooldown_ms,
                last_error=str(exc) or type(exc).__name__,
            )
        else:
            logger.debug("Backend '%s' failure %d/%d: %s", self.name, failures, self.threshold, exc)
