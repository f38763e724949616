"""
Resilience layer for backend calls.

Every backend call goes through ``CircuitBreaker(BackoffRetrier(backend.call))``.  Both decorators
take an :data:`Invoker` and return one, so the chain is plain composition.  A breaker failure is one
*exhausted* retry sequence, not one raw attempt.
"""

from typing import (
    Any,
    Dict,
    List,
    Sequence,
)

from stanchion.backends import Backend
from stanchion.config import Settings
from stanchion.core.schema import (
    BackendRequest,
    BackendResponse,
    CircuitStatus,
    Message,
    ToolResult,
)
from stanchion.diagnostics import Diagnostics
from stanchion.resilience.circuit_breaker import (
    CircuitBreaker,
    CircuitOpenError,
)
from stanchion.resilience.retry import (
    BackoffRetrier,
    Invoker,
    backoff_delay,
)

__all__ = [
    "BackoffRetrier",
    "CircuitBreaker",
    "CircuitOpenError",
    "Invoker",
    "ResilientBackend",
    "backoff_delay",
    "build_resilient_backend",
]


class ResilientBackend:
    """A backend adapter paired with the breaker-over-retrier chain guarding its calls."""

    def __init__(self, backend: Backend, breaker: CircuitBreaker):
        self.backend = backend
        self.breaker = breaker

    @property
    def name(self) -> str:
        """Name of the wrapped backend."""
        return self.backend.name

    async def invoke(self, request: BackendRequest) -> BackendResponse:
        """Call the backend through the circuit breaker and retrier."""
        return await self.breaker(request)

    def build_tool_result_messages(
        self, raw_content: Any, results: Sequence[ToolResult]
    ) -> List[Message]:
        """Delegate to the adapter, which owns its native message shape."""
        return self.backend.build_tool_result_messages(raw_content, results)

    def adapt_tool_definitions(self, definitions: Sequence[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Delegate to the adapter."""
        return self.backend.adapt_tool_definitions(definitions)

    def status(self) -> CircuitStatus:
        """Snapshot of the circuit breaker."""
        return self.breaker.status()


def build_resilient_backend(
    backend: Backend, config: Settings, diagnostics: Diagnostics | None = None
) -> ResilientBackend:
    """Wrap *backend* with retry and circuit breaking configured from *config*."""
    retrier = BackoffRetrier(
        backend.call,
        name=backend.name,
        max_retries=config.MAX_RETRIES,
        base_delay_ms=config.RETRY_BASE_DELAY_MS,
        diagnostics=diagnostics,
    )
    breaker = CircuitBreaker(
        retrier,
        name=backend.name,
        threshold=config.CIRCUIT_THRESHOLD,
        cooldown_ms=config.CIRCUIT_COOLDOWN_MS,
        diagnostics=diagnostics,
    )
    return ResilientBackend(backend, breaker)
