"""
Backend adapters for Stanchion.

This package is the only place that *directly* calls an LLM.  Everything else (resilience layer,
tool orchestration, turn handling) talks to a backend through the :class:`Backend` capability
interface and never inspects backend-native payloads.

Built-in backends:

1. **anthropic** - Anthropic messages API (requires ``ANTHROPIC_API_KEY``).
2. **openai** - OpenAI chat completions API (requires ``OPENAI_API_KEY``).
3. **mock** - offline, scriptable backend for local runs and tests.

Additional backends can be added by implementing :class:`Backend` and registering a factory via
:func:`register_backend`.
"""

from typing import (
    Any,
    Callable,
    Dict,
    List,
    Protocol,
    Sequence,
    runtime_checkable,
)

from stanchion.config import Settings
from stanchion.core.schema import (
    BackendRequest,
    BackendResponse,
    Message,
    ToolResult,
)


class BackendError(RuntimeError):
    """Raised by adapters when a backend call fails.  ``status`` drives retry eligibility."""

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status


@runtime_checkable
class Backend(Protocol):
    """Capability interface every backend adapter satisfies."""

    name: str

    async def call(self, request: BackendRequest) -> BackendResponse:
        """Send one request and return the parsed response."""

    def build_tool_result_messages(
        self, raw_content: Any, results: Sequence[ToolResult]
    ) -> List[Message]:
        """Return the messages that hand *results* back after a response carrying *raw_content*."""

    def adapt_tool_definitions(self, definitions: Sequence[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Translate ``{name, description, input_schema}`` definitions to the native format."""


# ---------------------------------------------------------------------------
# Registry helpers
# ---------------------------------------------------------------------------
BackendFactory = Callable[[Settings], Backend]

_BACKEND_REGISTRY: Dict[str, BackendFactory] = {}


def register_backend(name: str) -> Callable[[BackendFactory], BackendFactory]:
    """Decorator to register a backend factory (usually the class itself) under *name*."""

    def wrapper(factory: BackendFactory) -> BackendFactory:
        _BACKEND_REGISTRY[name] = factory
        return factory

    return wrapper


def available_backends() -> List[str]:
    """Names of all registered backends."""
    _load_builtin_backends()
    return sorted(_BACKEND_REGISTRY)


def load_backend(name: str | None = None, config: Settings | None = None) -> Backend:
    """
    Factory that returns an instantiated backend.

    Fallback order:
    1. *name* arg
    2. ``config.BACKEND`` (env / .env option)
    """
    if config is None:
        from stanchion.config import settings  # pylint: disable=import-outside-toplevel

        config = settings

    _load_builtin_backends()
    target = (name or config.BACKEND).lower()
    factory = _BACKEND_REGISTRY.get(target)
    if factory is None:
        raise ValueError(f"Backend '{target}' is not registered.")
    return factory(config)


def _load_builtin_backends() -> None:
    # Importing the modules runs their @register_backend decorators
    # pylint: disable=import-outside-toplevel,unused-import
    import stanchion.backends.anthropic_api  # noqa: F401
    import stanchion.backends.mock  # noqa: F401
    import stanchion.backends.openai_api  # noqa: F401
