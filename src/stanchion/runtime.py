"""Wire backend, resilience layer, tools, storage and the turn handler together."""

import logging
from dataclasses import dataclass

from stanchion.agent.agent_loop import (
    AgentLoop,
    OutputBoundary,
)
from stanchion.backends import (
    Backend,
    load_backend,
)
from stanchion.config import Settings
from stanchion.diagnostics import (
    Diagnostics,
    LoggingDiagnostics,
)
from stanchion.memory.memory_store import JsonlSessionStore
from stanchion.resilience import (
    ResilientBackend,
    build_resilient_backend,
)
from stanchion.tools import ToolRegistry
from stanchion.tools.builtin import register_builtin_tools

logger = logging.getLogger(__name__)


@dataclass
class Runtime:
    """Process-lifetime collaborators shared by every turn."""

    config: Settings
    backend: ResilientBackend
    tool_registry: ToolRegistry
    session_store: JsonlSessionStore
    diagnostics: Diagnostics

    def agent_loop(self, output: OutputBoundary) -> AgentLoop:
        """Build a turn handler that delivers replies to *output*."""
        return AgentLoop(
            self.backend,
            output,
            tool_registry=self.tool_registry,
            session_store=self.session_store,
            system_prompt=self.config.SYSTEM_PROMPT,
            history_limit=self.config.SESSION_HISTORY_LIMIT,
            max_iterations=self.config.MAX_TOOL_ITERATIONS,
            heartbeat_interval_ms=self.config.HEARTBEAT_INTERVAL_MS,
            max_tokens=self.config.MAX_TOKENS,
            temperature=self.config.TEMPERATURE,
            diagnostics=self.diagnostics,
        )


def build_runtime(
    config: Settings,
    backend: Backend | None = None,
    diagnostics: Diagnostics | None = None,
) -> Runtime:
    """
    Create the runtime described by *config*.

    *backend* overrides ``config.BACKEND`` (tests pass a mock).  One circuit breaker is created
    per runtime and lives as long as the process.
    """
    diagnostics = diagnostics or LoggingDiagnostics()
    raw_backend = backend or load_backend(config=config)
    resilient = build_resilient_backend(raw_backend, config, diagnostics)

    registry = register_builtin_tools(ToolRegistry(), status_provider=resilient.status)

    store = JsonlSessionStore(config.DATA_DIR)
    store.init()

    logger.info(
        "Runtime ready (backend=%s, tools=%s, data_dir=%s)",
        raw_backend.name,
        registry.names(),
        config.DATA_DIR,
    )
    return Runtime(
        config=config,
        backend=resilient,
        tool_registry=registry,
        session_store=store,
        diagnostics=diagnostics,
    )
