"""
Tool orchestration loop.

Drives the "respond -> call tools -> respond again" cycle of one turn:

    AWAITING_MODEL -> EXECUTING_TOOLS -> AWAITING_MODEL -> ... -> DONE

with a forced exit (DONE_WITH_FALLBACK) once ``max_iterations`` rounds have run and the backend is
still asking for tools.
"""

import logging
from dataclasses import dataclass
from typing import (
    Any,
    List,
    Protocol,
    Sequence,
)

from stanchion.agent.tool_executor import (
    ToolExecutor,
    execute_tool_calls,
)
from stanchion.core.schema import (
    BackendRequest,
    BackendResponse,
    CallOptions,
    Message,
    MessageContext,
    ToolResult,
)
from stanchion.diagnostics import (
    Diagnostics,
    LoggingDiagnostics,
)

FALLBACK_MESSAGE = "I'm having trouble completing this task. Let me try a different approach."
DEFAULT_MAX_ITERATIONS = 20


class ToolRoundBackend(Protocol):
    """What the loop needs from a backend: resilient calls and tool-result message building."""

    async def invoke(self, request: BackendRequest) -> BackendResponse:
        """Call the backend (through the resilience layer)."""

    def build_tool_result_messages(
        self, raw_content: Any, results: Sequence[ToolResult]
    ) -> List[Message]:
        """Build the follow-up messages carrying *results*."""


@dataclass(frozen=True)
class OrchestrationResult:
    """Final response of a turn and the number of tool rounds actually executed."""

    response: BackendResponse
    iterations: int


class ToolOrchestrator:
    """Runs tool rounds until the backend stops requesting tools or the budget runs out."""

    def __init__(
        self,
        tool_registry: ToolExecutor,
        backend: ToolRoundBackend,
        *,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
        diagnostics: Diagnostics | None = None,
    ):
        self.tool_registry = tool_registry
        self.backend = backend
        self.max_iterations = max_iterations
        self._diagnostics = diagnostics or LoggingDiagnostics()

    async def execute_loop(
        self,
        response: BackendResponse,
        messages: List[Message],
        options: CallOptions,
        context: MessageContext | None = None,
        session_id: str | None = None,
    ) -> OrchestrationResult:
        """
        Run the loop starting from *response*.

        Parameters
        ----------
        response:
            The backend response that may request tool calls.
        messages:
            Running conversation; tool-round messages are appended to it in place.
        options:
            Call options reused for every follow-up backend call.
        context:
            Ambient message context passed to every tool.
        session_id:
            Only used for diagnostics.
        """
        iterations = 0

        while response.tool_calls and iterations < self.max_iterations:
            iterations += 1
            self._diagnostics.emit(
                logging.INFO,
                "agent",
                "tool_calls",
                session_id=session_id,
                iteration=iterations,
                tools=[tc.name for tc in response.tool_calls],
            )

            results = await execute_tool_calls(response.tool_calls, self.tool_registry, context)

            messages.extend(self.backend.build_tool_result_messages(response.raw_content, results))
            request = BackendRequest(messages=tuple(messages), options=options)
            response = await self.backend.invoke(request)

        if response.tool_calls:
            pending = [tc.name for tc in response.tool_calls]
            self._diagnostics.emit(
                logging.WARNING,
                "agent",
                "max_iterations_exceeded",
                session_id=session_id,
                iterations=iterations,
                pending_tools=pending,
            )
            response = response.model_copy(update={"text": FALLBACK_MESSAGE})

        return OrchestrationResult(response=response, iterations=iterations)
