"""Per-message entry point: one full turn with heartbeat and a single failure boundary."""

from __future__ import annotations

import logging
import time
from typing import (
    Any,
    Dict,
    List,
    Protocol,
    Sequence,
)

from stanchion.agent.heartbeat import (
    DEFAULT_INTERVAL_MS,
    with_heartbeat,
)
from stanchion.agent.tool_orchestrator import (
    DEFAULT_MAX_ITERATIONS,
    ToolOrchestrator,
    ToolRoundBackend,
)
from stanchion.core.schema import (
    BackendRequest,
    CallOptions,
    Heartbeat,
    IncomingMessage,
    Message,
    OutgoingMessage,
)
from stanchion.diagnostics import (
    Diagnostics,
    LoggingDiagnostics,
)
from stanchion.memory.memory_store import SessionStore
from stanchion.tools import ToolRegistry

logger = logging.getLogger(__name__)


class TurnBackend(ToolRoundBackend, Protocol):
    """Backend surface used by a turn (see :class:`stanchion.resilience.ResilientBackend`)."""

    name: str

    def adapt_tool_definitions(self, definitions: Sequence[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Translate tool definitions to the backend's native format."""


class OutputBoundary(Protocol):
    """Where replies, user-visible errors and heartbeats go."""

    async def send(self, message: OutgoingMessage) -> None:
        """Deliver a reply or an error message."""

    async def heartbeat(self, beat: Heartbeat) -> None:
        """Signal that work on *beat.chat_id* is still in progress."""


class AgentLoop:
    """
    Core message handler.

    Flow: message -> heartbeat starts -> load history -> backend call -> tool loop -> save
    session -> reply -> heartbeat stops.  Any exception along the way is caught here, logged and
    turned into an ``Error: ...`` reply on the same output boundary.
    """

    def __init__(
        self,
        backend: TurnBackend,
        output: OutputBoundary,
        *,
        tool_registry: ToolRegistry | None = None,
        session_store: SessionStore | None = None,
        system_prompt: str | None = None,
        history_limit: int = 20,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
        heartbeat_interval_ms: float = DEFAULT_INTERVAL_MS,
        max_tokens: int = 4096,
        temperature: float | None = None,
        diagnostics: Diagnostics | None = None,
    ):
        self.backend = backend
        self.output = output
        self.tool_registry = tool_registry if tool_registry is not None else ToolRegistry()
        self.session_store = session_store
        self.system_prompt = system_prompt
        self.history_limit = history_limit
        self.heartbeat_interval_ms = heartbeat_interval_ms
        self.max_tokens = max_tokens
        self.temperature = temperature
        self._diagnostics = diagnostics or LoggingDiagnostics()
        self.orchestrator = ToolOrchestrator(
            self.tool_registry,
            backend,
            max_iterations=max_iterations,
            diagnostics=self._diagnostics,
        )

    async def handle_message(self, message: IncomingMessage) -> OutgoingMessage:
        """Run one turn for *message* and return the reply that was sent."""
        session_id = message.session_id
        self._diagnostics.emit(
            logging.INFO,
            "agent",
            "message_received",
            session_id=session_id,
            user_id=message.user_id,
            length=len(message.text),
        )

        async def beat() -> None:
            await self.output.heartbeat(Heartbeat(chat_id=message.chat_id, channel=message.channel))

        try:
            return await with_heartbeat(
                beat, lambda: self._run_turn(message, session_id), self.heartbeat_interval_ms
            )
        except Exception as exc:  # noqa: BLE001
            self._diagnostics.emit(
                logging.ERROR,
                "agent",
                "message_failed",
                session_id=session_id,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            reply = OutgoingMessage(
                chat_id=message.chat_id,
                text=f"Error: {exc}",
                channel=message.channel,
                is_error=True,
            )
            try:
                await self.output.send(reply)
            except Exception:  # noqa: BLE001
                logger.exception("Could not deliver error reply for session %s", session_id)
            return reply

    def _call_options(self) -> CallOptions:
        tools: List[Dict[str, Any]] = []
        definitions = self.tool_registry.definitions()
        if definitions:
            tools = self.backend.adapt_tool_definitions(definitions)
        return CallOptions(
            system=self.system_prompt,
            tools=tools,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        )

    async def _run_turn(self, message: IncomingMessage, session_id: str) -> OutgoingMessage:
        start = time.monotonic()

        history: List[Message] = []
        if self.session_store is not None:
            history = await self.session_store.load_session(session_id, self.history_limit)

        user_message = Message(role="user", content=message.text)
        messages = [*history, user_message]
        options = self._call_options()

        request = BackendRequest(messages=tuple(messages), options=options)
        response = await self.backend.invoke(request)
        outcome = await self.orchestrator.execute_loop(
            response, messages, options, message.context(), session_id
        )
        text = outcome.response.text

        duration_ms = round((time.monotonic() - start) * 1000)
        self._diagnostics.emit(
            logging.INFO,
            "agent",
            "response_generated",
            session_id=session_id,
            duration_ms=duration_ms,
            content_length=len(text),
            tool_iterations=outcome.iterations or None,
        )

        if self.session_store is not None:
            await self.session_store.save_session(
                session_id, [user_message, Message(role="assistant", content=text)]
            )

        reply = OutgoingMessage(
            chat_id=message.chat_id,
            text=text,
            channel=message.channel,
            metadata={
                "session_id": session_id,
                "tool_iterations": outcome.iterations,
                "stop_reason": outcome.response.stop_reason.value,
                "duration_ms": duration_ms,
            },
        )
        await self.output.send(reply)
        return reply
