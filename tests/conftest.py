"""Shared fakes for the test-suite."""

import asyncio
from typing import (
    Any,
    Dict,
    List,
    Sequence,
    Tuple,
)

import pytest

from stanchion.core.schema import (
    BackendRequest,
    BackendResponse,
    Heartbeat,
    Message,
    MessageContext,
    OutgoingMessage,
    StopReason,
    ToolCall,
    ToolResult,
)


class RecordingDiagnostics:
    """Diagnostics sink that keeps every event for assertions."""

    def __init__(self) -> None:
        self.events: List[Tuple[int, str, str, Dict[str, Any]]] = []

    def emit(self, level: int, subsystem: str, event: str, **fields: Any) -> None:
        self.events.append((level, subsystem, event, fields))

    def named(self, event: str) -> List[Dict[str, Any]]:
        """Payloads of all events called *event*."""
        return [fields for _, _, name, fields in self.events if name == event]


class FakeClock:
    """Manually advanced millisecond clock."""

    def __init__(self, start: float = 1_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


class StatusError(Exception):
    """Backend-style error carrying an HTTP status."""

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status


class ScriptedInvoker:
    """Invoker returning (or raising) scripted outcomes in order; repeats the last one."""

    def __init__(self, *outcomes: BackendResponse | Exception):
        self.outcomes = list(outcomes)
        self.calls: List[BackendRequest] = []

    async def __call__(self, request: BackendRequest) -> BackendResponse:
        self.calls.append(request)
        index = min(len(self.calls), len(self.outcomes)) - 1
        outcome = self.outcomes[index]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class ScriptedBackend:
    """Resilient-backend stand-in for the orchestrator and turn handler."""

    name = "scripted"

    def __init__(self, *outcomes: BackendResponse | Exception):
        self.invoker = ScriptedInvoker(*outcomes)
        self.tool_result_batches: List[List[ToolResult]] = []

    @property
    def requests(self) -> List[BackendRequest]:
        return self.invoker.calls

    async def invoke(self, request: BackendRequest) -> BackendResponse:
        return await self.invoker(request)

    def build_tool_result_messages(
        self, raw_content: Any, results: Sequence[ToolResult]
    ) -> List[Message]:
        self.tool_result_batches.append(list(results))
        return [
            Message(role="assistant", content=raw_content or []),
            Message(
                role="user",
                content=[
                    {"type": "tool_result", "tool_use_id": r.id, "content": r.result}
                    for r in results
                ],
            ),
        ]

    def adapt_tool_definitions(self, definitions: Sequence[Dict[str, Any]]) -> List[Dict[str, Any]]:
        return [dict(d) for d in definitions]


class FakeToolRegistry:
    """Tool registry whose tools are async callables keyed by name."""

    def __init__(self, **tools: Any):
        self.tools = tools
        self.calls: List[Tuple[str, Dict[str, Any], MessageContext | None]] = []

    async def execute(
        self, name: str, args: Dict[str, Any] | None, context: MessageContext | None
    ) -> Any:
        self.calls.append((name, dict(args or {}), context))
        if name not in self.tools:
            raise KeyError(f"Unknown tool: {name}")
        return await self.tools[name](**(args or {}))

    def definitions(self) -> List[Dict[str, Any]]:
        return [{"name": n, "description": "", "input_schema": {}} for n in self.tools]


class RecordingOutput:
    """Output boundary that records replies and heartbeats."""

    def __init__(self) -> None:
        self.sent: List[OutgoingMessage] = []
        self.heartbeats: List[Heartbeat] = []

    async def send(self, message: OutgoingMessage) -> None:
        self.sent.append(message)

    async def heartbeat(self, beat: Heartbeat) -> None:
        self.heartbeats.append(beat)


def tool_response(*calls: Tuple[str, str, Dict[str, Any]], text: str = "") -> BackendResponse:
    """Build a response requesting ``(id, name, input)`` tool calls."""
    tool_calls = [ToolCall(id=i, name=n, input=inp) for i, n, inp in calls]
    return BackendResponse(
        text=text,
        tool_calls=tool_calls,
        stop_reason=StopReason.TOOL_USE,
        raw_content=[{"type": "tool_use", "id": i, "name": n} for i, n, _ in calls],
    )


def text_response(text: str) -> BackendResponse:
    return BackendResponse(text=text, stop_reason=StopReason.END_TURN)


async def no_sleep(_seconds: float) -> None:
    await asyncio.sleep(0)


@pytest.fixture
def diagnostics() -> RecordingDiagnostics:
    return RecordingDiagnostics()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
