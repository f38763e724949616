"""
Schema definitions for backend <-> orchestrator <-> tool messages.

These data models serve as the contract between the backend adapters, the resilience layer, the
tool orchestration loop and the output channels.  We keep them separate from runtime logic so they
can be imported anywhere without side-effects.
"""

from enum import Enum
from typing import (
    Any,
    Dict,
    List,
    Optional,
    Tuple,
)

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
)


class StopReason(str, Enum):
    """Why the backend stopped generating."""

    END_TURN = "end_turn"
    TOOL_USE = "tool_use"
    MAX_TOKENS = "max_tokens"
    OTHER = "other"

    @classmethod
    def parse(cls, value: str | None) -> "StopReason":
        """Map a backend-native stop reason onto the enum (unknown values become OTHER)."""
        if value in {"tool_use", "tool_calls", "function_call"}:
            return cls.TOOL_USE
        if value in {"end_turn", "stop", "stop_sequence"}:
            return cls.END_TURN
        if value in {"max_tokens", "length"}:
            return cls.MAX_TOKENS
        return cls.OTHER


class Message(BaseModel):
    """One conversation message: a role tag plus plain text or a structured block list."""

    model_config = ConfigDict(frozen=True)

    role: str = Field(..., description="user, assistant, tool or a backend-specific role")
    content: str | List[Dict[str, Any]] | None = None
    extra: Dict[str, Any] = Field(
        default_factory=dict, description="Backend-native fields (e.g. tool_call_id)"
    )


class CallOptions(BaseModel):
    """Per-call options handed to the backend adapter."""

    model_config = ConfigDict(frozen=True)

    system: str | None = None
    tools: List[Dict[str, Any]] = Field(default_factory=list)
    temperature: float | None = None
    max_tokens: int = 4096


class BackendRequest(BaseModel):
    """The full input for one backend round.  Immutable once built."""

    model_config = ConfigDict(frozen=True)

    messages: Tuple[Message, ...]
    options: CallOptions = Field(default_factory=CallOptions)


class ToolCall(BaseModel):
    """A call that the backend wants the agent to execute."""

    id: str = Field(..., description="Backend-assigned correlation token")
    name: str = Field(..., description="Registered tool name")
    input: Dict[str, Any] = Field(default_factory=dict, description="Arguments for the tool")


class ToolResult(BaseModel):
    """The outcome of one ToolCall, correlated by id."""

    id: str
    result: str
    is_error: bool = False


class BackendResponse(BaseModel):
    """Result of one backend call."""

    text: str = ""
    tool_calls: Optional[List[ToolCall]] = None
    stop_reason: StopReason = StopReason.END_TURN
    raw_content: Any = Field(
        default=None, description="Opaque backend-native payload, only read by its adapter"
    )
    usage: Dict[str, Any] = Field(default_factory=dict)


class MessageContext(BaseModel):
    """Ambient context of the message a turn is serving; handed to every tool."""

    chat_id: str
    user_id: str | None = None
    channel: str = "http"


class IncomingMessage(BaseModel):
    """A user message arriving from a channel."""

    chat_id: str
    text: str
    user_id: str | None = None
    channel: str = "http"

    @property
    def session_id(self) -> str:
        """Sessions are keyed per channel and chat."""
        return f"{self.channel}-{self.chat_id}"

    def context(self) -> MessageContext:
        """Return the tool-facing context for this message."""
        return MessageContext(chat_id=self.chat_id, user_id=self.user_id, channel=self.channel)


class OutgoingMessage(BaseModel):
    """A reply (or user-visible error) routed back to a channel."""

    chat_id: str
    text: str
    channel: str = "http"
    is_error: bool = False
    metadata: Dict[str, Any] = Field(default_factory=dict)


class Heartbeat(BaseModel):
    """Periodic "still working" signal."""

    chat_id: str
    channel: str = "http"


class CircuitState(str, Enum):
    """States of a circuit breaker."""

    CLOSED = "CLOSED"
    OPEN = "OPEN"
    HALF_OPEN = "HALF_OPEN"


class CircuitStatus(BaseModel):
    """Read-only snapshot of a circuit breaker (timestamps in epoch milliseconds)."""

    model_config = ConfigDict(frozen=True)

    backend: str
    state: CircuitState
    failures: int
    last_success: float | None
    last_failure: float | None
    threshold: int
    cooldown_ms: float
