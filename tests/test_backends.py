"""Tests for backend adapters and the backend registry."""

import pytest

from stanchion.backends import (
    Backend,
    BackendError,
    available_backends,
    load_backend,
)
from stanchion.backends.anthropic_api import (
    AnthropicBackend,
    parse_message,
)
from stanchion.backends.mock import MockBackend
from stanchion.backends.openai_api import (
    OpenAIBackend,
    parse_choice,
)
from stanchion.config import Settings
from stanchion.core.schema import (
    BackendRequest,
    BackendResponse,
    CallOptions,
    Message,
    StopReason,
    ToolResult,
)


def request(*messages: Message, **options) -> BackendRequest:
    return BackendRequest(messages=messages, options=CallOptions(**options))


@pytest.mark.parametrize(
    "native, expected",
    [
        ("tool_use", StopReason.TOOL_USE),
        ("tool_calls", StopReason.TOOL_USE),
        ("end_turn", StopReason.END_TURN),
        ("stop", StopReason.END_TURN),
        ("length", StopReason.MAX_TOKENS),
        ("content_filter", StopReason.OTHER),
        (None, StopReason.OTHER),
    ],
)
def test_stop_reason_parse(native, expected) -> None:
    assert StopReason.parse(native) is expected


def test_registry_lists_builtin_backends() -> None:
    assert {"anthropic", "openai", "mock"} <= set(available_backends())


def test_load_backend_by_name_and_config() -> None:
    assert isinstance(load_backend("mock", Settings()), MockBackend)
    assert isinstance(load_backend(config=Settings(BACKEND="MOCK")), MockBackend)
    assert isinstance(load_backend("mock", Settings()), Backend)


def test_load_backend_unknown_name() -> None:
    with pytest.raises(ValueError, match="not registered"):
        load_backend("nonexistent", Settings())


def test_real_backends_require_api_keys() -> None:
    config = Settings(ANTHROPIC_API_KEY=None, OPENAI_API_KEY=None)

    with pytest.raises(ValueError, match="ANTHROPIC_API_KEY"):
        AnthropicBackend(config)
    with pytest.raises(ValueError, match="OPENAI_API_KEY"):
        OpenAIBackend(config)


# ---------------------------------------------------------------------------
# Mock backend
# ---------------------------------------------------------------------------
@pytest.mark.asyncio
async def test_mock_echoes_plain_text() -> None:
    backend = MockBackend()
    response = await backend.call(request(Message(role="user", content="hello")))

    assert response.text == 'You said: "hello"'
    assert response.tool_calls is None
    assert backend.last_request.messages[-1].content == "hello"


@pytest.mark.asyncio
async def test_mock_requests_fetch_tool_then_summarises() -> None:
    backend = MockBackend()
    first = await backend.call(request(Message(role="user", content="fetch https://example.com")))

    (call,) = first.tool_calls
    assert call.name == "fetch_url"
    assert call.input == {"url": "https://example.com"}
    assert first.stop_reason is StopReason.TOOL_USE

    followup = backend.build_tool_result_messages(
        first.raw_content, [ToolResult(id=call.id, result="<html>hi</html>")]
    )
    second = await backend.call(request(Message(role="user", content="fetch"), *followup))

    assert second.text == "Here's what I found: <html>hi</html>"


@pytest.mark.asyncio
async def test_mock_queued_outcomes_come_first() -> None:
    backend = MockBackend()
    backend.queue(BackendResponse(text="canned"), BackendError("overloaded", status=503))

    assert (await backend.call(request(Message(role="user", content="x")))).text == "canned"
    with pytest.raises(BackendError) as excinfo:
        await backend.call(request(Message(role="user", content="x")))
    assert excinfo.value.status == 503
    assert (await backend.call(request(Message(role="user", content="x")))).text.startswith(
        "You said"
    )
    assert len(backend.requests) == 3


# ---------------------------------------------------------------------------
# Anthropic
# ---------------------------------------------------------------------------
def test_anthropic_parse_message() -> None:
    blocks = [
        {"type": "text", "text": "Let me check."},
        {"type": "tool_use", "id": "toolu_1", "name": "search", "input": {"q": "x"}},
        {"type": "text", "text": "One moment."},
    ]

    response = parse_message(blocks, "tool_use")

    assert response.text == "Let me check.\nOne moment."
    assert [(c.id, c.name, c.input) for c in response.tool_calls] == [
        ("toolu_1", "search", {"q": "x"})
    ]
    assert response.stop_reason is StopReason.TOOL_USE
    assert response.raw_content == blocks


def test_anthropic_parse_message_without_tools() -> None:
    response = parse_message([{"type": "text", "text": "hi"}], "end_turn")

    assert response.tool_calls is None
    assert response.stop_reason is StopReason.END_TURN


class _FakeMessages:
    def __init__(self, outcome):
        self.outcome = outcome
        self.params = None

    async def create(self, **params):
        self.params = params
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return self.outcome


class _FakeAnthropicClient:
    def __init__(self, outcome):
        self.messages = _FakeMessages(outcome)


class _FakeAnthropicResponse:
    content = [{"type": "text", "text": "hello"}]
    stop_reason = "end_turn"
    usage = None


@pytest.mark.asyncio
async def test_anthropic_call_sends_system_and_tools() -> None:
    client = _FakeAnthropicClient(_FakeAnthropicResponse())
    backend = AnthropicBackend(Settings(ANTHROPIC_MODEL="sonnet"), client=client)
    tools = backend.adapt_tool_definitions(
        [{"name": "echo", "description": "Echo", "input_schema": {"type": "object"}}]
    )

    response = await backend.call(
        request(Message(role="user", content="hi"), system="be brief", tools=tools)
    )

    assert response.text == "hello"
    params = client.messages.params
    assert params["model"] == "claude-sonnet-4-5"
    assert params["system"] == "be brief"
    assert params["tools"][0]["name"] == "echo"
    assert params["messages"] == [{"role": "user", "content": "hi"}]
    assert "temperature" not in params


@pytest.mark.asyncio
async def test_anthropic_errors_carry_status() -> None:
    class Overloaded(Exception):
        status_code = 529

    backend = AnthropicBackend(Settings(), client=_FakeAnthropicClient(Overloaded("busy")))

    with pytest.raises(BackendError) as excinfo:
        await backend.call(request(Message(role="user", content="hi")))
    assert excinfo.value.status == 529


def test_anthropic_tool_result_messages() -> None:
    backend = AnthropicBackend(Settings(), client=object())
    raw = [{"type": "tool_use", "id": "t1", "name": "echo", "input": {}}]

    assistant, user = backend.build_tool_result_messages(
        raw, [ToolResult(id="t1", result="Error: nope", is_error=True)]
    )

    assert assistant.role == "assistant"
    assert assistant.content == raw
    assert user.role == "user"
    assert user.content == [
        {"type": "tool_result", "tool_use_id": "t1", "content": "Error: nope", "is_error": True}
    ]


# ---------------------------------------------------------------------------
# OpenAI
# ---------------------------------------------------------------------------
def test_openai_parse_choice_with_tool_calls() -> None:
    message = {
        "role": "assistant",
        "content": None,
        "tool_calls": [
            {
                "id": "call_1",
                "type": "function",
                "function": {"name": "search", "arguments": '{"q": "x"}'},
            },
            {
                "id": "call_2",
                "type": "function",
                "function": {"name": "echo", "arguments": "not json"},
            },
        ],
    }

    response = parse_choice(message, "tool_calls")

    assert response.text == ""
    assert [c.input for c in response.tool_calls] == [{"q": "x"}, {"raw": "not json"}]
    assert response.stop_reason is StopReason.TOOL_USE
    assert response.raw_content["tool_calls"] == message["tool_calls"]


def test_openai_tool_result_messages_and_definitions() -> None:
    backend = OpenAIBackend(Settings(), client=object())
    raw = {"role": "assistant", "content": None, "tool_calls": [{"id": "call_1"}]}

    assistant, tool = backend.build_tool_result_messages(
        raw, [ToolResult(id="call_1", result="42")]
    )

    assert assistant.extra == {"tool_calls": [{"id": "call_1"}]}
    assert tool.role == "tool"
    assert tool.content == "42"
    assert tool.extra == {"tool_call_id": "call_1"}

    (adapted,) = backend.adapt_tool_definitions(
        [{"name": "echo", "description": "Echo", "input_schema": {"type": "object"}}]
    )
    assert adapted == {
        "type": "function",
        "function": {"name": "echo", "description": "Echo", "parameters": {"type": "object"}},
    }
