"""
Basic sanity tests for the tool registry and executor.

Run with:
$ pytest -q
"""

import json

import pytest

from stanchion.agent.tool_executor import (
    execute_tool_call,
    execute_tool_calls,
)
from stanchion.core.schema import (
    CircuitState,
    CircuitStatus,
    MessageContext,
    ToolCall,
)
from stanchion.tools import (
    ToolExecutionError,
    ToolRegistry,
)
from stanchion.tools.builtin import (
    fetch_url_tool,
    register_builtin_tools,
)


@pytest.fixture
def registry() -> ToolRegistry:
    reg = ToolRegistry()

    # This is a stub tool for testing purposes.
    @reg.register("add")
    def _add(a: int, b: int = 0) -> int:
        """Return the sum of two integers (used only for tests)."""

        return a + b

    @reg.register("whoami", description="Report who is asking.")
    async def _whoami(context: MessageContext | None = None) -> str:
        return context.user_id if context else "nobody"

    return reg


@pytest.mark.asyncio
async def test_execute_tool_success(registry) -> None:
    """Registry should return the correct value when the tool is valid."""

    assert await registry.execute("add", {"a": 2, "b": 3}) == 5


@pytest.mark.asyncio
async def test_execute_tool_missing(registry) -> None:
    """Registry should raise *ToolExecutionError* for an unknown tool."""

    with pytest.raises(ToolExecutionError, match="not_a_tool"):
        await registry.execute("not_a_tool", {})


@pytest.mark.asyncio
async def test_execute_tool_bad_args(registry) -> None:
    """Registry should raise *ToolExecutionError* for wrong arguments."""

    with pytest.raises(ToolExecutionError, match="Invalid arguments"):
        await registry.execute("add", {"b": 2})  # missing 'a'


@pytest.mark.asyncio
async def test_context_is_injected(registry) -> None:
    context = MessageContext(chat_id="1", user_id="alice", channel="http")

    assert await registry.execute("whoami", {}, context) == "alice"
    assert await registry.execute("whoami") == "nobody"


def test_definitions_describe_parameters(registry) -> None:
    add, whoami = registry.definitions()

    assert add["name"] == "add"
    assert add["description"].startswith("Return the sum")
    assert add["input_schema"] == {
        "type": "object",
        "properties": {"a": {"type": "integer"}, "b": {"type": "integer"}},
        "required": ["a"],
    }
    assert whoami["description"] == "Report who is asking."
    assert whoami["input_schema"] == {"type": "object", "properties": {}}


def test_duplicate_registration_is_rejected(registry) -> None:
    with pytest.raises(ValueError, match="already registered"):
        registry.add("add", lambda: None)
    assert len(registry) == 2
    assert registry.names() == ["add", "whoami"]


@pytest.mark.asyncio
async def test_tool_call_errors_become_results(registry) -> None:
    ok = await execute_tool_call(ToolCall(id="1", name="add", input={"a": 1, "b": 1}), registry)
    missing = await execute_tool_call(ToolCall(id="2", name="nope", input={}), registry)

    assert (ok.id, ok.result, ok.is_error) == ("1", "2", False)
    assert missing.is_error is True
    assert missing.result == "Error: Tool 'nope' is not registered."


@pytest.mark.asyncio
async def test_tool_calls_keep_call_order(registry) -> None:
    calls = [
        ToolCall(id="x", name="add", input={"a": "not", "b": 1}),
        ToolCall(id="y", name="add", input={"a": 40, "b": 2}),
    ]

    results = await execute_tool_calls(calls, registry)

    assert [r.id for r in results] == ["x", "y"]
    assert results[0].is_error is True
    assert results[1].result == "42"


@pytest.mark.asyncio
async def test_builtin_tools() -> None:
    status = CircuitStatus(
        backend="mock",
        state=CircuitState.CLOSED,
        failures=0,
        last_success=None,
        last_failure=None,
        threshold=5,
        cooldown_ms=10,
    )
    reg = register_builtin_tools(ToolRegistry(), status_provider=lambda: status)

    assert reg.names() == ["echo", "current_time", "fetch_url", "circuit_status"]
    assert await reg.execute("echo", {"text": "hi"}) == "hi"
    assert "T" in await reg.execute("current_time")
    reported = json.loads(await reg.execute("circuit_status"))
    assert reported["state"] == "CLOSED"
    assert reported["backend"] == "mock"


@pytest.mark.asyncio
async def test_fetch_url_rejects_other_schemes() -> None:
    with pytest.raises(ValueError, match="http"):
        await fetch_url_tool("file:///etc/passwd")
