"""Dispatches one round of tool calls concurrently and turns failures into error results."""

import asyncio
import logging
from typing import (
    Any,
    Dict,
    List,
    Protocol,
    Sequence,
)

from stanchion.core.schema import (
    MessageContext,
    ToolCall,
    ToolResult,
)

logger = logging.getLogger(__name__)


class ToolExecutor(Protocol):
    """Anything that can run a named tool (normally :class:`stanchion.tools.ToolRegistry`)."""

    async def execute(
        self, name: str, args: Dict[str, Any] | None, context: MessageContext | None
    ) -> Any:
        """Run *name* with *args*; raise to signal failure."""


async def execute_tool_call(
    call: ToolCall, registry: ToolExecutor, context: MessageContext | None = None
) -> ToolResult:
    """
    Run a single tool call in isolation.

    Any exception raised by the tool becomes an ``is_error`` result carrying ``Error: <message>``;
    it never escapes to sibling calls or to the orchestration loop.
    """
    try:
        result = await registry.execute(call.name, call.input, context)
    except Exception as exc:  # noqa: BLE001
        logger.warning("Tool '%s' (id=%s) failed: %s", call.name, call.id, exc)
        return ToolResult(id=call.id, result=f"Error: {exc}", is_error=True)
    logger.debug("Tool '%s' (id=%s) returned %d chars", call.name, call.id, len(str(result)))
    return ToolResult(id=call.id, result=str(result), is_error=False)


async def execute_tool_calls(
    calls: Sequence[ToolCall], registry: ToolExecutor, context: MessageContext | None = None
) -> List[ToolResult]:
    """
    Run all *calls* concurrently and wait for every one of them.

    Results come back in the order of *calls* (one per call id), whatever order the tools
    finish in.
    """
    results = await asyncio.gather(*(execute_tool_call(c, registry, context) for c in calls))
    return list(results)
