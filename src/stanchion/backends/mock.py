"""
Offline mock backend.

Useful for exercising the message flow without a real LLM:

* responses queued with :meth:`MockBackend.queue` are returned first, in order;
* ``fetch <url>`` in the last user message produces a ``fetch_url`` tool call;
* a tool-result message produces a short summary of the first result;
* anything else is echoed back.
"""

import itertools
import re
from collections import deque
from typing import (
    Any,
    Deque,
    Dict,
    List,
    Sequence,
)

from stanchion.backends import register_backend
from stanchion.config import Settings
from stanchion.core.schema import (
    BackendRequest,
    BackendResponse,
    Message,
    StopReason,
    ToolCall,
    ToolResult,
)

_FETCH_RE = re.compile(r"fetch\s+(https?://\S+)", re.IGNORECASE)


@register_backend("mock")
class MockBackend:
    """Scriptable backend that never leaves the process."""

    name = "mock"

    def __init__(self, config: Settings | None = None):
        self.config = config
        self._queued: Deque[BackendResponse | Exception] = deque()
        self._ids = itertools.count(1)
        self.requests: List[BackendRequest] = []

    def queue(self, *responses: BackendResponse | Exception) -> None:
        """Queue canned responses (or exceptions to raise) for the next calls."""
        self._queued.extend(responses)

    @property
    def last_request(self) -> BackendRequest | None:
        """The most recent request, for inspecting what context was sent."""
        return self.requests[-1] if self.requests else None

    async def call(self, request: BackendRequest) -> BackendResponse:
        self.requests.append(request)

        if self._queued:
            item = self._queued.popleft()
            if isinstance(item, Exception):
                raise item
            return item

        last = request.messages[-1] if request.messages else None
        if last is not None and isinstance(last.content, list):
            results = [b for b in last.content if b.get("type") == "tool_result"]
            if results:
                summary = str(results[0].get("content", ""))[:200] or "done"
                return BackendResponse(text=f"Here's what I found: {summary}")

        user_text = last.content if last is not None and isinstance(last.content, str) else ""
        match = _FETCH_RE.search(user_text)
        if match:
            url = match.group(1)
            call = ToolCall(id=f"mock_tool_{next(self._ids)}", name="fetch_url", input={"url": url})
            return BackendResponse(
                text=f"I'll fetch {url} for you.",
                tool_calls=[call],
                stop_reason=StopReason.TOOL_USE,
                raw_content=[
                    {"type": "text", "text": f"I'll fetch {url} for you."},
                    {"type": "tool_use", "id": call.id, "name": call.name, "input": call.input},
                ],
            )

        return BackendResponse(text=f'You said: "{user_text}"', usage={"mock": True})

    def build_tool_result_messages(
        self, raw_content: Any, results: Sequence[ToolResult]
    ) -> List[Message]:
        return [
            Message(role="assistant", content=list(raw_content or [])),
            Message(
                role="user",
                content=[
                    {
                        "type": "tool_result",
                        "tool_use_id": r.id,
                        "content": r.result,
                        "is_error": r.is_error,
                    }
                    for r in results
                ],
            ),
        ]

    def adapt_tool_definitions(self, definitions: Sequence[Dict[str, Any]]) -> List[Dict[str, Any]]:
        return [dict(d) for d in definitions]
