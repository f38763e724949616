"""Anthropic messages-API backend."""

import logging
from typing import (
    Any,
    Dict,
    List,
    Sequence,
)

from stanchion.backends import (
    BackendError,
    register_backend,
)
from stanchion.config import Settings
from stanchion.core.schema import (
    BackendRequest,
    BackendResponse,
    Message,
    StopReason,
    ToolCall,
    ToolResult,
)

logger = logging.getLogger(__name__)

# Friendly names -> API model ids
MODEL_ALIASES = {
    "opus": "claude-opus-4-1",
    "sonnet": "claude-sonnet-4-5",
    "haiku": "claude-haiku-4-5",
}


def _block_to_dict(block: Any) -> Dict[str, Any]:
    if hasattr(block, "model_dump"):
        return block.model_dump(exclude_none=True)
    return dict(block)


def parse_message(
    content: Sequence[Any], stop_reason: str | None, usage: Any = None
) -> BackendResponse:
    """Turn Anthropic content blocks into a :class:`BackendResponse`."""
    blocks = [_block_to_dict(block) for block in content]
    text = "\n".join(b["text"] for b in blocks if b.get("type") == "text")
    tool_calls = [
        ToolCall(id=b["id"], name=b["name"], input=b.get("input") or {})
        for b in blocks
        if b.get("type") == "tool_use"
    ]
    usage_data: Dict[str, Any] = {}
    if usage is not None:
        usage_data = {
            "input_tokens": getattr(usage, "input_tokens", None),
            "output_tokens": getattr(usage, "output_tokens", None),
        }
    return BackendResponse(
        text=text,
        tool_calls=tool_calls or None,
        stop_reason=StopReason.parse(stop_reason),
        raw_content=blocks,
        usage=usage_data,
    )


@register_backend("anthropic")
class AnthropicBackend:
    """Backend calling Anthropic's messages API with native tool use."""

    name = "anthropic"

    def __init__(self, config: Settings, client: Any = None):
        if client is None:
            if not config.ANTHROPIC_API_KEY:
                raise ValueError("ANTHROPIC_API_KEY is required for the anthropic backend")
            import anthropic  # pylint: disable=import-outside-toplevel

            client = anthropic.AsyncAnthropic(api_key=config.ANTHROPIC_API_KEY)
        self._client = client
        self.model = MODEL_ALIASES.get(config.ANTHROPIC_MODEL, config.ANTHROPIC_MODEL)
        logger.info("Anthropic backend initialized (model=%s)", self.model)

    async def call(self, request: BackendRequest) -> BackendResponse:
        params: Dict[str, Any] = {
            "model": self.model,
            "max_tokens": request.options.max_tokens,
            "messages": [{"role": m.role, "content": m.content} for m in request.messages],
        }
        if request.options.system:
            params["system"] = request.options.system
        if request.options.temperature is not None:
            params["temperature"] = request.options.temperature
        if request.options.tools:
            params["tools"] = list(request.options.tools)

        try:
            response = await self._client.messages.create(**params)
        except Exception as exc:  # noqa: BLE001
            status = getattr(exc, "status_code", None)
            logger.error("Anthropic request failed (status=%s): %s", status, exc)
            raise BackendError(f"Anthropic API error: {exc}", status=status) from exc

        logger.debug("Anthropic response stop_reason=%s", response.stop_reason)
        return parse_message(response.content, response.stop_reason, response.usage)

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
        # Definitions are already in Anthropic's {name, description, input_schema} shape
        return [dict(d) for d in definitions]
