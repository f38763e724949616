"""OpenAI chat-completions backend."""

import json
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


def _to_native(message: Message) -> Dict[str, Any]:
    native: Dict[str, Any] = {"role": message.role, "content": message.content}
    native.update(message.extra)
    return native


def _parse_arguments(raw: str | None) -> Dict[str, Any]:
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("OpenAI returned non-JSON tool arguments: %s", raw)
        return {"raw": raw}
    return parsed if isinstance(parsed, dict) else {"value": parsed}


def parse_choice(message: Dict[str, Any], finish_reason: str | None) -> BackendResponse:
    """Turn an OpenAI assistant message (as a dict) into a :class:`BackendResponse`."""
    tool_calls = [
        ToolCall(
            id=call["id"],
            name=call["function"]["name"],
            input=_parse_arguments(call["function"].get("arguments")),
        )
        for call in message.get("tool_calls") or []
    ]
    raw = {"role": "assistant", "content": message.get("content")}
    if message.get("tool_calls"):
        raw["tool_calls"] = message["tool_calls"]
    return BackendResponse(
        text=message.get("content") or "",
        tool_calls=tool_calls or None,
        stop_reason=StopReason.parse(finish_reason),
        raw_content=raw,
    )


@register_backend("openai")
class OpenAIBackend:
    """Backend calling OpenAI's chat completions API with function tools."""

    name = "openai"

    def __init__(self, config: Settings, client: Any = None):
        if client is None:
            if not config.OPENAI_API_KEY:
                raise ValueError("OPENAI_API_KEY is required for the openai backend")
            import openai  # pylint: disable=import-outside-toplevel

            client = openai.AsyncOpenAI(api_key=config.OPENAI_API_KEY)
        self._client = client
        self.model = config.OPENAI_MODEL
        logger.info("OpenAI backend initialized (model=%s)", self.model)

    async def call(self, request: BackendRequest) -> BackendResponse:
        messages: List[Dict[str, Any]] = []
        if request.options.system:
            messages.append({"role": "system", "content": request.options.system})
        messages.extend(_to_native(m) for m in request.messages)

        params: Dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "max_tokens": request.options.max_tokens,
        }
        if request.options.temperature is not None:
            params["temperature"] = request.options.temperature
        if request.options.tools:
            params["tools"] = list(request.options.tools)

        try:
            completion = await self._client.chat.completions.create(**params)
        except Exception as exc:  # noqa: BLE001
            status = getattr(exc, "status_code", None)
            logger.error("OpenAI request failed (status=%s): %s", status, exc)
            raise BackendError(f"OpenAI API error: {exc}", status=status) from exc

        choice = completion.choices[0]
        response = parse_choice(choice.message.model_dump(exclude_none=True), choice.finish_reason)
        if completion.usage is not None:
            response.usage = {
                "input_tokens": completion.usage.prompt_tokens,
                "output_tokens": completion.usage.completion_tokens,
            }
        return response

    def build_tool_result_messages(
        self, raw_content: Any, results: Sequence[ToolResult]
    ) -> List[Message]:
        raw = dict(raw_content or {"role": "assistant", "content": None})
        assistant = Message(
            role="assistant",
            content=raw.get("content"),
            extra={"tool_calls": raw["tool_calls"]} if raw.get("tool_calls") else {},
        )
        return [assistant] + [
            Message(role="tool", content=r.result, extra={"tool_call_id": r.id}) for r in results
        ]

    def adapt_tool_definitions(self, definitions: Sequence[Dict[str, Any]]) -> List[Dict[str, Any]]:
        return [
            {
                "type": "function",
                "function": {
                    "name": d["name"],
                    "description": d.get("description", ""),
                    "parameters": d.get("input_schema", {"type": "object", "properties": {}}),
                },
            }
            for d in definitions
        ]
