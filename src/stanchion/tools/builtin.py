"""Built-in tools shipped with every runtime."""

from datetime import (
    datetime,
    timezone,
)
from typing import Callable

import httpx

from stanchion.core.schema import CircuitStatus
from stanchion.tools import ToolRegistry

MAX_FETCH_CHARS = 4000


def echo_tool(text: str) -> str:
    """Echo the input text back to the caller."""
    return text


def current_time_tool() -> str:
    """Return the current UTC time in ISO-8601 format."""
    return datetime.now(timezone.utc).isoformat()


async def fetch_url_tool(url: str, max_chars: int = MAX_FETCH_CHARS) -> str:
    """Fetch a web page over HTTP(S) and return the start of its body."""
    if not url.startswith(("http://", "https://")):
        raise ValueError(f"Only http(s) URLs are supported, got: {url}")
    async with httpx.AsyncClient(timeout=15.0, follow_redirects=True) as client:
        resp = await client.get(url)
        resp.raise_for_status()
    body = resp.text
    if len(body) > max_chars:
        body = body[:max_chars] + "\n[truncated]"
    return body


def circuit_status_tool(status_provider: Callable[[], CircuitStatus]) -> Callable[[], str]:
    """Build a tool reporting the health of the backend's circuit breaker."""

    def circuit_status() -> str:
        """Report the circuit breaker state of the language-model backend."""
        return status_provider().model_dump_json()

    return circuit_status


def register_builtin_tools(
    registry: ToolRegistry, status_provider: Callable[[], CircuitStatus] | None = None
) -> ToolRegistry:
    """Add the built-in tools to *registry* and return it."""
    registry.add("echo", echo_tool)
    registry.add("current_time", current_time_tool)
    registry.add("fetch_url", fetch_url_tool)
    if status_provider is not None:
        registry.add("circuit_status", circuit_status_tool(status_provider))
    return registry
