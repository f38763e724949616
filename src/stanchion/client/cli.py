"""CLI client for the Stanchion API."""

from __future__ import annotations

import logging
import time
import uuid
from typing import (
    Any,
    Dict,
    Tuple,
    cast,
)

import httpx

from stanchion.common import (
    AnsiColors,
    colored_print,
)
from stanchion.config import settings

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# CLI Client
# ---------------------------------------------------------------------------
def get_user_message() -> Tuple[str, bool]:
    """
    Get a message from the user via standard input.

    Returns:
        Tuple of (user_input, success_flag)
        The success_flag is False if input couldn't be read (e.g., Ctrl+C)
    """
    try:
        user_input = input().strip()
        return user_input, True
    except (EOFError, KeyboardInterrupt):
        return "", False


def call_api(
    endpoint: str,
    data: Dict[str, Any],
    max_retries: int = 5,
    client: httpx.Client | None = None,
) -> Dict[str, Any]:
    """Make a POST request to the API and return the response, retrying while it starts up."""
    api_url = f"http://localhost:{settings.API_PORT}{endpoint}"
    http = client or httpx.Client(timeout=settings.REPLY_TIMEOUT_S + 5)

    try:
        for attempt in range(max_retries):
            try:
                response = http.post(api_url, json=data)
                response.raise_for_status()
                return cast(Dict[str, Any], response.json())
            except httpx.ConnectError as e:
                if attempt == max_retries - 1:
                    return {"reply": f"Failed to connect to API: {e}", "is_error": True}
                retry_delay = 0.5 * (2**attempt)  # exponential backoff: 0.5s, 1s, 2s, 4s...
                logger.info(
                    "API not ready yet, retrying in %.1f seconds (attempt %d/%d)...",
                    retry_delay,
                    attempt + 1,
                    max_retries,
                )
                time.sleep(retry_delay)
            except httpx.HTTPStatusError as e:
                logger.error("API request error: %s", e)
                try:
                    detail = e.response.json().get("detail", str(e))
                except ValueError:
                    detail = str(e)
                return {"reply": f"API error: {detail}", "is_error": True}
            except httpx.HTTPError as e:
                logger.error("API request error: %s", e)
                return {"reply": f"Error connecting to API: {e}", "is_error": True}
    finally:
        if client is None:
            http.close()

    return {"reply": f"Failed to connect to API after {max_retries} attempts", "is_error": True}


def run_cli() -> None:
    """Run the CLI client that communicates with the API."""
    session_id = f"cli-{uuid.uuid4().hex[:8]}"

    colored_print("\nStanchion shell - type 'exit' or 'quit' (or Ctrl+C) to exit", AnsiColors.GREEN)
    while True:
        colored_print("\nYou: ", AnsiColors.BLUE, end="")
        user_msg, ok = get_user_message()
        if not ok:
            break  # Exit if user input couldn't be retrieved (e.g., Ctrl+C)
        if user_msg.lower() in {"exit", "quit"}:
            break
        if not user_msg:
            continue

        response = call_api("/agent", {"message": user_msg, "session_id": session_id})

        if response.get("tool_iterations"):
            colored_print(f"[{response['tool_iterations']} tool round(s)]", AnsiColors.GREEN)
        color = AnsiColors.RED if response.get("is_error") else AnsiColors.YELLOW
        colored_print(response.get("reply", "No response from API"), color)


if __name__ == "__main__":
    run_cli()
