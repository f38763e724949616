"""
Core API backend for Stanchion.

It exposes the following endpoints:
- **GET /health**  - liveness probe including the backend circuit breaker state.
- **GET /sessions** - list stored session ids.
- **POST /agent**   - run one turn: {"message": "...", "session_id": "..."}
"""

import asyncio
import logging
import uuid
from typing import (
    List,
    Set,
)

from fastapi import (
    FastAPI,
    HTTPException,
    Request,
)
from fastapi.middleware.cors import CORSMiddleware

from stanchion.api.models import (
    HealthResponse,
    MessageRequest,
    MessageResponse,
)
from stanchion.common import (
    AnsiColors,
    colored_print,
)
from stanchion.config import (
    Settings,
    settings,
)
from stanchion.core.schema import (
    CircuitState,
    Heartbeat,
    IncomingMessage,
    OutgoingMessage,
)
from stanchion.runtime import (
    Runtime,
    build_runtime,
)

logger = logging.getLogger(__name__)

CHANNEL = "http"


class HttpOutput:
    """
    Output boundary for the HTTP channel.

    Each ``POST /agent`` answers with the reply returned by its own turn, so nothing is routed
    here; the boundary only logs delivery and heartbeats.
    """

    async def send(self, message: OutgoingMessage) -> None:
        logger.debug("Reply ready for chat %s (is_error=%s)", message.chat_id, message.is_error)

    async def heartbeat(self, beat: Heartbeat) -> None:
        logger.debug("Still working on chat %s", beat.chat_id)


def create_app(runtime: Runtime) -> FastAPI:
    """Build the FastAPI application around *runtime*."""
    app = FastAPI(title="Stanchion API", version="0.1.0", description="Resilient agent runtime")

    # Allow browser clients from the configured origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=runtime.config.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    output = HttpOutput()
    agent = runtime.agent_loop(output)
    tasks: Set[asyncio.Task] = set()

    app.state.runtime = runtime
    app.state.output = output

    # -----------------------------------------------------------------------
    # Routes
    # -----------------------------------------------------------------------
    @app.get("/health", response_model=HealthResponse, summary="Health check")
    async def health() -> HealthResponse:
        """Return liveness plus the backend circuit status."""
        status = runtime.backend.status()
        overall = "ok" if status.state is CircuitState.CLOSED else "degraded"
        return HealthResponse(status=overall, backend=status)

    @app.get("/sessions", response_model=List[str], summary="List stored sessions")
    async def list_sessions() -> List[str]:
        """List all stored session ids."""
        return await asyncio.to_thread(runtime.session_store.list_sessions)

    @app.post("/agent", response_model=MessageResponse, summary="Process a message")
    async def agent_endpoint(req: MessageRequest, request: Request) -> MessageResponse:
        """Run one agent turn and return its reply."""
        chat_id = req.session_id or str(uuid.uuid4())
        message = IncomingMessage(
            chat_id=chat_id, text=req.message, user_id=req.user_id, channel=CHANNEL
        )
        logger.debug("POST /agent from %s (chat=%s)", request.client, chat_id)

        task = asyncio.create_task(agent.handle_message(message))
        tasks.add(task)
        task.add_done_callback(tasks.discard)

        try:
            reply: OutgoingMessage = await asyncio.wait_for(
                asyncio.shield(task), timeout=runtime.config.REPLY_TIMEOUT_S
            )
        except asyncio.TimeoutError as exc:
            logger.warning(
                "Turn for chat %s timed out after %.0fs", chat_id, runtime.config.REPLY_TIMEOUT_S
            )
            raise HTTPException(status_code=504, detail="Agent did not reply in time") from exc

        return MessageResponse(
            reply=reply.text,
            session_id=chat_id,
            is_error=reply.is_error,
            tool_iterations=reply.metadata.get("tool_iterations", 0),
        )

    @app.get("/", summary="API root")
    async def root() -> dict[str, str]:
        """Return a simple welcome message."""
        return {"message": "Welcome to the Stanchion API! Use /docs for API documentation."}

    return app


def create_default_app(config: Settings | None = None) -> FastAPI:
    """Build the runtime from settings and wrap it in an app (uvicorn factory)."""
    return create_app(build_runtime(config or settings))


# ---------------------------------------------------------------------------
# Public helper to launch the API (imported by main.py)
# ---------------------------------------------------------------------------
def run_api(
    host: str = "0.0.0.0", port: int = 8000, reload: bool = False, log_level: str | None = None
) -> None:
    """Start a uvicorn server hosting the app.

    Parameters
    ----------
    host, port:
        Bind address for the HTTP server.
    reload:
        If *True*, enable auto-reload (useful in development).
    log_level:
        Logging level to use (default from settings if not provided).
    """

    # Lazy import - keeps uvicorn an optional dependency at pkg-import time
    import uvicorn  # pylint: disable=import-outside-toplevel

    if log_level is None:  # Use the default from settings if not provided
        log_level = settings.LOG_LEVEL

    logger.info(
        "Starting Stanchion API at %s:%d (reload=%s, log_level=%s)", host, port, reload, log_level
    )
    colored_print(f"Stanchion API is running at http://localhost:{port}.", AnsiColors.GREEN)
    colored_print(f"Visit http://localhost:{port}/docs for API documentation.", AnsiColors.BLUE)
    uvicorn.run(
        "stanchion.api.app:create_default_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        log_level=log_level,
    )


# ---------------------------------------------------------------------------
# `python -m stanchion.api.app` helper
# ---------------------------------------------------------------------------
if __name__ == "__main__":
    run_api(reload=True)
