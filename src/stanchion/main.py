"""
Stanchion entry point.

Parses the command line, applies it on top of the env settings, sets up logging and launches
the REST API (``--mode api``) or the API in a background thread plus the interactive shell
(``--mode cli``).
"""

import argparse
import logging
import os
import sys
import threading
from pathlib import Path

from stanchion.api.app import run_api
from stanchion.backends import available_backends
from stanchion.config import settings

logger = logging.getLogger(__name__)

LOG_LEVELS = ["debug", "info", "warning", "error", "critical"]
SECRET_SETTINGS = {"ANTHROPIC_API_KEY", "OPENAI_API_KEY"}


def _init_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
        stream=sys.stdout,
    )
    # Keep HTTP client chatter out of the agent logs
    logging.getLogger("httpx").setLevel(logging.WARNING)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Run the Stanchion agent runtime")
    parser.add_argument("--mode", choices=["api", "cli"], type=str.lower, default="api")
    parser.add_argument(
        "--backend",
        choices=available_backends(),
        type=str.lower,
        help=f"Language-model backend (env default: {settings.BACKEND})",
    )
    parser.add_argument("--port", type=int, help=f"API port (env default: {settings.API_PORT})")
    parser.add_argument("--data-dir", help=f"Session storage (env default: {settings.DATA_DIR})")
    parser.add_argument("--log-level", choices=LOG_LEVELS, type=str.lower, default=None)
    return parser


def _writable_dir(path: Path) -> bool:
    path.mkdir(parents=True, exist_ok=True)
    return path.is_dir() and os.access(path, os.W_OK)


def main(argv: list[str] | None = None) -> None:
    """Entry point of the ``stanchion`` console script."""
    args = _build_parser().parse_args(sys.argv[1:] if argv is None else argv)

    for field, value in (
        ("BACKEND", args.backend),
        ("API_PORT", args.port),
        ("DATA_DIR", args.data_dir),
        ("LOG_LEVEL", args.log_level),
    ):
        if value is not None:
            setattr(settings, field, value)

    _init_logging(settings.LOG_LEVEL)

    if not _writable_dir(Path(settings.DATA_DIR)):
        logger.error("Data directory is not writable: %s", settings.DATA_DIR)
        sys.exit(1)

    logger.info("Starting Stanchion [%s mode, %s backend]", args.mode, settings.BACKEND)
    logger.debug("Settings: %s", settings.model_dump(exclude=SECRET_SETTINGS))

    if args.mode == "api":
        run_api(host="0.0.0.0", port=settings.API_PORT, reload=settings.DEBUG)
        return

    # The shell talks to a local API served from a daemon thread (no reload there)
    threading.Thread(
        target=run_api,
        kwargs={"host": "127.0.0.1", "port": settings.API_PORT, "log_level": "warning"},
        daemon=True,
    ).start()

    from stanchion.client.cli import run_cli  # pylint: disable=import-outside-toplevel

    run_cli()


if __name__ == "__main__":
    main()
