"""Persist session history as one JSON-lines file per session."""

import asyncio
import json
import logging
import re
import time
from pathlib import Path
from typing import (
    Any,
    Dict,
    List,
    Protocol,
    Sequence,
)

from stanchion.core.schema import Message

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_.-]")


class SessionStore(Protocol):
    """Storage collaborator used by the turn handler."""

    async def load_session(self, session_id: str, limit: int) -> List[Message]:
        """Return the last *limit* messages of *session_id* (oldest first)."""

    async def save_session(self, session_id: str, messages: Sequence[Message]) -> None:
        """Append *messages* to *session_id*."""


class JsonlSessionStore:
    """
    Flat-file session history.

    Each session lives in ``<data_dir>/sessions/<session_id>.jsonl``; every line is
    ``{"role": ..., "content": ..., "timestamp": <epoch ms>}``.  File I/O runs in a worker thread.
    """

    def __init__(self, data_dir: str | Path):
        self._dir = Path(data_dir) / "sessions"

    def init(self) -> None:
        """Ensure the sessions directory exists.  Called at application startup."""
        self._dir.mkdir(parents=True, exist_ok=True)

    def _path(self, session_id: str) -> Path:
        return self._dir / f"{_UNSAFE_CHARS.sub('_', session_id)}.jsonl"

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #
    async def load_session(self, session_id: str, limit: int = 20) -> List[Message]:
        return await asyncio.to_thread(self._load, session_id, limit)

    async def save_session(self, session_id: str, messages: Sequence[Message]) -> None:
        await asyncio.to_thread(self._append, session_id, list(messages))

    def list_sessions(self) -> List[str]:
        """Return the ids (file stems) of all stored sessions."""
        if not self._dir.is_dir():
            return []
        return sorted(p.stem for p in self._dir.glob("*.jsonl"))

    # ------------------------------------------------------------------ #
    # Blocking helpers
    # ------------------------------------------------------------------ #
    def _load(self, session_id: str, limit: int) -> List[Message]:
        path = self._path(session_id)
        if not path.exists() or limit <= 0:
            return []
        entries: List[Dict[str, Any]] = []
        with path.open("r", encoding="utf-8") as f:
            for line_no, line in enumerate(f, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    entries.append(json.loads(line))
                except json.JSONDecodeError:
                    logger.warning("Skipping corrupt line %d in %s", line_no, path)
        return [Message(role=e["role"], content=e.get("content")) for e in entries[-limit:]]

    def _append(self, session_id: str, messages: List[Message]) -> None:
        self.init()
        now = int(time.time() * 1000)
        with self._path(session_id).open("a", encoding="utf-8") as f:
            for offset, msg in enumerate(messages):
                record = {"role": msg.role, "content": msg.content, "timestamp": now + offset}
                f.write(json.dumps(record) + "\n")
