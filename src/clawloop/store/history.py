"""SQLite-backed persistence for Agent histories."""

from __future__ import annotations

import json
import time
from collections.abc import Sequence
from pathlib import Path
from typing import Any

import aiosqlite
import structlog
from pydantic import BaseModel

from clawloop.models.config import StoreConfig
from clawloop.models.message import ChatMessage, ToolCall
from clawloop.utils import make_id

# ── Exceptions ─────────────────────────────────────────────────────────────────


class StoreError(Exception):
    """Base class for store errors."""


class SessionNotFoundError(StoreError):
    """Raised when a session_id does not exist in the store."""

    def __init__(self, session_id: str) -> None:
        super().__init__(f"Session not found: {session_id!r}")
        self.session_id = session_id


# ── Models ─────────────────────────────────────────────────────────────────────


class SessionMetadata(BaseModel):
    """Summary row for one stored conversation. Timestamps are unix milliseconds."""

    id: str
    title: str = ""
    created_at: int
    updated_at: int
    message_count: int = 0


def _now_ms() -> int:
    return int(time.time() * 1000)


# ── HistoryStore ───────────────────────────────────────────────────────────────


class HistoryStore:
    """
    Saves and restores conversation histories in SQLite.

    The Agent never touches the store itself; callers load a history into
    ``Agent(history=...)`` and save ``agent.history`` back when they choose.

    Usage::

        async with HistoryStore(StoreConfig(db_path="~/.clawloop/sessions.db")) as store:
            meta = await store.get_or_create_latest()
            agent = Agent(provider, executor, history=await store.load_history(meta.id),
                          session_id=meta.id)
            await agent.process("hello")
            await store.save_history(meta.id, agent.history)
    """

    def __init__(self, config: StoreConfig | None = None) -> None:
        self._config = config or StoreConfig()
        self._db_path = (
            self._config.db_path
            if self._config.db_path == ":memory:"
            else str(Path(self._config.db_path).expanduser())
        )
        self._conn: aiosqlite.Connection | None = None
        self._logger = structlog.get_logger("clawloop.store")

    async def __aenter__(self) -> HistoryStore:
        await self.initialize()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def initialize(self) -> None:
        """
        Open the database connection and apply the schema.

        Raises:
            aiosqlite.Error: If the database cannot be opened or the schema fails.
        """
        if self._conn is not None:
            return
        if self._db_path != ":memory:":
            Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
        conn = await aiosqlite.connect(self._db_path, timeout=self._config.connection_timeout)
        try:
            conn.row_factory = aiosqlite.Row
            if self._config.wal_mode and self._db_path != ":memory:":
                await conn.execute("PRAGMA journal_mode=WAL")
            await conn.execute("PRAGMA foreign_keys=ON")
            schema = (Path(__file__).parent / "schema.sql").read_text()
            await conn.executescript(schema)
            await conn.commit()
        except Exception:
            await conn.close()
            raise

        self._conn = conn
        self._logger.info("store_initialized", db_path=self._db_path)

    async def close(self) -> None:
        if self._conn is None:
            return
        await self._conn.close()
        self._conn = None

    def _conn_or_raise(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise StoreError("Store is not initialized. Call initialize() first.")
        return self._conn

    # ── Sessions ───────────────────────────────────────────────────────────────

    async def create_session(self, title: str = "") -> SessionMetadata:
        conn = self._conn_or_raise()
        now = _now_ms()
        meta = SessionMetadata(id=make_id("sess"), title=title, created_at=now, updated_at=now)
        await conn.execute(
            "INSERT INTO sessions (id, title, created_at, updated_at, message_count)"
            " VALUES (?, ?, ?, ?, 0)",
            (meta.id, meta.title, meta.created_at, meta.updated_at),
        )
        await conn.commit()
        self._logger.debug("session_created", session_id=meta.id)
        return meta

    async def get_session(self, session_id: str) -> SessionMetadata:
        """
        Raises:
            SessionNotFoundError: If no session with this ID exists.
        """
        conn = self._conn_or_raise()
        async with conn.execute("SELECT * FROM sessions WHERE id = ?", (session_id,)) as cursor:
            row = await cursor.fetchone()
        if row is None:
            raise SessionNotFoundError(session_id)
        return self._row_to_metadata(row)

    async def list_sessions(self, *, limit: int = 100, offset: int = 0) -> list[SessionMetadata]:
        """List sessions, most recently updated first."""
        conn = self._conn_or_raise()
        async with conn.execute(
            "SELECT * FROM sessions ORDER BY updated_at DESC, id DESC LIMIT ? OFFSET ?",
            (limit, offset),
        ) as cursor:
            rows = await cursor.fetchall()
        return [self._row_to_metadata(r) for r in rows]

    async def delete_session(self, session_id: str) -> None:
        """Delete a session and its messages. Raises ``SessionNotFoundError`` if absent."""
        conn = self._conn_or_raise()
        cursor = await conn.execute("DELETE FROM sessions WHERE id = ?", (session_id,))
        await conn.commit()
        if cursor.rowcount == 0:
            raise SessionNotFoundError(session_id)
        self._logger.info("session_deleted", session_id=session_id)

    async def cleanup_empty_sessions(self) -> int:
        """Delete every session without messages. Returns the number removed."""
        conn = self._conn_or_raise()
        cursor = await conn.execute("DELETE FROM sessions WHERE message_count = 0")
        await conn.commit()
        removed = cursor.rowcount
        if removed:
            self._logger.info("empty_sessions_removed", count=removed)
        return removed

    async def get_or_create_latest(self, title: str = "") -> SessionMetadata:
        """Return the most recently updated session, creating one if the store is empty."""
        latest = await self.list_sessions(limit=1)
        if latest:
            return latest[0]
        return await self.create_session(title)

    # ── History ────────────────────────────────────────────────────────────────

    async def save_history(self, session_id: str, messages: Sequence[ChatMessage]) -> None:
        """Replace the stored history of ``session_id`` with ``messages``."""
        conn = self._conn_or_raise()
        await self.get_session(session_id)
        try:
            await conn.execute("DELETE FROM messages WHERE session_id = ?", (session_id,))
            await self._insert(conn, session_id, messages, start=0)
            await self._touch(conn, session_id, len(messages))
        except Exception:
            await conn.rollback()
            raise
        await conn.commit()

    async def append_messages(self, session_id: str, messages: Sequence[ChatMessage]) -> None:
        """Append ``messages`` after the stored history of ``session_id``."""
        conn = self._conn_or_raise()
        meta = await self.get_session(session_id)
        try:
            await self._insert(conn, session_id, messages, start=meta.message_count)
            await self._touch(conn, session_id, meta.message_count + len(messages))
        except Exception:
            await conn.rollback()
            raise
        await conn.commit()

    async def load_history(self, session_id: str) -> list[ChatMessage]:
        conn = self._conn_or_raise()
        await self.get_session(session_id)
        async with conn.execute(
            "SELECT * FROM messages WHERE session_id = ? ORDER BY position",
            (session_id,),
        ) as cursor:
            rows = await cursor.fetchall()
        return [self._row_to_message(r) for r in rows]

    # ── Helpers ────────────────────────────────────────────────────────────────

    @staticmethod
    async def _insert(
        conn: aiosqlite.Connection,
        session_id: str,
        messages: Sequence[ChatMessage],
        *,
        start: int,
    ) -> None:
        rows = [
            (
                session_id,
                start + offset,
                msg.role.value,
                msg.content,
                json.dumps([call.model_dump() for call in msg.tool_calls]),
                msg.tool_call_id,
                int(msg.is_error),
            )
            for offset, msg in enumerate(messages)
        ]
        await conn.executemany(
            "INSERT INTO messages"
            " (session_id, position, role, content, tool_calls, tool_call_id, is_error)"
            " VALUES (?, ?, ?, ?, ?, ?, ?)",
            rows,
        )

    @staticmethod
    async def _touch(conn: aiosqlite.Connection, session_id: str, count: int) -> None:
        await conn.execute(
            "UPDATE sessions SET message_count = ?, updated_at = ? WHERE id = ?",
            (count, _now_ms(), session_id),
        )

    @staticmethod
    def _row_to_metadata(row: Any) -> SessionMetadata:
        return SessionMetadata(
            id=row["id"],
            title=row["title"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
            message_count=row["message_count"],
        )

    @staticmethod
    def _row_to_message(row: Any) -> ChatMessage:
        return ChatMessage(
            role=row["role"],
            content=row["content"],
            tool_calls=[ToolCall.model_validate(c) for c in json.loads(row["tool_calls"])],
            tool_call_id=row["tool_call_id"],
            is_error=bool(row["is_error"]),
        )
