from __future__ import annotations

import asyncio
import json
import sqlite3
import threading
import time
from collections.abc import Callable
from pathlib import Path
from typing import Any

from loguru import logger

from vet_agent_loop.errors import StoreNotConnectedError
from vet_agent_loop.identity import seen_key, session_key
from vet_agent_loop.session.models import Session
from vet_agent_loop.session.trimming import trim_turns

DEFAULT_MAX_TURNS = 12
DEFAULT_SESSION_TTL_SECONDS = 6 * 60 * 60
DEFAULT_SEEN_TTL_SECONDS = 60 * 60

_SCHEMA = """
CREATE TABLE IF NOT EXISTS sessions (
    key TEXT PRIMARY KEY,
    record_json TEXT NOT NULL,
    expires_at REAL NOT NULL
);

CREATE TABLE IF NOT EXISTS delivery_markers (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    expires_at REAL NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_sessions_expires ON sessions(expires_at);
CREATE INDEX IF NOT EXISTS idx_delivery_markers_expires ON delivery_markers(expires_at);
"""


class SessionStore:
    """TTL-bound conversation log per identity, backed by SQLite.

    Each call is one round-trip executed on a worker thread so the event loop
    is never blocked. Expired rows are treated as absent on read and removed
    lazily or by :meth:`purge_expired`.
    """

    def __init__(
        self,
        db_path: str,
        *,
        max_turns: int = DEFAULT_MAX_TURNS,
        session_ttl_seconds: int = DEFAULT_SESSION_TTL_SECONDS,
        seen_ttl_seconds: int = DEFAULT_SEEN_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self._db_path = db_path
        self._max_turns = max_turns
        self._session_ttl_seconds = session_ttl_seconds
        self._seen_ttl_seconds = seen_ttl_seconds
        self._clock = clock
        self._conn: sqlite3.Connection | None = None
        self._lock = threading.Lock()

    @property
    def connected(self) -> bool:
        return self._conn is not None

    @property
    def max_turns(self) -> int:
        return self._max_turns

    async def connect(self) -> None:
        if self._conn is not None:
            return
        self._conn = await asyncio.to_thread(self._open)
        logger.info(f"Session store connected ({self._db_path})")

    async def disconnect(self) -> None:
        conn, self._conn = self._conn, None
        if conn is None:
            return
        await asyncio.to_thread(conn.close)
        logger.info("Session store disconnected")

    async def is_healthy(self) -> bool:
        try:
            await self._run(lambda conn: conn.execute("SELECT 1").fetchone())
            return True
        except Exception as ex:
            logger.warning(f"Session store health check failed: {ex}")
            return False

    async def load(self, identity: str) -> Session | None:
        try:
            return await self._load(identity)
        except Exception as ex:
            logger.error(f"Failed to load session for {identity}: {ex}")
            return None

    async def append(self, identity: str, message: dict) -> Session:
        key = session_key(identity)

        def op(conn: sqlite3.Connection) -> Session:
            now = self._clock()
            session = self._read(conn, key, now) or Session(updated_at=int(now * 1000))
            session.messages.append(message)
            session.messages = trim_turns(session.messages, self._max_turns)
            session.updated_at = int(now * 1000)
            conn.execute(
                """
                INSERT INTO sessions (key, record_json, expires_at) VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET record_json = excluded.record_json, expires_at = excluded.expires_at
                """,
                (key, json.dumps(session.to_record(), ensure_ascii=False), now + self._session_ttl_seconds),
            )
            conn.commit()
            return session

        try:
            return await self._run(op)
        except Exception as ex:
            logger.error(f"Failed to save session for {identity}: {ex}")
            raise

    async def end(self, identity: str) -> None:
        key = session_key(identity)

        def op(conn: sqlite3.Connection) -> None:
            conn.execute("DELETE FROM sessions WHERE key = ?", (key,))
            conn.commit()

        try:
            await self._run(op)
        except Exception as ex:
            logger.error(f"Failed to end session for {identity}: {ex}")
            raise
        logger.info(f"Session ended for {key}")

    async def touch(self, identity: str) -> None:
        key = session_key(identity)

        def op(conn: sqlite3.Connection) -> None:
            now = self._clock()
            conn.execute(
                "UPDATE sessions SET expires_at = ? WHERE key = ? AND expires_at > ?",
                (now + self._session_ttl_seconds, key, now),
            )
            conn.commit()

        try:
            await self._run(op)
        except Exception as ex:
            logger.error(f"Failed to touch session for {identity}: {ex}")
            raise

    async def is_seen(self, message_id: str) -> bool:
        key = seen_key(message_id)

        def op(conn: sqlite3.Connection) -> bool:
            row = conn.execute(
                "SELECT 1 FROM delivery_markers WHERE key = ? AND expires_at > ?",
                (key, self._clock()),
            ).fetchone()
            return row is not None

        try:
            return await self._run(op)
        except Exception as ex:
            logger.warning(f"Failed to check delivery marker {message_id}: {ex}")
            return False

    async def mark_seen(self, message_id: str) -> bool:
        """Record a delivery marker. Returns False if a live marker already existed."""
        key = seen_key(message_id)

        def op(conn: sqlite3.Connection) -> bool:
            now = self._clock()
            conn.execute("DELETE FROM delivery_markers WHERE key = ? AND expires_at <= ?", (key, now))
            cursor = conn.execute(
                "INSERT OR IGNORE INTO delivery_markers (key, value, expires_at) VALUES (?, '1', ?)",
                (key, now + self._seen_ttl_seconds),
            )
            conn.commit()
            return cursor.rowcount == 1

        try:
            return await self._run(op)
        except Exception as ex:
            logger.error(f"Failed to mark message as seen {message_id}: {ex}")
            return True

    async def purge_expired(self) -> int:
        def op(conn: sqlite3.Connection) -> int:
            now = self._clock()
            removed = conn.execute("DELETE FROM sessions WHERE expires_at <= ?", (now,)).rowcount
            removed += conn.execute("DELETE FROM delivery_markers WHERE expires_at <= ?", (now,)).rowcount
            conn.commit()
            return removed

        removed = await self._run(op)
        if removed:
            logger.info(f"Purged {removed} expired session store row(s)")
        return removed

    async def _load(self, identity: str) -> Session | None:
        key = session_key(identity)
        return await self._run(lambda conn: self._read(conn, key, self._clock()))

    def _read(self, conn: sqlite3.Connection, key: str, now: float) -> Session | None:
        row = conn.execute(
            "SELECT record_json, expires_at FROM sessions WHERE key = ? LIMIT 1",
            (key,),
        ).fetchone()
        if row is None:
            return None
        if float(row["expires_at"]) <= now:
            conn.execute("DELETE FROM sessions WHERE key = ?", (key,))
            conn.commit()
            return None
        return Session.from_record(json.loads(row["record_json"]))

    def _open(self) -> sqlite3.Connection:
        if self._db_path != ":memory:":
            Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(self._db_path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.executescript(_SCHEMA)
        conn.commit()
        return conn

    async def _run(self, op: Callable[[sqlite3.Connection], Any]) -> Any:
        conn = self._conn
        if conn is None:
            raise StoreNotConnectedError()

        def locked() -> Any:
            with self._lock:
                return op(conn)

        return await asyncio.to_thread(locked)
