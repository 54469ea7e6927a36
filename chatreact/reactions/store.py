"""Reaction history and analytics counter stores.

InMemoryReactionStore: bounded, TTL-evicting, process-local.
SQLiteReactionStore: persistent store with TTL, survives restarts.

Both expose ``get_stats()`` and ``purge_expired()`` in addition to the
``ReactionStore`` protocol.
"""

import asyncio
import logging
import sqlite3
import time
from collections import OrderedDict
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

from chatreact.core.exceptions import PersistenceFailure

logger = logging.getLogger(__name__)

EMOJI_COUNTER_PREFIX = "by_emoji:"
USER_COUNTER_PREFIX = "by_user:"


@dataclass
class HistoryRecord:
    """Last reaction sent on one message."""

    message_id: str
    recipient: str
    emoji: str
    timestamp: str
    expires_at: float

    def as_dict(self) -> Dict[str, Any]:
        return {
            "message_id": self.message_id,
            "recipient": self.recipient,
            "emoji": self.emoji,
            "timestamp": self.timestamp,
        }


def _build_stats(
    records: List[HistoryRecord],
    emoji_counters: Dict[str, int],
    recent_limit: int,
) -> Dict[str, Any]:
    by_emoji: Dict[str, int] = {}
    for record in records:
        if record.emoji:
            by_emoji[record.emoji] = by_emoji.get(record.emoji, 0) + 1
    recent = sorted(records, key=lambda r: r.timestamp, reverse=True)[:recent_limit]
    return {
        "total": len(records),
        "by_emoji": by_emoji,
        "recent": [r.as_dict() for r in recent],
        "counters": {"by_emoji": emoji_counters},
    }


class InMemoryReactionStore:
    """Bounded in-memory store with TTL expiry.

    History is keyed by message ID (last reaction wins). When ``max_size`` is
    reached the oldest entry is evicted; expired entries are purged every
    ``purge_interval`` writes and on demand via ``purge_expired``.
    """

    def __init__(
        self,
        max_size: int = 10_000,
        clock: Optional[Callable[[], float]] = None,
        purge_interval: int = 100,
    ):
        self._max_size = max_size
        self._clock = clock or time.time
        self._purge_interval = purge_interval
        self._history: "OrderedDict[str, HistoryRecord]" = OrderedDict()
        self._counters: Dict[str, Tuple[int, float]] = {}
        self._write_count: int = 0

    async def record_reaction(
        self, message_id: str, entry: Dict[str, Any], ttl_seconds: int
    ) -> None:
        now = self._clock()
        if message_id in self._history:
            self._history.move_to_end(message_id)
        elif len(self._history) >= self._max_size:
            self._history.popitem(last=False)
        self._history[message_id] = HistoryRecord(
            message_id=message_id,
            recipient=str(entry.get("recipient", "")),
            emoji=str(entry.get("emoji", "")),
            timestamp=str(entry.get("timestamp", "")),
            expires_at=now + ttl_seconds,
        )
        self._after_write()

    async def increment_counter(self, key: str, ttl_seconds: int) -> int:
        now = self._clock()
        count, expires_at = self._counters.get(key, (0, 0.0))
        if expires_at <= now:
            count = 0
        count += 1
        self._counters[key] = (count, now + ttl_seconds)
        self._after_write()
        return count

    def get_counter(self, key: str) -> int:
        count, expires_at = self._counters.get(key, (0, 0.0))
        return count if expires_at > self._clock() else 0

    def get_record(self, message_id: str) -> Optional[HistoryRecord]:
        record = self._history.get(message_id)
        if record is None or record.expires_at <= self._clock():
            return None
        return record

    def _after_write(self) -> None:
        self._write_count += 1
        if self._write_count % self._purge_interval == 0:
            self._purge(self._clock())

    def _purge(self, now: float) -> int:
        expired = [k for k, v in self._history.items() if v.expires_at <= now]
        for key in expired:
            del self._history[key]
        expired_counters = [k for k, (_, exp) in self._counters.items() if exp <= now]
        for key in expired_counters:
            del self._counters[key]
        return len(expired) + len(expired_counters)

    async def purge_expired(self) -> int:
        """Remove expired history entries and counters. Returns count removed."""
        return self._purge(self._clock())

    async def get_stats(self, recent_limit: int = 10) -> Dict[str, Any]:
        now = self._clock()
        records = [r for r in self._history.values() if r.expires_at > now]
        emoji_counters = {
            key[len(EMOJI_COUNTER_PREFIX) :]: count
            for key, (count, exp) in self._counters.items()
            if key.startswith(EMOJI_COUNTER_PREFIX) and exp > now
        }
        return _build_stats(records, emoji_counters, recent_limit)


class SQLiteReactionStore:
    """Persistent SQLite store with TTL support.

    Synchronous sqlite3 calls run in a worker thread so the event loop is
    never blocked. ``sqlite3.Error`` is wrapped in ``PersistenceFailure``.
    """

    def __init__(self, db_path: str, clock: Optional[Callable[[], float]] = None):
        self.db_path = db_path
        self._clock = clock or time.time
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(self.db_path, timeout=30.0)

    def _init_db(self) -> None:
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        conn = self._connect()
        try:
            cursor = conn.cursor()
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS reaction_history (
                    message_id TEXT PRIMARY KEY,
                    recipient TEXT NOT NULL,
                    emoji TEXT NOT NULL,
                    timestamp TEXT NOT NULL,
                    expires_at REAL NOT NULL
                )
            """)
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS reaction_counters (
                    counter_key TEXT PRIMARY KEY,
                    count INTEGER NOT NULL,
                    expires_at REAL NOT NULL
                )
            """)
            cursor.execute("""
                CREATE INDEX IF NOT EXISTS idx_reaction_history_expires
                ON reaction_history(expires_at)
            """)
            conn.commit()
        finally:
            conn.close()

    async def record_reaction(
        self, message_id: str, entry: Dict[str, Any], ttl_seconds: int
    ) -> None:
        await self._run(
            "write", self._record_reaction_sync, message_id, entry, ttl_seconds
        )

    async def increment_counter(self, key: str, ttl_seconds: int) -> int:
        return await self._run("write", self._increment_counter_sync, key, ttl_seconds)

    async def purge_expired(self) -> int:
        """Remove expired rows. Returns number of rows deleted."""
        return await self._run("delete", self._purge_expired_sync)

    async def get_stats(self, recent_limit: int = 10) -> Dict[str, Any]:
        return await self._run("read", self._get_stats_sync, recent_limit)

    async def _run(self, operation: str, fn: Callable[..., Any], *args: Any) -> Any:
        try:
            return await asyncio.to_thread(fn, *args)
        except sqlite3.Error as e:
            raise PersistenceFailure(operation, str(e)) from e

    def _record_reaction_sync(
        self, message_id: str, entry: Dict[str, Any], ttl_seconds: int
    ) -> None:
        expires_at = self._clock() + ttl_seconds
        conn = self._connect()
        try:
            conn.execute(
                """
                INSERT OR REPLACE INTO reaction_history
                (message_id, recipient, emoji, timestamp, expires_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    message_id,
                    str(entry.get("recipient", "")),
                    str(entry.get("emoji", "")),
                    str(entry.get("timestamp", "")),
                    expires_at,
                ),
            )
            conn.commit()
        finally:
            conn.close()

    def _increment_counter_sync(self, key: str, ttl_seconds: int) -> int:
        now = self._clock()
        conn = self._connect()
        try:
            cursor = conn.cursor()
            cursor.execute(
                "DELETE FROM reaction_counters WHERE counter_key = ? AND expires_at <= ?",
                (key, now),
            )
            cursor.execute(
                """
                INSERT INTO reaction_counters (counter_key, count, expires_at)
                VALUES (?, 1, ?)
                ON CONFLICT(counter_key)
                DO UPDATE SET count = count + 1, expires_at = excluded.expires_at
                """,
                (key, now + ttl_seconds),
            )
            cursor.execute(
                "SELECT count FROM reaction_counters WHERE counter_key = ?", (key,)
            )
            row = cursor.fetchone()
            conn.commit()
            return int(row[0]) if row else 0
        finally:
            conn.close()

    def _purge_expired_sync(self) -> int:
        now = self._clock()
        conn = self._connect()
        try:
            cursor = conn.cursor()
            cursor.execute("DELETE FROM reaction_history WHERE expires_at <= ?", (now,))
            deleted = cursor.rowcount
            cursor.execute("DELETE FROM reaction_counters WHERE expires_at <= ?", (now,))
            deleted += cursor.rowcount
            conn.commit()
            return deleted
        finally:
            conn.close()

    def _get_stats_sync(self, recent_limit: int) -> Dict[str, Any]:
        now = self._clock()
        conn = self._connect()
        try:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT message_id, recipient, emoji, timestamp, expires_at
                FROM reaction_history WHERE expires_at > ?
                """,
                (now,),
            )
            records = [HistoryRecord(*row) for row in cursor.fetchall()]
            cursor.execute(
                """
                SELECT counter_key, count FROM reaction_counters
                WHERE counter_key LIKE ? AND expires_at > ?
                """,
                (f"{EMOJI_COUNTER_PREFIX}%", now),
            )
            emoji_counters = {
                key[len(EMOJI_COUNTER_PREFIX) :]: int(count)
                for key, count in cursor.fetchall()
            }
        finally:
            conn.close()
        return _build_stats(records, emoji_counters, recent_limit)
