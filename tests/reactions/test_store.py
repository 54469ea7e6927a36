"""Tests for reaction stores: TTL expiry, bounded history, counters, stats."""

import sqlite3

import pytest
from chatreact.core.exceptions import PersistenceFailure
from chatreact.reactions.store import InMemoryReactionStore, SQLiteReactionStore

DAY = 86400


class FakeTime:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def entry(emoji: str, recipient: str = "user-1", timestamp: str = "2026-01-01T00:00:00"):
    return {"recipient": recipient, "emoji": emoji, "timestamp": timestamp}


@pytest.fixture()
def fake_time():
    return FakeTime()


class TestInMemoryStore:
    """Bounded TTL history and counters."""

    @pytest.mark.asyncio()
    async def test_last_reaction_per_message_wins(self, fake_time):
        store = InMemoryReactionStore(clock=fake_time)
        await store.record_reaction("msg-1", entry("a"), DAY)
        await store.record_reaction("msg-1", entry("b"), DAY)

        assert store.get_record("msg-1").emoji == "b"
        stats = await store.get_stats()
        assert stats["total"] == 1

    @pytest.mark.asyncio()
    async def test_history_expires(self, fake_time):
        store = InMemoryReactionStore(clock=fake_time)
        await store.record_reaction("msg-1", entry("a"), DAY)

        fake_time.now += DAY
        assert store.get_record("msg-1") is None
        assert await store.purge_expired() == 1
        assert (await store.get_stats())["total"] == 0

    @pytest.mark.asyncio()
    async def test_oldest_entry_evicted_at_capacity(self, fake_time):
        store = InMemoryReactionStore(max_size=2, clock=fake_time)
        await store.record_reaction("msg-1", entry("a"), DAY)
        await store.record_reaction("msg-2", entry("b"), DAY)
        await store.record_reaction("msg-3", entry("c"), DAY)

        assert store.get_record("msg-1") is None
        assert store.get_record("msg-3").emoji == "c"

    @pytest.mark.asyncio()
    async def test_rewrite_refreshes_eviction_order(self, fake_time):
        store = InMemoryReactionStore(max_size=2, clock=fake_time)
        await store.record_reaction("msg-1", entry("a"), DAY)
        await store.record_reaction("msg-2", entry("b"), DAY)
        await store.record_reaction("msg-1", entry("c"), DAY)
        await store.record_reaction("msg-3", entry("d"), DAY)

        assert store.get_record("msg-1") is not None
        assert store.get_record("msg-2") is None

    @pytest.mark.asyncio()
    async def test_counter_increments_and_expires(self, fake_time):
        store = InMemoryReactionStore(clock=fake_time)
        assert await store.increment_counter("by_emoji:x", 30 * DAY) == 1
        assert await store.increment_counter("by_emoji:x", 30 * DAY) == 2

        fake_time.now += 30 * DAY
        assert store.get_counter("by_emoji:x") == 0
        assert await store.increment_counter("by_emoji:x", 30 * DAY) == 1

    @pytest.mark.asyncio()
    async def test_periodic_purge_on_write(self, fake_time):
        store = InMemoryReactionStore(clock=fake_time, purge_interval=2)
        await store.record_reaction("msg-1", entry("a"), 10)
        fake_time.now += 10
        await store.record_reaction("msg-2", entry("b"), 10)

        assert "msg-1" not in store._history

    @pytest.mark.asyncio()
    async def test_stats(self, fake_time):
        store = InMemoryReactionStore(clock=fake_time)
        for i in range(12):
            emoji = "a" if i % 2 else "b"
            timestamp = f"2026-01-01T00:00:{i:02d}"
            await store.record_reaction(
                f"msg-{i}", entry(emoji, timestamp=timestamp), DAY
            )
        await store.increment_counter("by_emoji:a", DAY)
        await store.increment_counter("by_user:user-1", DAY)

        stats = await store.get_stats()
        assert stats["total"] == 12
        assert stats["by_emoji"] == {"a": 6, "b": 6}
        assert len(stats["recent"]) == 10
        assert stats["recent"][0]["message_id"] == "msg-11"
        assert stats["counters"]["by_emoji"] == {"a": 1}


class TestSQLiteStore:
    """Persistent store backed by SQLite."""

    @pytest.fixture()
    def db_path(self, tmp_path):
        return str(tmp_path / "nested" / "reactions.db")

    @pytest.mark.asyncio()
    async def test_record_and_stats(self, db_path, fake_time):
        store = SQLiteReactionStore(db_path, clock=fake_time)
        await store.record_reaction("msg-1", entry("a"), DAY)
        await store.record_reaction("msg-1", entry("b"), DAY)
        await store.record_reaction("msg-2", entry("b", recipient="user-2"), DAY)

        stats = await store.get_stats()
        assert stats["total"] == 2
        assert stats["by_emoji"] == {"b": 2}

    @pytest.mark.asyncio()
    async def test_survives_reopen(self, db_path, fake_time):
        store = SQLiteReactionStore(db_path, clock=fake_time)
        await store.record_reaction("msg-1", entry("a"), DAY)
        await store.increment_counter("by_emoji:a", DAY)

        reopened = SQLiteReactionStore(db_path, clock=fake_time)
        stats = await reopened.get_stats()
        assert stats["total"] == 1
        assert stats["counters"]["by_emoji"] == {"a": 1}

    @pytest.mark.asyncio()
    async def test_counter_resets_after_expiry(self, db_path, fake_time):
        store = SQLiteReactionStore(db_path, clock=fake_time)
        assert await store.increment_counter("by_user:user-1", DAY) == 1
        assert await store.increment_counter("by_user:user-1", DAY) == 2

        fake_time.now += DAY
        assert await store.increment_counter("by_user:user-1", DAY) == 1

    @pytest.mark.asyncio()
    async def test_purge_expired(self, db_path, fake_time):
        store = SQLiteReactionStore(db_path, clock=fake_time)
        await store.record_reaction("msg-1", entry("a"), 10)
        await store.increment_counter("by_emoji:a", 10)
        await store.record_reaction("msg-2", entry("a"), DAY)

        fake_time.now += 10
        assert await store.purge_expired() == 2
        assert (await store.get_stats())["total"] == 1

    @pytest.mark.asyncio()
    async def test_sqlite_error_wrapped(self, db_path, fake_time):
        store = SQLiteReactionStore(db_path, clock=fake_time)
        conn = sqlite3.connect(db_path)
        conn.execute("DROP TABLE reaction_history")
        conn.commit()
        conn.close()

        with pytest.raises(PersistenceFailure):
            await store.record_reaction("msg-1", entry("a"), DAY)
