"""
Tests for locks.py - Regeneration sweep locks.
"""

from datetime import datetime, timedelta

import pytest

from course_caddie.database import Database
from course_caddie.locks import InMemoryLock, SqliteAdvisoryLock


@pytest.fixture
def db(temp_db_path):
    return Database(db_path=temp_db_path)


class TestInMemoryLock:
    """Tests for the process-local lock."""

    def test_acquire_then_contend(self):
        lock = InMemoryLock()
        assert lock.try_acquire("regen") is True
        assert lock.try_acquire("regen") is False

    def test_release_frees(self):
        lock = InMemoryLock()
        lock.try_acquire("regen")
        lock.release("regen")
        assert lock.try_acquire("regen") is True

    def test_names_independent(self):
        lock = InMemoryLock()
        assert lock.try_acquire("a")
        assert lock.try_acquire("b")

    def test_release_unheld_is_noop(self):
        lock = InMemoryLock()
        lock.release("never-taken")
        assert lock.try_acquire("never-taken")

    def test_refresh_reports_held(self):
        lock = InMemoryLock()
        assert lock.refresh("regen") is False
        lock.try_acquire("regen")
        assert lock.refresh("regen") is True


class TestSqliteAdvisoryLock:
    """Tests for the database-backed lock."""

    def test_second_holder_blocked(self, db):
        first = SqliteAdvisoryLock(db, holder="worker-1")
        second = SqliteAdvisoryLock(db, holder="worker-2")
        assert first.try_acquire("regen") is True
        assert second.try_acquire("regen") is False

    def test_release_lets_others_in(self, db):
        first = SqliteAdvisoryLock(db, holder="worker-1")
        second = SqliteAdvisoryLock(db, holder="worker-2")
        first.try_acquire("regen")
        first.release("regen")
        assert second.try_acquire("regen") is True

    def test_only_holder_can_release(self, db):
        first = SqliteAdvisoryLock(db, holder="worker-1")
        second = SqliteAdvisoryLock(db, holder="worker-2")
        first.try_acquire("regen")
        second.release("regen")
        assert second.try_acquire("regen") is False

    def test_shared_across_instances(self, temp_db_path):
        """Test two Database handles on one file see the same lock."""
        a = SqliteAdvisoryLock(Database(db_path=temp_db_path), holder="a")
        b = SqliteAdvisoryLock(Database(db_path=temp_db_path), holder="b")
        assert a.try_acquire("regen")
        assert not b.try_acquire("regen")

    def test_expired_lock_reclaimed(self, db):
        old = (datetime.now() - timedelta(hours=1)).isoformat()
        with db._connection() as conn:
            conn.execute(
                "INSERT INTO plan_locks (name, holder, acquired_at) VALUES (?, ?, ?)",
                ("regen", "crashed-worker", old),
            )
        lock = SqliteAdvisoryLock(db, ttl_seconds=60, holder="worker-2")
        assert lock.try_acquire("regen") is True

        with db._connection() as conn:
            holder = conn.execute("SELECT holder FROM plan_locks WHERE name = 'regen'").fetchone()[0]
        assert holder == "worker-2"

    def test_fresh_lock_not_reclaimed(self, db):
        SqliteAdvisoryLock(db, ttl_seconds=60, holder="worker-1").try_acquire("regen")
        assert SqliteAdvisoryLock(db, ttl_seconds=60, holder="worker-2").try_acquire("regen") is False

    def test_default_holder_unique(self, db):
        a, b = SqliteAdvisoryLock(db), SqliteAdvisoryLock(db)
        assert a.holder != b.holder

    def test_refresh_keeps_long_sweep_held(self, db):
        """Test a holder past its TTL keeps the lock once it refreshes."""
        old = (datetime.now() - timedelta(hours=1)).isoformat()
        with db._connection() as conn:
            conn.execute(
                "INSERT INTO plan_locks (name, holder, acquired_at) VALUES (?, ?, ?)",
                ("regen", "worker-1", old),
            )
        first = SqliteAdvisoryLock(db, ttl_seconds=60, holder="worker-1")
        second = SqliteAdvisoryLock(db, ttl_seconds=60, holder="worker-2")

        assert first.refresh("regen") is True
        assert second.try_acquire("regen") is False

    def test_refresh_by_non_holder(self, db):
        SqliteAdvisoryLock(db, holder="worker-1").try_acquire("regen")
        assert SqliteAdvisoryLock(db, holder="worker-2").refresh("regen") is False

    def test_refresh_after_reclaim(self, db):
        first = SqliteAdvisoryLock(db, ttl_seconds=60, holder="worker-1")
        first.try_acquire("regen")
        old = (datetime.now() - timedelta(hours=1)).isoformat()
        with db._connection() as conn:
            conn.execute("UPDATE plan_locks SET acquired_at = ? WHERE name = 'regen'", (old,))

        assert SqliteAdvisoryLock(db, ttl_seconds=60, holder="worker-2").try_acquire("regen")
        assert first.refresh("regen") is False
