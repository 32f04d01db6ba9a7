"""
Locks guarding the plan regeneration sweep.

Acquisition is always non-blocking: a caller that loses the race skips its
sweep instead of waiting.
"""

import logging
import os
import socket
import sqlite3
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Dict, Optional

logger = logging.getLogger(__name__)


class DistributedLock(ABC):
    """Named, non-blocking mutual exclusion."""

    @abstractmethod
    def try_acquire(self, name: str) -> bool:
        """Take the lock if free. Never blocks."""

    @abstractmethod
    def release(self, name: str) -> None:
        """Release a lock held by this holder."""

    @abstractmethod
    def refresh(self, name: str) -> bool:
        """Extend a held lock. False if this holder no longer owns it."""


class InMemoryLock(DistributedLock):
    """Process-local lock, one threading.Lock per name."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.Lock] = {}

    def _lock_for(self, name: str) -> threading.Lock:
        with self._guard:
            return self._locks.setdefault(name, threading.Lock())

    def try_acquire(self, name: str) -> bool:
        return self._lock_for(name).acquire(blocking=False)

    def release(self, name: str) -> None:
        lock = self._lock_for(name)
        if lock.locked():
            lock.release()

    def refresh(self, name: str) -> bool:
        return self._lock_for(name).locked()


class SqliteAdvisoryLock(DistributedLock):
    """
    Advisory lock stored as a row in the shared database's plan_locks table.

    The lock name is the primary key, so a second insert fails. Rows older than
    the TTL are treated as abandoned by a crashed holder and reclaimed, so a
    live holder must call refresh() more often than once per TTL.
    """

    def __init__(self, db, ttl_seconds: float = 600.0, holder: Optional[str] = None):
        self.db = db
        self.ttl_seconds = ttl_seconds
        self.holder = holder or f"{socket.gethostname()}:{os.getpid()}:{id(self)}"

    def try_acquire(self, name: str) -> bool:
        now = datetime.now()
        cutoff = (now - timedelta(seconds=self.ttl_seconds)).isoformat()
        with self.db._connection() as conn:
            reclaimed = conn.execute(
                "DELETE FROM plan_locks WHERE name = ? AND acquired_at < ?",
                (name, cutoff),
            ).rowcount
            if reclaimed:
                logger.warning(f"Reclaimed expired lock '{name}'")
        try:
            with self.db._connection() as conn:
                conn.execute(
                    "INSERT INTO plan_locks (name, holder, acquired_at) VALUES (?, ?, ?)",
                    (name, self.holder, now.isoformat()),
                )
        except sqlite3.IntegrityError:
            return False
        return True

    def release(self, name: str) -> None:
        with self.db._connection() as conn:
            conn.execute(
                "DELETE FROM plan_locks WHERE name = ? AND holder = ?",
                (name, self.holder),
            )

    def refresh(self, name: str) -> bool:
        with self.db._connection() as conn:
            cursor = conn.execute(
                "UPDATE plan_locks SET acquired_at = ? WHERE name = ? AND holder = ?",
                (datetime.now().isoformat(), name, self.holder),
            )
            return cursor.rowcount > 0
