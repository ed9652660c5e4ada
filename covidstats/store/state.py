"""SQLite state database: run lease and run history."""
import logging
import time
from pathlib import Path
from typing import Optional

import aiosqlite

logger = logging.getLogger(__name__)


class StateDB:
    """Local bookkeeping shared by every process on the host."""

    def __init__(self, db_path: Path):
        self.db_path = db_path

    async def initialize(self) -> None:
        """Create tables if they don't exist."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute(
                """
                CREATE TABLE IF NOT EXISTS run_lease (
                    name TEXT PRIMARY KEY,
                    holder TEXT NOT NULL,
                    acquired_at REAL NOT NULL,
                    expires_at REAL NOT NULL
                )
                """
            )
            await db.execute(
                """
                CREATE TABLE IF NOT EXISTS scrape_runs (
                    run_id TEXT PRIMARY KEY,
                    state TEXT NOT NULL,
                    previous_status TEXT,
                    started_at TIMESTAMP NOT NULL,
                    finished_at TIMESTAMP,
                    error TEXT
                )
                """
            )
            await db.execute(
                """
                CREATE INDEX IF NOT EXISTS idx_runs_started ON scrape_runs(started_at)
                """
            )
            await db.commit()
            logger.info(f"State database initialized at {self.db_path}")

    async def acquire_lease(self, name: str, holder: str, ttl_seconds: float) -> bool:
        """Take the named lease unless a live one exists. Expired leases are dropped."""
        now = time.time()
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute(
                "DELETE FROM run_lease WHERE name = ? AND expires_at <= ?",
                (name, now),
            )
            cursor = await db.execute(
                """
                INSERT OR IGNORE INTO run_lease (name, holder, acquired_at, expires_at)
                VALUES (?, ?, ?, ?)
                """,
                (name, holder, now, now + ttl_seconds),
            )
            acquired = cursor.rowcount == 1
            await db.commit()
        return acquired

    async def release_lease(self, name: str, holder: str) -> None:
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute(
                "DELETE FROM run_lease WHERE name = ? AND holder = ?",
                (name, holder),
            )
            await db.commit()

    async def lease_holder(self, name: str) -> Optional[str]:
        async with aiosqlite.connect(self.db_path) as db:
            cursor = await db.execute(
                "SELECT holder FROM run_lease WHERE name = ? AND expires_at > ?",
                (name, time.time()),
            )
            row = await cursor.fetchone()
            return row[0] if row else None

    async def record_run_started(self, run_id: str) -> None:
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute(
                """
                INSERT OR REPLACE INTO scrape_runs (run_id, state, started_at)
                VALUES (?, 'running', datetime('now'))
                """,
                (run_id,),
            )
            await db.commit()

    async def record_run_finished(
        self,
        run_id: str,
        state: str,
        previous_status: Optional[str] = None,
        error: Optional[str] = None,
    ) -> None:
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute(
                """
                UPDATE scrape_runs
                SET state = ?, previous_status = ?, error = ?, finished_at = datetime('now')
                WHERE run_id = ?
                """,
                (state, previous_status, error[:500] if error else None, run_id),
            )
            await db.commit()

    async def recent_runs(self, limit: int = 20) -> list[dict]:
        async with aiosqlite.connect(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(
                """
                SELECT run_id, state, previous_status, started_at, finished_at, error
                FROM scrape_runs ORDER BY started_at DESC, rowid DESC LIMIT ?
                """,
                (limit,),
            )
            return [dict(row) for row in await cursor.fetchall()]

    async def get_stats(self) -> dict:
        """Count runs by final state."""
        async with aiosqlite.connect(self.db_path) as db:
            cursor = await db.execute(
                """
                SELECT state, COUNT(*) FROM scrape_runs
                GROUP BY state
                """
            )
            return {row[0]: row[1] for row in await cursor.fetchall()}
