"""Supabase-backed sample store: append-only, ordered by timestamp."""
import asyncio
import logging
from typing import Optional

from supabase import Client, create_client
from tenacity import Retrying, stop_after_attempt, wait_exponential

from covidstats.errors import ConfigError, StoreReadError, StoreWriteError
from covidstats.parse.models import Sample

logger = logging.getLogger(__name__)


def create_supabase_client(url: Optional[str], key: Optional[str]) -> Client:
    if not url or not key:
        raise ConfigError("Supabase configuration missing")
    return create_client(url, key)


class SupabaseSampleStore:
    """Stores samples as rows of a Supabase table.

    The Supabase client is synchronous, so every call runs in the default
    thread pool. Reads are retried a few times before :class:`StoreReadError`
    is raised; appends are never retried because a retried insert can
    duplicate a record whose first attempt actually landed.
    """

    def __init__(
        self,
        client: Client,
        table: str = "samples",
        read_attempts: int = 3,
        read_backoff: float = 1.0,
    ):
        self.client = client
        self.table = table
        self._read_retry = Retrying(
            stop=stop_after_attempt(read_attempts),
            wait=wait_exponential(multiplier=read_backoff, max=10),
            reraise=True,
        )

    async def append(self, sample: Sample) -> None:
        """Insert one sample."""
        row = sample.to_row()
        loop = asyncio.get_event_loop()
        try:
            await loop.run_in_executor(None, self._insert_sync, row)
        except Exception as e:
            logger.error(f"Supabase insert error: {e}")
            raise StoreWriteError("failed to append sample", {"table": self.table}) from e
        logger.info(f"Appended sample for {sample.country} at {row['timestamp']}")

    def _insert_sync(self, row: dict) -> None:
        """Synchronous insert (called from thread pool)."""
        response = self.client.table(self.table).insert(row).execute()
        if not response.data:
            raise RuntimeError("insert returned no rows")

    async def latest(self, country: str) -> Optional[Sample]:
        """Most recent sample for ``country``, or ``None`` when there is none."""
        rows = await self._read(self._select_latest_sync, country)
        return self._to_sample(rows[0]) if rows else None

    async def all(self, country: str) -> list[Sample]:
        """All samples for ``country``, oldest first."""
        rows = await self._read(self._select_all_sync, country)
        return [self._to_sample(row) for row in rows]

    def _to_sample(self, row: dict) -> Sample:
        try:
            return Sample.from_row(row)
        except ValueError as e:
            logger.error(f"Unreadable sample row {row.get('id')}: {e}")
            raise StoreReadError(
                "unreadable sample row", {"table": self.table, "row_id": row.get("id")}
            ) from e

    async def _read(self, query, country: str) -> list[dict]:
        loop = asyncio.get_event_loop()
        try:
            return await loop.run_in_executor(None, self._read_retry.copy(), query, country)
        except Exception as e:
            logger.error(f"Supabase query error: {e}")
            raise StoreReadError("failed to query samples", {"table": self.table}) from e

    def _select_latest_sync(self, country: str) -> list[dict]:
        response = (
            self.client.table(self.table)
            .select("*")
            .eq("country", country)
            .order("timestamp", desc=True)
            .limit(1)
            .execute()
        )
        return response.data or []

    def _select_all_sync(self, country: str) -> list[dict]:
        response = (
            self.client.table(self.table)
            .select("*")
            .eq("country", country)
            .order("timestamp")
            .execute()
        )
        return response.data or []

    async def test_connection(self) -> bool:
        """Test Supabase connection."""
        try:
            loop = asyncio.get_event_loop()
            await loop.run_in_executor(
                None,
                lambda: (
                    self.client.table(self.table)
                    .select("timestamp", count="exact")
                    .limit(1)
                    .execute()
                ),
            )
            return True
        except Exception as e:
            logger.error(f"Supabase connection test failed: {e}")
            return False

    async def close(self) -> None:
        """The Supabase client holds no connection that needs closing."""
