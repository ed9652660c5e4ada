"""JSONL sample store for dry runs and local development."""
import logging
from pathlib import Path
from typing import Optional

import aiofiles
import orjson

from covidstats.errors import StoreReadError, StoreWriteError
from covidstats.parse.models import Sample

logger = logging.getLogger(__name__)


class LocalSampleStore:
    """Appends samples as JSON lines to a single file."""

    def __init__(self, path: Path):
        self.path = path
        self.path.parent.mkdir(parents=True, exist_ok=True)

    async def append(self, sample: Sample) -> None:
        line = orjson.dumps(sample.to_row()) + b"\n"
        try:
            async with aiofiles.open(self.path, "ab") as f:
                await f.write(line)
        except OSError as e:
            raise StoreWriteError("failed to append sample", {"path": str(self.path)}) from e
        logger.info(f"Appended sample for {sample.country} to {self.path}")

    async def _read_all(self) -> list[Sample]:
        if not self.path.exists():
            return []

        samples = []
        try:
            async with aiofiles.open(self.path, "rb") as f:
                async for line in f:
                    if not line.strip():
                        continue
                    try:
                        samples.append(Sample.from_row(orjson.loads(line)))
                    except ValueError as e:
                        logger.warning(f"Skipping unreadable line in {self.path}: {e}")
        except OSError as e:
            raise StoreReadError("failed to read samples", {"path": str(self.path)}) from e
        return samples

    async def latest(self, country: str) -> Optional[Sample]:
        samples = [s for s in await self._read_all() if s.country == country]
        return max(samples, key=lambda s: s.timestamp) if samples else None

    async def all(self, country: str) -> list[Sample]:
        samples = [s for s in await self._read_all() if s.country == country]
        return sorted(samples, key=lambda s: s.timestamp)

    async def test_connection(self) -> bool:
        return self.path.parent.is_dir()

    async def close(self) -> None:
        pass
