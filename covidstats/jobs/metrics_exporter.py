"""Metrics exporter for observability."""
import json
import time
from pathlib import Path
from typing import Optional

import aiofiles


class MetricsExporter:
    """Appends one JSON line per finished run."""

    def __init__(self, metrics_file: Path):
        self.metrics_file = metrics_file

    async def export_run(
        self,
        run_id: str,
        state: str,
        previous_status: Optional[str],
        duration: float,
        extraction_gaps: int,
        error: Optional[str] = None,
    ) -> None:
        """Export metrics to JSONL file."""
        metrics = {
            "ts": time.time(),
            "run_id": run_id,
            "state": state,
            "previous_status": previous_status,
            "duration": round(duration, 3),
            "extraction_gaps": extraction_gaps,
            "error": error,
        }

        self.metrics_file.parent.mkdir(parents=True, exist_ok=True)
        line = json.dumps(metrics) + "\n"
        async with aiofiles.open(self.metrics_file, "a") as f:
            await f.write(line)

    async def read_recent(self, limit: int = 100) -> list[dict]:
        if not self.metrics_file.exists():
            return []

        lines = []
        async with aiofiles.open(self.metrics_file, "r") as f:
            async for line in f:
                if line.strip():
                    lines.append(json.loads(line))
        return lines[-limit:]
