"""Counters for scrape runs."""
import time
import logging
from collections import defaultdict
from typing import Dict, Optional

logger = logging.getLogger(__name__)


class Metrics:
    """Track run outcomes since process start."""

    def __init__(self):
        self.start_time = time.time()
        self.counters: Dict[str, int] = defaultdict(int)
        self.last_run: Optional[dict] = None

    def increment(self, key: str, amount: int = 1) -> None:
        """Increment a counter."""
        self.counters[key] += amount

    def record_run(self, run_id: str, state: str, duration: float, extraction_gaps: int = 0) -> None:
        self.increment("runs")
        self.increment(state)
        if extraction_gaps:
            self.increment("extraction_gaps", extraction_gaps)
        self.last_run = {
            "run_id": run_id,
            "state": state,
            "duration_seconds": round(duration, 3),
            "finished_at": time.time(),
        }
        logger.info(
            f"Runs: {self.counters['runs']} | "
            f"Persisted: {self.counters.get('persisted', 0)} | "
            f"Unchanged: {self.counters.get('done', 0)} | "
            f"Failed: {self.counters.get('failed', 0)}"
        )

    def get_summary(self) -> Dict:
        """Get summary statistics."""
        return {
            "uptime_seconds": round(time.time() - self.start_time, 1),
            "runs": self.counters.get("runs", 0),
            "persisted": self.counters.get("persisted", 0),
            "unchanged": self.counters.get("done", 0),
            "failed": self.counters.get("failed", 0),
            "rejected": self.counters.get("rejected", 0),
            "extraction_gaps": self.counters.get("extraction_gaps", 0),
            "degraded_reads": self.counters.get("degraded_reads", 0),
            "last_run": self.last_run,
        }
