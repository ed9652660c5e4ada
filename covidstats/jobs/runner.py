"""Scrape run: fetch, extract, compare with the last sample, persist on change."""
import asyncio
import logging
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Callable, Optional

from covidstats.diagnostics import DiagnosticSink
from covidstats.errors import StoreReadError, StoreWriteError
from covidstats.fetch.client import FetchClient
from covidstats.jobs.metrics import Metrics
from covidstats.jobs.metrics_exporter import MetricsExporter
from covidstats.jobs.run_control import RunGuard
from covidstats.parse.change import changed, changed_fields
from covidstats.parse.models import PartialSample, Sample
from covidstats.parse.stats_extractor import DEFAULT_LAYOUT, StatLayout, extract_stats
from covidstats.store.state import StateDB

logger = logging.getLogger(__name__)


class RunState(str, Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    EXTRACTING = "extracting"
    COMPARING = "comparing"
    PERSISTING = "persisting"
    # Terminal
    DONE = "done"
    PERSISTED = "persisted"
    FAILED = "failed"


class PreviousStatus(str, Enum):
    FOUND = "found"
    EMPTY = "empty"
    # Store query failed; treated as "no previous sample"
    DEGRADED = "degraded"


@dataclass
class RunClaim:
    """Proof that the caller holds the single run slot."""

    run_id: str


@dataclass
class RunResult:
    run_id: str
    state: RunState = RunState.IDLE
    previous_status: Optional[PreviousStatus] = None
    extracted: Optional[PartialSample] = None
    persisted: Optional[Sample] = None
    error: Optional[BaseException] = None
    failed_stage: Optional[RunState] = None

    @property
    def outcome(self) -> str:
        return {
            RunState.PERSISTED: "persisted",
            RunState.DONE: "unchanged",
            RunState.FAILED: "failed",
        }.get(self.state, self.state.value)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ScrapeRunner:
    """Runs one scrape at a time against one source page and one country."""

    def __init__(
        self,
        store,
        sink: DiagnosticSink,
        source_url: str,
        country: str,
        guard: Optional[RunGuard] = None,
        layout: StatLayout = DEFAULT_LAYOUT,
        timeout: float = 20.0,
        fetcher_factory: Optional[Callable[[], FetchClient]] = None,
        state_db: Optional[StateDB] = None,
        metrics: Optional[Metrics] = None,
        exporter: Optional[MetricsExporter] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.sink = sink
        self.source_url = source_url
        self.country = country
        self.guard = guard or RunGuard()
        self.layout = layout
        self.fetcher_factory = fetcher_factory or (lambda: FetchClient(timeout=timeout))
        self.state_db = state_db
        self.metrics = metrics or Metrics()
        self.exporter = exporter
        self.clock = clock

    @property
    def running(self) -> bool:
        return self.guard.running

    async def claim(self) -> RunClaim:
        """Reserve the run slot. Raises ``RunInProgressError`` if it is taken."""
        run_id = str(uuid.uuid4())
        try:
            await self.guard.acquire(run_id)
        except Exception:
            self.metrics.increment("rejected")
            raise
        return RunClaim(run_id=run_id)

    async def run(self) -> RunResult:
        """Claim the slot and execute a run."""
        return await self.execute(await self.claim())

    async def execute(self, claim: RunClaim) -> RunResult:
        """Execute a claimed run. Fetch and write failures propagate."""
        result = RunResult(run_id=claim.run_id)
        started = time.time()
        await self._record_started(claim.run_id)
        logger.info(f"Run {claim.run_id} started for {self.country} ({self.source_url})")

        try:
            result.state = RunState.FETCHING
            async with self.fetcher_factory() as fetcher:
                html_content = await fetcher.fetch(self.source_url)

            result.state = RunState.EXTRACTING
            loop = asyncio.get_event_loop()
            result.extracted = await loop.run_in_executor(
                None, extract_stats, html_content, self.sink, self.layout
            )

            result.state = RunState.COMPARING
            previous, result.previous_status = await self._load_previous(claim.run_id)
            if not changed(previous, result.extracted):
                logger.info(f"Run {claim.run_id}: sample unchanged, nothing to persist")
                result.state = RunState.DONE
                return result
            if previous is not None:
                logger.info(
                    f"Run {claim.run_id}: changed fields "
                    f"{changed_fields(previous, result.extracted)}"
                )

            result.state = RunState.PERSISTING
            sample = Sample.stamp(result.extracted, self._next_timestamp(previous), self.country)
            try:
                await self.store.append(sample)
            except StoreWriteError as e:
                # Keep the values so the lost sample can be recovered from the sink
                e.details.setdefault("sample", sample.to_row())
                raise
            result.persisted = sample
            result.state = RunState.PERSISTED
            return result

        except Exception as e:
            result.error = e
            result.failed_stage = result.state
            result.state = RunState.FAILED
            logger.error(f"Run {claim.run_id} failed while {result.failed_stage.value}: {e}")
            await self.sink.report_exception(
                e,
                {
                    **getattr(e, "details", {}),
                    "run_id": claim.run_id,
                    "stage": result.failed_stage.value,
                    "country": self.country,
                },
            )
            raise
        finally:
            await self._finish(claim, result, time.time() - started)

    async def _load_previous(self, run_id: str) -> tuple[Optional[Sample], PreviousStatus]:
        try:
            previous = await self.store.latest(self.country)
        except StoreReadError as e:
            self.metrics.increment("degraded_reads")
            await self.sink.report_event(
                "latest sample unavailable, store degraded: persisting unconditionally",
                {"run_id": run_id, "country": self.country, "error": str(e)},
            )
            return None, PreviousStatus.DEGRADED

        if previous is None:
            logger.info(f"No previous sample for {self.country}: first observation")
            return None, PreviousStatus.EMPTY
        return previous, PreviousStatus.FOUND

    def _next_timestamp(self, previous: Optional[Sample]) -> datetime:
        now = self.clock()
        # Timestamps must strictly increase even if the clock does not
        if previous is not None and now <= previous.timestamp:
            now = previous.timestamp + timedelta(microseconds=1)
        return now

    async def _record_started(self, run_id: str) -> None:
        if self.state_db is None:
            return
        try:
            await self.state_db.record_run_started(run_id)
        except Exception as e:
            logger.warning(f"Could not record start of run {run_id}: {e}")

    async def _finish(self, claim: RunClaim, result: RunResult, duration: float) -> None:
        gaps = len(result.extracted.missing_fields()) if result.extracted else 0
        error = str(result.error) if result.error else None
        self.metrics.record_run(claim.run_id, result.state.value, duration, gaps)

        try:
            if self.state_db is not None:
                await self.state_db.record_run_finished(
                    claim.run_id,
                    result.state.value,
                    result.previous_status.value if result.previous_status else None,
                    error,
                )
            if self.exporter is not None:
                await self.exporter.export_run(
                    run_id=claim.run_id,
                    state=result.state.value,
                    previous_status=result.previous_status.value if result.previous_status else None,
                    duration=duration,
                    extraction_gaps=gaps,
                    error=error,
                )
        except Exception as e:
            logger.warning(f"Could not record end of run {claim.run_id}: {e}")

        try:
            await self.guard.release(claim.run_id)
        except Exception as e:
            # The lease expires on its own
            logger.warning(f"Could not release run lease for {claim.run_id}: {e}")
        logger.info(f"Run {claim.run_id} finished: {result.outcome} in {duration:.2f}s")
