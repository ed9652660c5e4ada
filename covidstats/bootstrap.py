"""Build and tear down the objects a process needs.

Nothing here is a module-level singleton: the CLI and the API each build one
:class:`Components` at startup, call :meth:`Components.initialize`, and call
:meth:`Components.close` on the way out.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from covidstats.auth.trigger_gate import TriggerGate
from covidstats.config import Config
from covidstats.diagnostics import DiagnosticSink, SupabaseDiagnosticSink
from covidstats.jobs.metrics import Metrics
from covidstats.jobs.metrics_exporter import MetricsExporter
from covidstats.jobs.run_control import RunGuard
from covidstats.jobs.runner import ScrapeRunner
from covidstats.parse.stats_extractor import DEFAULT_LAYOUT
from covidstats.store.local_store import LocalSampleStore
from covidstats.store.sample_store import SupabaseSampleStore, create_supabase_client
from covidstats.store.state import StateDB

logger = logging.getLogger(__name__)


@dataclass
class Components:
    config: Config
    store: object
    sink: DiagnosticSink
    state_db: StateDB
    metrics: Metrics
    exporter: MetricsExporter
    runner: ScrapeRunner
    gate: TriggerGate

    async def initialize(self, require_store: bool = True) -> None:
        """Create local state and check the store is reachable."""
        await self.state_db.initialize()
        if not await self.store.test_connection():
            if require_store:
                raise RuntimeError("Sample store connection failed")
            logger.warning("Sample store connection test failed, but continuing...")

    async def close(self, drain_timeout: Optional[float] = 30.0) -> None:
        await self.gate.drain(timeout=drain_timeout)
        await self.store.close()


def build_components(config: Config, dry_run: bool = False, store=None, sink=None) -> Components:
    """Validate ``config`` and wire everything together.

    ``store`` and ``sink`` override the configured backends (used by tests).
    Raises ``ConfigError`` when configuration is invalid.
    """
    config.validate(require_supabase=not dry_run and store is None)
    config.ensure_data_dir()

    client = None
    if not dry_run and (store is None or sink is None) and config.SUPABASE_URL and config.SUPABASE_SERVICE_ROLE:
        client = create_supabase_client(config.SUPABASE_URL, config.SUPABASE_SERVICE_ROLE)

    if store is None:
        if dry_run:
            store = LocalSampleStore(config.SAMPLES_FILE)
        else:
            store = SupabaseSampleStore(client, table=config.SUPABASE_TABLE)
    if sink is None:
        if client is not None:
            sink = SupabaseDiagnosticSink(
                client, table=config.SUPABASE_EVENTS_TABLE, country=config.COUNTRY
            )
        else:
            sink = DiagnosticSink()

    state_db = StateDB(config.STATE_DB)
    metrics = Metrics()
    exporter = MetricsExporter(config.METRICS_FILE)
    runner = ScrapeRunner(
        store=store,
        sink=sink,
        source_url=config.SOURCE_URL,
        country=config.COUNTRY,
        guard=RunGuard(state_db, lease_seconds=config.RUN_LEASE_SECONDS),
        layout=DEFAULT_LAYOUT.with_container(config.STAT_CONTAINER_SELECTOR),
        timeout=config.TIMEOUT,
        state_db=state_db,
        metrics=metrics,
        exporter=exporter,
    )
    gate = TriggerGate(config.SCRAPER_API_KEY, runner, sink, mode=config.TRIGGER_MODE)

    return Components(
        config=config,
        store=store,
        sink=sink,
        state_db=state_db,
        metrics=metrics,
        exporter=exporter,
        runner=runner,
        gate=gate,
    )
