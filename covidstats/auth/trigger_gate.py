"""Shared-secret gate in front of the scrape runner.

Two response disciplines, picked once per deployment with ``TRIGGER_MODE``:

``sync``
    The caller waits for the run and learns its outcome, including failures.
``background``
    The run slot is claimed, the run is launched as an independent task and
    the caller only learns that it was accepted. Failures of that task are
    reported to the diagnostic sink (by the runner) and nowhere else.
"""
import asyncio
import logging
import secrets
from dataclasses import dataclass
from typing import Optional

from covidstats.config import MIN_API_KEY_LENGTH, TRIGGER_MODES
from covidstats.diagnostics import DiagnosticSink
from covidstats.errors import AuthError, ConfigError
from covidstats.jobs.runner import RunClaim, RunResult, ScrapeRunner

logger = logging.getLogger(__name__)


@dataclass
class TriggerResult:
    accepted: bool
    mode: str
    run_id: Optional[str] = None
    # Only known in sync mode
    outcome: Optional[str] = None
    result: Optional[RunResult] = None


def bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Token from an ``Authorization: Bearer <token>`` header value."""
    if not authorization:
        return None
    scheme, _, token = authorization.strip().partition(" ")
    if scheme.lower() != "bearer":
        return None
    return token.strip() or None


class TriggerGate:
    def __init__(self, secret: str, runner: ScrapeRunner, sink: DiagnosticSink, mode: str = "sync"):
        if not secret or len(secret) < MIN_API_KEY_LENGTH:
            raise ConfigError(f"trigger secret must be at least {MIN_API_KEY_LENGTH} characters")
        if mode not in TRIGGER_MODES:
            raise ConfigError(f"unknown trigger mode {mode!r}")
        self._secret = secret.encode()
        self.runner = runner
        self.sink = sink
        self.mode = mode
        self._tasks: set[asyncio.Task] = set()

    def authorize(self, provided_token: Optional[str]) -> None:
        """Raise :class:`AuthError` unless the token equals the secret exactly."""
        if provided_token is None or not secrets.compare_digest(
            provided_token.encode(), self._secret
        ):
            raise AuthError("invalid or no api key")

    async def handle(self, provided_token: Optional[str]) -> TriggerResult:
        """Authenticate and start a run.

        Raises ``AuthError`` before anything else happens, and
        ``RunInProgressError`` when another run holds the slot. In sync mode
        run failures (``FetchError``, ``StoreWriteError``) propagate.
        """
        self.authorize(provided_token)

        if self.mode == "background":
            claim = await self.runner.claim()
            task = asyncio.create_task(
                self._run_in_background(claim), name=f"scrape-{claim.run_id}"
            )
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
            logger.info(f"Run {claim.run_id} accepted, running in background")
            return TriggerResult(accepted=True, mode=self.mode, run_id=claim.run_id)

        result = await self.runner.run()
        return TriggerResult(
            accepted=True,
            mode=self.mode,
            run_id=result.run_id,
            outcome=result.outcome,
            result=result,
        )

    async def _run_in_background(self, claim: RunClaim) -> None:
        try:
            await self.runner.execute(claim)
        except Exception as e:
            # Already reported to the sink by the runner
            logger.info(f"Background run {claim.run_id} ended with {type(e).__name__}")

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self, timeout: Optional[float] = None) -> None:
        """Wait for background runs to finish (called at shutdown)."""
        if not self._tasks:
            return
        logger.info(f"Waiting for {len(self._tasks)} background run(s)")
        _, pending = await asyncio.wait(set(self._tasks), timeout=timeout)

        for task in pending:
            run_id = task.get_name().removeprefix("scrape-")
            logger.error(f"Background run {run_id} still running at shutdown, cancelling")
            self.sink.capture_event(
                "background run cancelled at shutdown", {"run_id": run_id}, level="error"
            )
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
