"""Run control: at most one scrape run at a time."""
import logging
from typing import Optional

from covidstats.errors import RunInProgressError
from covidstats.store.state import StateDB

logger = logging.getLogger(__name__)

LEASE_NAME = "scrape"


class RunGuard:
    """Single-run slot.

    The in-process flag is set before the first ``await`` so two triggers
    handled by the same event loop can never both pass. The optional SQLite
    lease extends the guarantee to other processes on the host; it expires
    after ``lease_seconds`` so a crashed holder cannot block runs forever.
    """

    def __init__(self, state_db: Optional[StateDB] = None, lease_seconds: float = 300):
        self.state_db = state_db
        self.lease_seconds = lease_seconds
        self._active_run_id: Optional[str] = None

    @property
    def running(self) -> bool:
        return self._active_run_id is not None

    @property
    def active_run_id(self) -> Optional[str]:
        return self._active_run_id

    async def acquire(self, run_id: str) -> None:
        """Take the slot for ``run_id`` or raise :class:`RunInProgressError`."""
        if self._active_run_id is not None:
            raise RunInProgressError(
                "a scrape run is already in progress", {"run_id": self._active_run_id}
            )
        self._active_run_id = run_id

        if self.state_db is None:
            return
        try:
            acquired = await self.state_db.acquire_lease(LEASE_NAME, run_id, self.lease_seconds)
        except Exception:
            self._active_run_id = None
            raise
        if not acquired:
            self._active_run_id = None
            holder = await self.state_db.lease_holder(LEASE_NAME)
            raise RunInProgressError(
                "a scrape run is already in progress in another process", {"run_id": holder}
            )

    async def release(self, run_id: str) -> None:
        if self._active_run_id != run_id:
            logger.warning(f"Run {run_id} tried to release a slot it does not hold")
            return
        try:
            if self.state_db is not None:
                await self.state_db.release_lease(LEASE_NAME, run_id)
        finally:
            self._active_run_id = None
