"""Tests for the run lease and run history."""
import asyncio

import pytest

from covidstats.errors import RunInProgressError
from covidstats.jobs.run_control import RunGuard
from covidstats.store.state import StateDB


@pytest.fixture
async def state_db(tmp_path):
    db = StateDB(tmp_path / "state.db")
    await db.initialize()
    return db


@pytest.mark.asyncio
async def test_in_process_guard():
    guard = RunGuard()
    await guard.acquire("run-1")

    assert guard.running
    with pytest.raises(RunInProgressError):
        await guard.acquire("run-2")

    await guard.release("run-1")
    await guard.acquire("run-2")
    assert guard.active_run_id == "run-2"


@pytest.mark.asyncio
async def test_release_by_other_run_is_ignored():
    guard = RunGuard()
    await guard.acquire("run-1")
    await guard.release("run-2")
    assert guard.active_run_id == "run-1"


@pytest.mark.asyncio
async def test_lease_shared_between_processes(state_db):
    """Two guards on one database behave like two processes on one host."""
    first = RunGuard(state_db)
    second = RunGuard(StateDB(state_db.db_path))

    await first.acquire("run-1")
    with pytest.raises(RunInProgressError) as excinfo:
        await second.acquire("run-2")
    assert excinfo.value.details["run_id"] == "run-1"
    assert not second.running

    await first.release("run-1")
    await second.acquire("run-2")
    assert await state_db.lease_holder("scrape") == "run-2"


@pytest.mark.asyncio
async def test_expired_lease_is_taken_over(state_db):
    crashed = RunGuard(state_db, lease_seconds=0.05)
    await crashed.acquire("run-1")
    await asyncio.sleep(0.1)

    other = RunGuard(StateDB(state_db.db_path))
    await other.acquire("run-2")
    assert await state_db.lease_holder("scrape") == "run-2"


@pytest.mark.asyncio
async def test_run_history(state_db):
    await state_db.record_run_started("a")
    await state_db.record_run_finished("a", "persisted", "empty")
    await state_db.record_run_started("b")
    await state_db.record_run_finished("b", "failed", None, "timed out fetching source page")

    assert await state_db.get_stats() == {"persisted": 1, "failed": 1}
    runs = await state_db.recent_runs()
    assert {run["run_id"] for run in runs} == {"a", "b"}
    failed = next(run for run in runs if run["run_id"] == "b")
    assert failed["error"] == "timed out fetching source page"
    assert failed["finished_at"] is not None
