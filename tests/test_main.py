"""Tests for the command line entry point."""
import pytest

from covidstats import main
from covidstats.bootstrap import build_components
from covidstats.config import Config
from tests.helpers import API_KEY, MemoryStore, RecordingSink


class UnreachableStore(MemoryStore):
    def __init__(self):
        super().__init__()
        self.closed = False

    async def test_connection(self):
        return False

    async def close(self):
        self.closed = True


@pytest.mark.asyncio
async def test_run_once_closes_components_when_store_unreachable(monkeypatch, tmp_path):
    store = UnreachableStore()
    config = Config(env={"SCRAPER_API_KEY": API_KEY, "DATA_DIR": str(tmp_path)})
    monkeypatch.setattr(
        main,
        "build_components",
        lambda config, dry_run=False: build_components(config, store=store, sink=RecordingSink()),
    )

    with pytest.raises(RuntimeError):
        await main.run_once(config, dry_run=False)

    assert store.closed
    assert store.latest_calls == 0


def test_parse_args():
    args = main.parse_args(["--serve", "--port", "9000", "--dry-run"])
    assert args.serve and args.dry_run
    assert args.port == 9000
    assert args.host == "0.0.0.0"
