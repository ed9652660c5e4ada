"""Shared fixtures."""
from unittest.mock import Mock

import pytest

from covidstats.jobs.runner import ScrapeRunner
from tests.helpers import COUNTRY, SOURCE_URL, MemoryStore, PageServer, RecordingSink, stats_page


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def page():
    return PageServer(stats_page())


@pytest.fixture
def make_runner(sink, page):
    """Build a runner against the fake page; keyword arguments override."""

    def _make(store, **kwargs):
        kwargs.setdefault("fetcher_factory", page.factory())
        return ScrapeRunner(
            store=store,
            sink=sink,
            source_url=SOURCE_URL,
            country=COUNTRY,
            **kwargs,
        )

    return _make


@pytest.fixture
def mock_supabase_client():
    """Mock Supabase client for database operations."""
    client = Mock()

    table_mock = Mock()
    table_mock.select.return_value = table_mock
    table_mock.insert.return_value = table_mock
    table_mock.eq.return_value = table_mock
    table_mock.order.return_value = table_mock
    table_mock.limit.return_value = table_mock
    table_mock.execute.return_value = Mock(data=[])

    client.table.return_value = table_mock
    return client
