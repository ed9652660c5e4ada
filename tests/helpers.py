"""Test helpers: statistics page builder, fake store, recording sink."""
from typing import Optional

import httpx

from covidstats.diagnostics import DiagnosticSink
from covidstats.errors import StoreReadError, StoreWriteError
from covidstats.fetch.client import FetchClient

SOURCE_URL = "https://stats.example.ao/"
COUNTRY = "angola"
API_KEY = "test-secret-key"


def stats_page(
    active="120",
    suspects="5",
    recovered="40",
    deaths="3",
    missing: tuple = (),
) -> str:
    """Render a page shaped like the source: cards 2-5 carry the counters.

    ``missing`` lists 1-based card positions whose counter span is left out.
    """
    values = {2: active, 3: suspects, 4: recovered, 5: deaths}
    cards = ['<div><img src="flag.png"><h3>Angola</h3></div>']
    for position, value in values.items():
        if position in missing:
            cards.append("<div><p>sem dados</p></div>")
        else:
            cards.append(
                f'<div><span class="big-number text-black">{value}</span>'
                f"<p>label {position}</p></div>"
            )
    return (
        "<html><head><title>COVID-19</title></head><body>"
        '<section class="header"><h1>Covid-19</h1></section>'
        '<section class="lastsection container box effect7">'
        "<div><div><div><div>"
        + "\n".join(cards)
        + "</div></div></div></div></section></body></html>"
    )


class RecordingSink(DiagnosticSink):
    """Keeps events in memory instead of logging them."""

    def __init__(self):
        self.events: list[tuple[str, dict]] = []
        self.exceptions: list[tuple[BaseException, dict]] = []

    def capture_event(self, message, context=None, level="warning"):
        self.events.append((message, dict(context or {})))

    def capture_exception(self, exc, context=None):
        self.exceptions.append((exc, dict(context or {})))


class MemoryStore:
    """In-memory sample store with switchable failures."""

    def __init__(self, samples=None):
        self.samples = list(samples or [])
        self.append_calls = 0
        self.latest_calls = 0
        self.fail_latest = False
        self.fail_append = False

    async def append(self, sample):
        self.append_calls += 1
        if self.fail_append:
            raise StoreWriteError("insert rejected")
        self.samples.append(sample)

    async def latest(self, country):
        self.latest_calls += 1
        if self.fail_latest:
            raise StoreReadError("store unavailable")
        candidates = [s for s in self.samples if s.country == country]
        return max(candidates, key=lambda s: s.timestamp) if candidates else None

    async def all(self, country):
        return sorted(
            (s for s in self.samples if s.country == country), key=lambda s: s.timestamp
        )

    async def test_connection(self):
        return True

    async def close(self):
        pass


class PageServer:
    """Mock transport serving one page; records every request."""

    def __init__(self, html: str = "", status: int = 200, error: Optional[type] = None):
        self.html = html
        self.status = status
        self.error = error
        self.requests: list[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error("simulated failure", request=request)
        return httpx.Response(self.status, text=self.html)

    def factory(self):
        return lambda: FetchClient(timeout=1.0, transport=httpx.MockTransport(self.handler))


