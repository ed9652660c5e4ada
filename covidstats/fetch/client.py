"""HTTP client for the statistics page."""
import logging
from typing import Optional

import httpx

from covidstats.errors import FetchError

logger = logging.getLogger(__name__)

USER_AGENT = "covidstats-scraper/0.1 (+https://github.com/covidstats/covidstats-scraper)"


class FetchClient:
    """Fetches page HTML with a bounded timeout.

    There is no retry here: a failed fetch fails the run and the caller's
    scheduler triggers again later.
    """

    def __init__(self, timeout: float = 20.0, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.timeout = timeout
        self.client = httpx.AsyncClient(
            timeout=timeout,
            follow_redirects=True,
            headers={"User-Agent": USER_AGENT},
            transport=transport,
        )

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.client.aclose()

    async def fetch(self, url: str) -> str:
        """Fetch a URL and return its body, or raise :class:`FetchError`."""
        try:
            response = await self.client.get(url)
        except httpx.TimeoutException as e:
            logger.warning(f"Timeout after {self.timeout}s for {url}: {e!r}")
            raise FetchError("timed out fetching source page", {"url": url}) from e
        except httpx.HTTPError as e:
            logger.warning(f"Network error for {url}: {e!r}")
            raise FetchError("network error fetching source page", {"url": url}) from e

        if not response.is_success:
            logger.warning(f"Unexpected status {response.status_code} for {url}")
            raise FetchError(
                "source page returned an error status",
                {"url": url, "status_code": response.status_code},
            )

        logger.debug(f"Fetched {url} ({len(response.content)} bytes)")
        return response.text
