"""Exception hierarchy for the scraper.

Every error carries a stable ``category`` that the API puts in error payloads
instead of exception text or tracebacks.
"""


class ScraperError(Exception):
    """Base exception for all scraper errors."""

    category = "internal_error"

    def __init__(self, message: str, details: dict | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self):
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({details_str})"
        return self.message


class ConfigError(ScraperError):
    """Missing or malformed configuration; the process must not start."""

    category = "config_error"


class AuthError(ScraperError):
    """Trigger credential missing or wrong."""

    category = "unauthorized"


class FetchError(ScraperError):
    """Source page could not be fetched (network, timeout or bad status)."""

    category = "fetch_error"


class StoreReadError(ScraperError):
    """Sample store query failed."""

    category = "store_read_error"


class StoreWriteError(ScraperError):
    """Sample store append failed."""

    category = "store_write_error"


class RunInProgressError(ScraperError):
    """Another scrape run holds the run slot."""

    category = "run_in_progress"
