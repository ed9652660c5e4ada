"""Logging setup shared by the CLI and the API."""
import logging
import sys

from covidstats.parse.redact import redact_string

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class RedactingFilter(logging.Filter):
    """Mask credentials in log messages and their arguments."""

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            record.msg = redact_string(record.msg)
        if isinstance(record.args, tuple):
            record.args = tuple(
                redact_string(arg) if isinstance(arg, str) else arg for arg in record.args
            )
        return True


def setup_logging(level: str | None = None) -> None:
    """Configure the root logger once. Later calls only change the level."""
    if level is None:
        from covidstats.config import config

        level = config.LOG_LEVEL

    root = logging.getLogger()
    root.setLevel(level.upper())

    # Avoid duplicate handlers (e.g., in reload contexts)
    if any(getattr(h, "_covidstats", False) for h in root.handlers):
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT))
    handler.addFilter(RedactingFilter())
    handler._covidstats = True
    root.addHandler(handler)

    # httpx logs every request at INFO, including the URL
    logging.getLogger("httpx").setLevel(logging.WARNING)
