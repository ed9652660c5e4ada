"""Diagnostic sink: structured, non-fatal reports about recoverable anomalies."""
import asyncio
import logging
import traceback
from datetime import datetime, timezone
from typing import Any, Optional

from covidstats.parse.redact import redact_json, redact_string

logger = logging.getLogger(__name__)


class DiagnosticSink:
    """Reports events and exceptions to the log.

    ``capture_*`` are synchronous so they can be called from parsing code
    running in a worker thread. Coroutines use the ``report_*`` wrappers.
    """

    def capture_event(
        self, message: str, context: Optional[dict[str, Any]] = None, level: str = "warning"
    ) -> None:
        context = redact_json(context or {})
        logger.log(logging.getLevelName(level.upper()), "%s | %s", message, context)
        self._store(message, level, context)

    def capture_exception(self, exc: BaseException, context: Optional[dict[str, Any]] = None) -> None:
        context = redact_json(dict(context or {}))
        context.setdefault("error_type", type(exc).__name__)
        context.setdefault("category", getattr(exc, "category", "internal_error"))
        logger.error("%s | %s", exc, context)
        context["traceback"] = redact_string("".join(
            traceback.format_exception(type(exc), exc, exc.__traceback__)
        )[-4000:])
        self._store(str(exc), "error", context)

    def _store(self, message: str, level: str, context: dict[str, Any]) -> None:
        """Forward to a durable backend. The base sink only logs."""

    async def report_event(
        self, message: str, context: Optional[dict[str, Any]] = None, level: str = "warning"
    ) -> None:
        loop = asyncio.get_event_loop()
        await loop.run_in_executor(None, self.capture_event, message, context, level)

    async def report_exception(
        self, exc: BaseException, context: Optional[dict[str, Any]] = None
    ) -> None:
        loop = asyncio.get_event_loop()
        await loop.run_in_executor(None, self.capture_exception, exc, context)


class SupabaseDiagnosticSink(DiagnosticSink):
    """Also inserts every event into a Supabase table.

    Insert failures are logged and swallowed: reporting must never break a run.
    """

    def __init__(self, client, table: str, country: str):
        self.client = client
        self.table = table
        self.country = country

    def _store(self, message: str, level: str, context: dict[str, Any]) -> None:
        row = {
            "message": message[:1000],
            "level": level,
            "country": self.country,
            "context": context,
            "occurred_at": datetime.now(timezone.utc).isoformat(),
        }
        try:
            self.client.table(self.table).insert(row).execute()
        except Exception as e:
            logger.warning(f"Failed to store diagnostic event: {e}")
