"""FastAPI main application."""
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import Depends, FastAPI, Header, Request
from fastapi.responses import JSONResponse

from covidstats.auth.trigger_gate import bearer_token
from covidstats.bootstrap import Components, build_components
from covidstats.config import Config
from covidstats.errors import AuthError, FetchError, RunInProgressError, ScraperError

logger = logging.getLogger(__name__)

UNAUTHORIZED = {"message": "invalid or no api key"}
BACKEND_ERROR = {"message": "something went wrong on backend"}

ERROR_STATUS = {
    RunInProgressError: 409,
    FetchError: 502,
}


def get_components(request: Request) -> Components:
    return request.app.state.components


def error_response(error: ScraperError) -> JSONResponse:
    """Stable category plus a human message; never exception internals."""
    status = next(
        (code for cls, code in ERROR_STATUS.items() if isinstance(error, cls)),
        500,
    )
    return JSONResponse(
        status_code=status,
        content={"error": error.category, "message": error.message},
    )


def create_app(
    config: Optional[Config] = None,
    components: Optional[Components] = None,
    dry_run: bool = False,
) -> FastAPI:
    """Build the application. Raises ``ConfigError`` on invalid configuration."""
    if components is None:
        components = build_components(config or Config(), dry_run=dry_run)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await components.initialize(require_store=False)
        logger.info(
            f"Serving {components.config.COUNTRY} from {components.config.SOURCE_URL} "
            f"(trigger mode: {components.gate.mode})"
        )
        yield
        await components.close()

    app = FastAPI(title="COVID-19 Stats Scraper API", version="0.1.0", lifespan=lifespan)
    app.state.components = components

    @app.get("/health")
    async def health(c: Components = Depends(get_components)):
        """Health check endpoint (no auth required)."""
        return {
            "status": "ok",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "store_connected": await c.store.test_connection(),
            "run_in_progress": c.runner.running,
        }

    async def trigger(
        authorization: Optional[str] = Header(default=None),
        c: Components = Depends(get_components),
    ):
        try:
            outcome = await c.gate.handle(bearer_token(authorization))
        except AuthError:
            return JSONResponse(status_code=401, content=UNAUTHORIZED)
        except ScraperError as e:
            return error_response(e)
        except Exception as e:
            logger.error(f"Unexpected error during scrape: {e}", exc_info=True)
            return JSONResponse(
                status_code=500, content={"error": "internal_error", **BACKEND_ERROR}
            )

        if outcome.mode == "background":
            return JSONResponse(
                status_code=202, content={"message": "accepted", "run_id": outcome.run_id}
            )
        return {"message": "success", "outcome": outcome.outcome, "run_id": outcome.run_id}

    app.add_api_route("/api/scrape", trigger, methods=["POST", "GET"])

    async def list_samples(c: Components = Depends(get_components)):
        try:
            samples = await c.store.all(c.config.COUNTRY)
        except Exception as e:
            logger.error(f"Failed to read samples: {e}")
            return JSONResponse(status_code=500, content=BACKEND_ERROR)
        return {"data": [sample.to_row() for sample in samples]}

    app.add_api_route("/api/samples", list_samples, methods=["GET"])
    app.add_api_route("/api/data", list_samples, methods=["GET"])

    @app.get("/metrics")
    async def get_metrics(
        authorization: Optional[str] = Header(default=None),
        c: Components = Depends(get_components),
    ):
        """Run counters and recent run lines (requires the trigger key)."""
        try:
            c.gate.authorize(bearer_token(authorization))
        except AuthError:
            return JSONResponse(status_code=401, content=UNAUTHORIZED)
        return {
            "summary": c.metrics.get_summary(),
            "runs": await c.state_db.get_stats(),
            "recent": await c.exporter.read_recent(100),
            "recent_runs": await c.state_db.recent_runs(20),
        }

    return app
