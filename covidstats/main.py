"""Main entry point with CLI."""
import argparse
import asyncio
import logging
import sys

from covidstats.bootstrap import build_components
from covidstats.config import Config
from covidstats.errors import ConfigError, ScraperError
from covidstats.logging_conf import setup_logging

logger = logging.getLogger(__name__)


def parse_args(argv=None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="COVID-19 statistics scraper")

    parser.add_argument(
        "--serve",
        action="store_true",
        help="Run the HTTP API instead of a single scrape",
    )
    parser.add_argument(
        "--host",
        default="0.0.0.0",
        help="API bind address (default: 0.0.0.0)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="API port (default: 8000)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Store samples in a local JSONL file instead of Supabase",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Debug logging",
    )

    return parser.parse_args(argv)


async def run_once(config: Config, dry_run: bool) -> int:
    components = build_components(config, dry_run=dry_run)
    try:
        await components.initialize(require_store=not dry_run)
        result = await components.runner.run()
    except ScraperError as e:
        logger.error(f"Scrape failed [{e.category}]: {e}")
        return 1
    finally:
        await components.close()

    logger.info(f"Outcome: {result.outcome}")
    if result.persisted is not None:
        logger.info(f"Persisted: {result.persisted.to_row()}")
    return 0


def serve(config: Config, dry_run: bool, host: str, port: int) -> None:
    import uvicorn

    from covidstats.api.main import create_app

    app = create_app(config, dry_run=dry_run)
    uvicorn.run(app, host=host, port=port, log_config=None)


def main(argv=None) -> None:
    """Main entry point."""
    args = parse_args(argv)
    config = Config()
    setup_logging("DEBUG" if args.verbose else config.LOG_LEVEL)

    if args.dry_run:
        logger.info("DRY-RUN mode: Supabase writes disabled")

    try:
        if args.serve:
            serve(config, args.dry_run, args.host, args.port)
            return
        exit_code = asyncio.run(run_once(config, args.dry_run))
    except ConfigError as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(2)
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        sys.exit(1)
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        sys.exit(1)
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
