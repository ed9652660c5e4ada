"""Configuration management from environment variables."""
import os
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv

from covidstats.errors import ConfigError

# Load .env file
load_dotenv()

# Project root
PROJECT_ROOT = Path(__file__).parent.parent
DEFAULT_DATA_DIR = PROJECT_ROOT / "data"

MIN_API_KEY_LENGTH = 9
TRIGGER_MODES = ("sync", "background")


class Config:
    """Application configuration.

    Values are read from ``env`` (defaults to ``os.environ``) when the
    instance is built. Malformed values are collected and reported by
    :meth:`validate` so the process fails once with every problem listed.
    """

    def __init__(self, env: Optional[Mapping[str, str]] = None):
        env = os.environ if env is None else env
        self._errors: list[str] = []

        # Trigger
        self.SCRAPER_API_KEY: str | None = env.get("SCRAPER_API_KEY")
        self.TRIGGER_MODE: str = env.get("TRIGGER_MODE", "sync").strip().lower()

        # Source
        self.SOURCE_URL: str = env.get("SOURCE_URL", "https://covid19.gov.ao/")
        self.COUNTRY: str = env.get("COUNTRY", "angola")
        self.STAT_CONTAINER_SELECTOR: str | None = env.get("STAT_CONTAINER_SELECTOR") or None
        self.TIMEOUT: float = self._number(env, "TIMEOUT", "20", float)

        # Supabase
        self.SUPABASE_URL: str | None = env.get("SUPABASE_URL")
        self.SUPABASE_SERVICE_ROLE: str | None = env.get("SUPABASE_SERVICE_ROLE")
        self.SUPABASE_TABLE: str = env.get("SUPABASE_TABLE", "samples")
        self.SUPABASE_EVENTS_TABLE: str = env.get("SUPABASE_EVENTS_TABLE", "scrape_events")

        # Local state
        self.DATA_DIR: Path = Path(env.get("DATA_DIR", str(DEFAULT_DATA_DIR)))
        self.RUN_LEASE_SECONDS: int = self._number(env, "RUN_LEASE_SECONDS", "300", int)

        # Logging
        self.LOG_LEVEL: str = env.get("LOG_LEVEL", "INFO")

    def _number(self, env: Mapping[str, str], key: str, default: str, cast):
        raw = env.get(key, default)
        try:
            value = cast(raw)
        except (TypeError, ValueError):
            self._errors.append(f"{key} must be a number, got {raw!r}")
            return cast(default)
        if value <= 0:
            self._errors.append(f"{key} must be positive, got {raw!r}")
            return cast(default)
        return value

    @property
    def STATE_DB(self) -> Path:
        return self.DATA_DIR / "state.db"

    @property
    def SAMPLES_FILE(self) -> Path:
        return self.DATA_DIR / "samples.jsonl"

    @property
    def METRICS_FILE(self) -> Path:
        return self.DATA_DIR / "metrics.jsonl"

    def ensure_data_dir(self) -> None:
        self.DATA_DIR.mkdir(parents=True, exist_ok=True)

    def validate(self, require_supabase: bool = True) -> None:
        """Validate required configuration."""
        errors = list(self._errors)
        if not self.SCRAPER_API_KEY or len(self.SCRAPER_API_KEY) < MIN_API_KEY_LENGTH:
            errors.append(
                f"SCRAPER_API_KEY is required and must be at least {MIN_API_KEY_LENGTH} characters"
            )
        if self.TRIGGER_MODE not in TRIGGER_MODES:
            errors.append(f"TRIGGER_MODE must be one of {', '.join(TRIGGER_MODES)}")
        if not self.SOURCE_URL.startswith(("http://", "https://")):
            errors.append("SOURCE_URL must be an http(s) URL")
        if not self.COUNTRY.strip():
            errors.append("COUNTRY must not be empty")
        if require_supabase:
            if not self.SUPABASE_URL:
                errors.append("SUPABASE_URL is required")
            if not self.SUPABASE_SERVICE_ROLE:
                errors.append("SUPABASE_SERVICE_ROLE is required")
        if errors:
            raise ConfigError(f"Configuration errors: {', '.join(errors)}")


config = Config()
