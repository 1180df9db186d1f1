"""Runtime configuration read from the environment.

Values come from environment variables (optionally loaded from a ``.env``
file with python-dotenv) and are gathered into one pydantic model so the
rest of the code never calls ``os.getenv`` directly.
"""

import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Literal

from dotenv import load_dotenv
from pydantic import BaseModel

DEFAULT_DATA_DIR = Path(__file__).resolve().parent.parent / "data"


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str) -> int | None:
    value = os.getenv(name)
    return int(value) if value else None


class Settings(BaseModel):
    """Application settings."""

    # storage
    storage_backend: Literal["sqlite", "file", "memory"] = "sqlite"
    db_path: Path = DEFAULT_DATA_DIR / "convograph.db"
    projects_dir: Path = DEFAULT_DATA_DIR / "projects"

    # model defaults, overridable per node
    default_provider: str = "openai"
    default_model: str = "gpt-4o"
    temperature: float = 0.7
    max_tokens: int | None = None

    # runner behaviour when an ancestor is in the error state
    block_on_upstream_errors: bool = False

    # provider credentials
    openai_api_key: str | None = None
    anthropic_api_key: str | None = None

    # server
    cors_origins: list[str] = ["*"]
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from environment variables, falling back to defaults."""
        defaults = cls()
        return cls(
            storage_backend=os.getenv("CONVOGRAPH_STORAGE", defaults.storage_backend),
            db_path=Path(os.getenv("CONVOGRAPH_DB_PATH", str(defaults.db_path))),
            projects_dir=Path(os.getenv("CONVOGRAPH_PROJECTS_DIR", str(defaults.projects_dir))),
            default_provider=os.getenv("CONVOGRAPH_DEFAULT_PROVIDER", defaults.default_provider),
            default_model=os.getenv("CONVOGRAPH_DEFAULT_MODEL", defaults.default_model),
            temperature=float(os.getenv("CONVOGRAPH_TEMPERATURE", defaults.temperature)),
            max_tokens=_env_int("CONVOGRAPH_MAX_TOKENS"),
            block_on_upstream_errors=_env_bool("CONVOGRAPH_BLOCK_ON_UPSTREAM_ERRORS", False),
            openai_api_key=os.getenv("OPENAI_API_KEY"),
            anthropic_api_key=os.getenv("ANTHROPIC_API_KEY"),
            # comma-separated values for multiple origins, or "*" for all (development only)
            cors_origins=os.getenv("CORS_ORIGINS", "*").split(","),
            log_level=os.getenv("CONVOGRAPH_LOG_LEVEL", defaults.log_level).upper(),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load ``.env`` once and return the process-wide settings."""
    load_dotenv()
    return Settings.from_env()


def configure_logging(settings: Settings | None = None) -> None:
    """Set up root logging at the configured level."""
    settings = settings or get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
