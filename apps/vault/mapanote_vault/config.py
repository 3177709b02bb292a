from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class Settings:
    vault_dir: Path
    log_level: str
    search_snippet_radius: int
    search_max_results: int
    recent_limit: int


def _env_int(key: str, default: int) -> int:
    raw = os.environ.get(key)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def load_settings() -> Settings:
    vault_dir = Path(os.environ.get("VAULT_DIR", "./vault")).expanduser().resolve()
    log_level = os.environ.get("LOG_LEVEL", "INFO").upper()
    search_snippet_radius = max(0, _env_int("SEARCH_SNIPPET_RADIUS", 60))
    search_max_results = max(1, _env_int("SEARCH_MAX_RESULTS", 50))
    recent_limit = max(1, _env_int("RECENT_NOTES_LIMIT", 20))
    return Settings(
        vault_dir=vault_dir,
        log_level=log_level,
        search_snippet_radius=search_snippet_radius,
        search_max_results=search_max_results,
        recent_limit=recent_limit,
    )


def setup_logging(settings: Settings) -> logging.Logger:
    logging.basicConfig(
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        level=getattr(logging, settings.log_level, logging.INFO),
    )
    return logging.getLogger("mapanote")
