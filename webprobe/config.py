"""Centralised settings for the webprobe service.

Each field reads one environment variable and falls back to a default.
A `.env` next to the `webprobe` package is read at import time and never
overrides variables already set in the environment.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

_DOTENV = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_DOTENV, override=False)


def _env_bool(name: str, default: str) -> bool:
    return os.environ.get(name, default).strip().lower() in ("1", "true", "yes", "on")


@dataclass
class Settings:
    # ------------------------------------------------------------------
    # Workspace / storage
    # ------------------------------------------------------------------
    workspace_dir: Path = field(
        default_factory=lambda: Path(
            os.environ.get("WEBPROBE_WORKSPACE", Path.home() / ".webprobe_data")
        )
    )

    @property
    def db_path(self) -> Path:
        """Absolute path to the SQLite database file."""
        return self.workspace_dir / "webprobe.db"

    @property
    def schema_path(self) -> Path:
        """Absolute path to the schema SQL file bundled with the package."""
        return Path(__file__).resolve().parent / "db" / "schema.sql"

    # ------------------------------------------------------------------
    # Worker loop
    # ------------------------------------------------------------------
    poll_interval: float = field(
        default_factory=lambda: float(os.environ.get("POLL_INTERVAL", "10.0"))
    )
    max_concurrent_jobs: int = field(
        default_factory=lambda: int(os.environ.get("MAX_CONCURRENT_JOBS", "32"))
    )
    worker_enabled: bool = field(
        default_factory=lambda: _env_bool("WORKER_ENABLED", "true")
    )

    # ------------------------------------------------------------------
    # Fetching / link probing
    # ------------------------------------------------------------------
    page_timeout: float = field(
        default_factory=lambda: float(os.environ.get("PAGE_TIMEOUT", "30.0"))
    )
    link_timeout: float = field(
        default_factory=lambda: float(os.environ.get("LINK_TIMEOUT", "10.0"))
    )
    # 1 keeps probing sequential; anything larger probes through a pool of
    # that width per page.
    link_check_workers: int = field(
        default_factory=lambda: int(os.environ.get("LINK_CHECK_WORKERS", "1"))
    )
    user_agent: str = field(
        default_factory=lambda: os.environ.get("USER_AGENT", "webprobe/1.0")
    )

    # ------------------------------------------------------------------
    # Server / logging
    # ------------------------------------------------------------------
    port: int = field(
        default_factory=lambda: int(os.environ.get("PORT", "8080"))
    )
    log_level: str = field(
        default_factory=lambda: os.environ.get("LOG_LEVEL", "INFO")
    )

    def ensure_workspace(self) -> None:
        """Create the workspace directory if it does not exist."""
        self.workspace_dir.mkdir(parents=True, exist_ok=True)


# Module-level singleton, import this everywhere:
#   from webprobe.config import settings
settings = Settings()
