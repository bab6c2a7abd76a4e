"""Centralised settings for the webaudit engine.

All runtime configuration is resolved here in one place.  Values can be
overridden via environment variables or a `.env` file in the project root
(loaded automatically when this module is imported).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

# Load .env from the project root (two levels up from this file)
_env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_env_path, override=False)


@dataclass
class Settings:
    # ------------------------------------------------------------------
    # Workspace / storage
    # ------------------------------------------------------------------
    workspace_dir: Path = field(
        default_factory=lambda: Path(
            os.environ.get("WEBAUDIT_WORKSPACE", Path.home() / ".webaudit_data")
        )
    )

    @property
    def db_path(self) -> Path:
        """Absolute path to the SQLite database file."""
        return self.workspace_dir / "audits.db"

    @property
    def schema_path(self) -> Path:
        """Absolute path to the schema SQL file bundled with the package."""
        return Path(__file__).resolve().parent / "db" / "schema.sql"

    # ------------------------------------------------------------------
    # Outbound HTTP
    # ------------------------------------------------------------------
    user_agent: str = field(
        default_factory=lambda: os.environ.get("WEBAUDIT_USER_AGENT", "WP-Audit-Chat")
    )
    request_timeout: float = field(
        default_factory=lambda: float(os.environ.get("REQUEST_TIMEOUT", "12.0"))
    )
    crawl_timeout: float = field(
        default_factory=lambda: float(os.environ.get("CRAWL_TIMEOUT", "10.0"))
    )
    link_timeout: float = field(
        default_factory=lambda: float(os.environ.get("LINK_TIMEOUT", "8.0"))
    )
    probe_timeout: float = field(
        default_factory=lambda: float(os.environ.get("PROBE_TIMEOUT", "8.0"))
    )
    pagespeed_timeout: float = field(
        default_factory=lambda: float(os.environ.get("PAGESPEED_TIMEOUT", "15.0"))
    )
    tls_timeout: float = field(
        default_factory=lambda: float(os.environ.get("TLS_TIMEOUT", "10.0"))
    )
    request_retries: int = field(
        default_factory=lambda: int(os.environ.get("REQUEST_RETRIES", "1"))
    )

    # ------------------------------------------------------------------
    # Link validation / crawl budget
    # ------------------------------------------------------------------
    link_concurrency: int = field(
        default_factory=lambda: int(os.environ.get("LINK_CONCURRENCY", "5"))
    )
    crawl_max_depth: int = field(
        default_factory=lambda: int(os.environ.get("CRAWL_MAX_DEPTH", "1"))
    )
    crawl_max_pages: int = field(
        default_factory=lambda: int(os.environ.get("CRAWL_MAX_PAGES", "5"))
    )
    crawl_image_samples: int = field(
        default_factory=lambda: int(os.environ.get("CRAWL_IMAGE_SAMPLES", "5"))
    )

    # ------------------------------------------------------------------
    # Streaming
    # ------------------------------------------------------------------
    keepalive_interval: float = field(
        default_factory=lambda: float(os.environ.get("KEEPALIVE_INTERVAL", "15.0"))
    )

    # ------------------------------------------------------------------
    # Third-party API credentials (checks degrade to defaults when unset)
    # ------------------------------------------------------------------
    pagespeed_api_key: str = field(
        default_factory=lambda: os.environ.get("PAGESPEED_API_KEY", "")
    )
    wpscan_api_token: str = field(
        default_factory=lambda: os.environ.get(
            "WPSCAN_API_TOKEN", os.environ.get("WPVULNDB_API_TOKEN", "")
        )
    )
    safe_browsing_api_key: str = field(
        default_factory=lambda: os.environ.get("SAFE_BROWSING_API_KEY", "")
    )

    # ------------------------------------------------------------------
    # Logging
    # ------------------------------------------------------------------
    log_level: str = field(
        default_factory=lambda: os.environ.get("LOG_LEVEL", "INFO")
    )

    def ensure_workspace(self) -> None:
        """Create the workspace directory if it does not exist."""
        self.workspace_dir.mkdir(parents=True, exist_ok=True)


# Module-level singleton; import this everywhere:
#   from webaudit.config import settings
settings = Settings()
