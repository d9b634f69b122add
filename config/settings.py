"""Application settings — all configuration loaded from environment variables.

Usage:
    from config.settings import Settings
    settings = Settings()
    settings.validate()   # raises ServerMisconfigured if ANTHROPIC_API_KEY is missing
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from core.errors import ServerMisconfigured

PROJECT_ROOT = Path(__file__).parent.parent


@dataclass
class Settings:
    """Centralised application configuration.

    All values are read from environment variables at instantiation time
    so that tests can override them by patching ``os.environ`` or by passing
    keyword arguments directly.
    """

    # ── API Keys ────────────────────────────────────────────────────────────
    anthropic_api_key: str = field(
        default_factory=lambda: os.environ.get("ANTHROPIC_API_KEY", "")
    )
    ucdp_access_token: str = field(
        default_factory=lambda: os.environ.get("UCDP_ACCESS_TOKEN", "")
    )

    # ── Storage ─────────────────────────────────────────────────────────────
    db_path: Path = field(
        default_factory=lambda: Path(
            os.environ.get("DB_PATH", PROJECT_ROOT / "data" / "conflict_atlas.db")
        )
    )
    world_boundaries_path: Path = field(
        default_factory=lambda: Path(
            os.environ.get(
                "WORLD_BOUNDARIES_PATH",
                PROJECT_ROOT / "data" / "world_boundaries.geojson",
            )
        )
    )

    # ── Flask ───────────────────────────────────────────────────────────────
    debug: bool = field(
        default_factory=lambda: os.environ.get("FLASK_DEBUG", "0") == "1"
    )
    port: int = field(
        default_factory=lambda: int(os.environ.get("PORT", "5001"))
    )

    # ── Summaries ───────────────────────────────────────────────────────────
    #: Model used to write conflict and country summaries.
    summary_model: str = field(
        default_factory=lambda: os.environ.get("SUMMARY_MODEL", "claude-haiku-4-5")
    )
    summary_ttl_days: int = field(
        default_factory=lambda: int(os.environ.get("SUMMARY_TTL_DAYS", "30"))
    )
    summary_max_tokens: int = field(
        default_factory=lambda: int(os.environ.get("SUMMARY_MAX_TOKENS", "600"))
    )
    summary_temperature: float = field(
        default_factory=lambda: float(os.environ.get("SUMMARY_TEMPERATURE", "1.0"))
    )

    # ── Upstream data APIs ──────────────────────────────────────────────────
    unhcr_base_url: str = field(
        default_factory=lambda: os.environ.get(
            "UNHCR_BASE_URL", "https://api.unhcr.org/population/v1"
        )
    )
    ucdp_base_url: str = field(
        default_factory=lambda: os.environ.get(
            "UCDP_BASE_URL", "https://ucdpapi.pcr.uu.se/api"
        )
    )
    #: 24.1 is kept for stable historical coverage.
    ged_version: str = field(
        default_factory=lambda: os.environ.get("UCDP_GED_VERSION", "24.1")
    )
    http_timeout: float = field(
        default_factory=lambda: float(os.environ.get("HTTP_TIMEOUT", "30"))
    )

    def missing(self) -> list[str]:
        """Return the names of required environment variables that are unset."""
        missing = []
        if not self.anthropic_api_key:
            missing.append("ANTHROPIC_API_KEY")
        return missing

    def validate(self) -> None:
        """Raise ``ServerMisconfigured`` if any required setting is missing."""
        missing = self.missing()
        if missing:
            raise ServerMisconfigured(
                f"Server not configured: missing {', '.join(missing)}"
            )
