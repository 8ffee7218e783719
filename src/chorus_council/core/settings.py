"""Application settings and configuration.

This module defines all configuration options for the Chorus Council engine.
Settings are loaded from environment variables with sensible defaults.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Settings can be overridden via environment variables or .env files. The
    reconciliation components read their defaults from here but every one of
    them also accepts explicit constructor overrides.
    """

    # Application metadata
    app_name: str = Field(default="Chorus Council", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: str = Field(default="INFO", alias="CHORUS_COUNCIL_LOG_LEVEL")

    # Kick consensus: fraction of current members that must agree
    kick_quorum_ratio: float = Field(default=0.51, alias="CHORUS_COUNCIL_KICK_QUORUM_RATIO")

    # Orphan events (votes before their proposal) are held this long
    pending_vote_ttl_seconds: float = Field(
        default=300.0,
        alias="CHORUS_COUNCIL_PENDING_VOTE_TTL_SECONDS",
    )
    pending_vote_max_per_target: int = Field(
        default=256,
        alias="CHORUS_COUNCIL_PENDING_VOTE_MAX_PER_TARGET",
    )
    pending_max_total: int = Field(
        default=10_000,
        alias="CHORUS_COUNCIL_PENDING_MAX_TOTAL",
    )

    # Proposals without an explicit end run for one week
    default_proposal_duration_seconds: int = Field(
        default=7 * 24 * 60 * 60,
        alias="CHORUS_COUNCIL_DEFAULT_PROPOSAL_DURATION_SECONDS",
    )

    # In-memory event log used to rebuild projections
    event_log_max_events: int = Field(
        default=50_000,
        alias="CHORUS_COUNCIL_EVENT_LOG_MAX_EVENTS",
    )

    # Signature checks normally belong to the transport layer
    require_signatures: bool = Field(default=False, alias="CHORUS_COUNCIL_REQUIRE_SIGNATURES")

    # CORS configuration for web frontend access
    cors_origins: list[str] = Field(default=["*"], alias="CORS_ORIGINS")
    cors_allow_credentials: bool = Field(default=True, alias="CORS_ALLOW_CREDENTIALS")
    cors_allow_methods: list[str] = Field(
        default=["GET", "POST", "OPTIONS"],
        alias="CORS_ALLOW_METHODS",
    )
    cors_allow_headers: list[str] = Field(default=["*"], alias="CORS_ALLOW_HEADERS")

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        extra="ignore",
        populate_by_name=True,
    )

    @property
    def pending_window(self) -> dict[str, float]:
        """Return the orphan-event buffering window as a convenience dictionary.

        Returns:
            Dictionary with the buffer TTL, the per-target cap and the overall cap
        """
        return {
            "ttl_seconds": self.pending_vote_ttl_seconds,
            "max_per_target": float(self.pending_vote_max_per_target),
            "max_total": float(self.pending_max_total),
        }


settings = Settings()
