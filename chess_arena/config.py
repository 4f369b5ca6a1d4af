"""Application configuration."""
from functools import lru_cache

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings."""

    # App
    app_env: str = "development"
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    app_debug: bool = True
    log_level: str = "DEBUG"

    # Database
    database_url: str = Field(
        default="sqlite+aiosqlite:///./chess_arena.db",
        description="Database connection URL (sqlite+aiosqlite or postgresql+asyncpg)",
    )
    db_echo: bool = Field(
        default=False,
        description="Echo SQL statements to the log",
    )

    # Redis (optional - enables cross-process record locks)
    redis_url: str | None = Field(
        default=None,
        description="Redis connection URL. When unset, in-process locks are used",
    )

    # Record locks
    lock_timeout_ms: int = Field(
        default=10000,
        description="Auto-expire time for a held record lock",
    )
    lock_acquire_timeout_ms: int = Field(
        default=5000,
        description="Max time to wait for a record lock",
    )

    # CORS
    cors_origins: str = "http://localhost:3000"

    # Tournament
    tournament_max_participants: int = Field(
        default=0,
        description="Default participant cap for new tournaments (0 = unlimited)",
    )
    tournament_draw_policy: str = Field(
        default="replay",
        description="How a drawn tournament game is resolved: replay | coin_flip",
    )
    tournament_bye_policy: str = Field(
        default="auto_advance",
        description="How an unpaired first-round player is handled: auto_advance | none",
    )

    # WebSocket
    ws_max_connections: int = Field(
        default=5000,
        description="Max concurrent WebSocket observers per process",
    )

    @field_validator("lock_timeout_ms", "lock_acquire_timeout_ms")
    @classmethod
    def validate_positive_timeout(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("lock timeouts must be positive")
        return v

    @field_validator("tournament_draw_policy")
    @classmethod
    def validate_draw_policy(cls, v: str) -> str:
        if v not in ("replay", "coin_flip"):
            raise ValueError(f"unknown tournament_draw_policy: {v}")
        return v

    @field_validator("tournament_bye_policy")
    @classmethod
    def validate_bye_policy(cls, v: str) -> str:
        if v not in ("auto_advance", "none"):
            raise ValueError(f"unknown tournament_bye_policy: {v}")
        return v

    @model_validator(mode="after")
    def validate_production_settings(self) -> "Settings":
        """Validate settings for production environment."""
        if self.app_env == "production":
            if self.app_debug:
                raise ValueError(
                    "app_debug must be False in production environment"
                )

            origins = [o.strip() for o in self.cors_origins.split(",")]
            if "*" in origins:
                raise ValueError(
                    "CORS wildcard '*' is not allowed in production environment. "
                    "Specify explicit allowed origins."
                )

        return self

    model_config = {
        "env_file": ".env",
        "extra": "ignore",
    }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
