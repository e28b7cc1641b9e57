"""
NoteVault Backend — Application Configuration
===============================================

What:  Centralized configuration management using Pydantic Settings.
Why:   Type-safe environment variable loading with validation on startup.
How:   Pydantic Settings reads from environment variables (or .env file),
       validates types/ranges, and provides a singleton `settings` object.
Who:   Imported by the persistence gateway, the app factory and the CLI entry point.
When:  Loaded once at module import time; validated before the app starts.

Remote store switch:
    The remote (Turso / libSQL) store is attached only when USE_TURSO is
    switched on AND both TURSO_DATABASE_URL and TURSO_AUTH_TOKEN are set.
    Having credentials in the environment is not enough on its own, so a
    developer machine with a copied .env never talks to the shared database.
"""

from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

# <repo>/backend/data.db, next to the application package
DEFAULT_DB_PATH = str(Path(__file__).resolve().parent.parent / "data.db")

TRUTHY_VALUES = {"1", "true", "yes", "on"}


def normalize_boolean(value) -> bool:
    """Boolean-like env parsing: 1/true/yes/on → True, anything else → False."""
    if isinstance(value, bool):
        return value
    if not isinstance(value, str):
        return False
    return value.strip().lower() in TRUTHY_VALUES


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings have sensible defaults for local development: with nothing
    configured the backend runs entirely on the local SQLite file.
    """

    # ── Local Store ───────────────────────────────────────────────────────
    # What: Path of the SQLite file backing the primary store
    # Created on first start (parent directories included)
    db_path: str = Field(default=DEFAULT_DB_PATH)

    # ── Remote Store (Turso / libSQL) ─────────────────────────────────────
    use_turso: bool = Field(default=False)
    turso_database_url: str = Field(default="")
    turso_auth_token: str = Field(default="")

    # What: Overall ceiling for remote schema setup, in seconds
    # Independent of the per-statement retries below
    remote_setup_timeout: float = Field(default=20.0, gt=0, le=600)

    # What: Per-HTTP-call timeout against the remote pipeline endpoint
    remote_request_timeout: float = Field(default=10.0, gt=0, le=120)

    # ── Retry Configuration ───────────────────────────────────────────────
    # Schema setup runs once at startup and can afford a slower backoff;
    # query retries sit on the request path and back off faster
    schema_retry_attempts: int = Field(default=3, ge=1, le=10)
    schema_retry_initial_delay: float = Field(default=1.0, ge=0, le=30)
    query_retry_attempts: int = Field(default=3, ge=1, le=10)
    query_retry_initial_delay: float = Field(default=0.25, ge=0, le=10)

    # ── Server ────────────────────────────────────────────────────────────
    backend_host: str = Field(default="0.0.0.0")
    backend_port: int = Field(default=3001, ge=1024, le=65535)

    log_level: str = Field(default="INFO")

    @field_validator("use_turso", mode="before")
    @classmethod
    def parse_use_turso(cls, v) -> bool:
        """Unrecognised values switch the remote store off instead of failing startup."""
        return normalize_boolean(v)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensures log level is a valid Python logging level name."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper = v.upper()
        if upper not in valid_levels:
            raise ValueError(f"Invalid log_level '{v}'. Must be one of: {valid_levels}")
        return upper

    # ── Pydantic Settings Config ──────────────────────────────────────────
    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore",
    }

    @property
    def has_remote_credentials(self) -> bool:
        return bool(self.turso_database_url.strip() and self.turso_auth_token.strip())

    @property
    def remote_configured(self) -> bool:
        """True only when the remote store is switched on AND fully configured."""
        return self.use_turso and self.has_remote_credentials


# Singleton instance, imported throughout the application
settings = Settings()
