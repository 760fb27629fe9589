"""
BioNova-X - Centralized Configuration
======================================
Uses ``pydantic-settings`` (``BaseSettings``) to load *all* configuration
from environment variables and the project-level ``.env`` file.

Security
--------
- ``GOOGLE_API_KEY`` is typed as ``SecretStr`` and has **no default value**.
  If the key is missing at startup, Pydantic will raise a ``ValidationError``
  and the server refuses to start.  The raw value is never exposed in repr,
  logs, or tracebacks.
- ``MONGO_URI`` is also ``SecretStr`` — connection strings contain
  credentials and must never leak into logs.

Rate Limiting
-------------
``RATE_LIMIT_MAX_REQUESTS`` requests per client IP are allowed inside a
sliding window of ``RATE_LIMIT_WINDOW_SECONDS`` (default 100 / 15 min).
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent


class Settings(BaseSettings):
    """
    Application-wide settings.

    Every field is loaded from environment variables (or ``.env``).
    Fields *without* a default are **required** — the app will refuse
    to start until they are provided.

    Attributes
    ----------
    GOOGLE_API_KEY : SecretStr
        API key for Google AI Studio (Gemini).  **Required.**
        Access the raw value with ``settings.GOOGLE_API_KEY.get_secret_value()``.
    MONGO_URI : SecretStr
        MongoDB connection string for the search cache.  **Required.**
    MONGO_DB_NAME : str
        MongoDB database name.
    CACHE_COLLECTION_NAME : str
        Collection holding ``{cache_key, result, created_at}`` documents.
    CACHE_TTL_HOURS : int
        Freshness window for cached ``/search`` results.
    ENV : Literal["dev", "prod"]
        Environment mode controlling logging verbosity.
    LLM_MODEL : str
        Gemini model identifier used for every operation.
    LLM_TEMPERATURE : float
        Sampling temperature for the chat model.
    PORT : int
        Listen port for ``uvicorn``.
    CORS_ALLOWED_ORIGINS : list[str]
        Browser origins allowed to call the API.
    RATE_LIMIT_WINDOW_SECONDS, RATE_LIMIT_MAX_REQUESTS : int
        Sliding-window rate limit applied per client IP.
    ENFORCE_SOURCE_ALLOWLIST : bool
        Null out ``source_url`` values outside the NASA allow-list.
    DEFAULT_MIN_YEAR : int
        Lower bound of the unfiltered year range.
    """

    # ── Environment Mode ───────────────────────────────────────────────
    ENV: Literal["dev", "prod"] = "dev"

    # ── API Keys (REQUIRED — no default) ───────────────────────────────
    GOOGLE_API_KEY: SecretStr

    # ── MongoDB cache (REQUIRED — no default) ──────────────────────────
    MONGO_URI: SecretStr
    MONGO_DB_NAME: str = "bionova"
    CACHE_COLLECTION_NAME: str = "searches"
    CACHE_TTL_HOURS: int = 24

    # ── Model Configuration ────────────────────────────────────────────
    LLM_MODEL: str = "gemini-2.5-flash"
    LLM_TEMPERATURE: float = 0.7

    # ── HTTP Server ────────────────────────────────────────────────────
    PORT: int = 3001
    CORS_ALLOWED_ORIGINS: list[str] = ["*"]

    # ── Rate Limiting ──────────────────────────────────────────────────
    RATE_LIMIT_WINDOW_SECONDS: int = 15 * 60
    RATE_LIMIT_MAX_REQUESTS: int = 100

    # ── Search Behaviour ───────────────────────────────────────────────
    ENFORCE_SOURCE_ALLOWLIST: bool = True
    DEFAULT_MIN_YEAR: int = 1960

    # ── Validators ─────────────────────────────────────────────────────

    @field_validator("CACHE_TTL_HOURS")
    @classmethod
    def _ttl_range(cls, v: int) -> int:
        if not 1 <= v <= 168:
            raise ValueError(f"CACHE_TTL_HOURS must be 1–168, got {v}")
        return v


    @field_validator("RATE_LIMIT_WINDOW_SECONDS", "RATE_LIMIT_MAX_REQUESTS")
    @classmethod
    def _rate_limit_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"Rate limit values must be ≥ 1, got {v}")
        return v

    # ── Pydantic Settings Configuration ────────────────────────────────
    model_config = SettingsConfigDict(env_file=PROJECT_ROOT / ".env", env_file_encoding="utf-8", extra="ignore")


# ── Singleton Instance ─────────────────────────────────────────────────
# Import this throughout the project:
#     from bionova.config.settings import settings
settings = Settings()
