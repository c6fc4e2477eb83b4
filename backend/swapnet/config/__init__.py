"""Centralised configuration helper.

This module eliminates scattered ``os.getenv`` calls by exposing a **single**
process-wide :class:`Settings` instance (retrieved via :func:`get_settings`).
Values come from the process environment after the project ``.env`` file has
been loaded with *python-dotenv*.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

# ``_REPO_ROOT`` points to the top-level repository directory (one level
# **above** the "backend" package).  This file lives at
# ``backend/swapnet/config/__init__.py``.

_REPO_ROOT = Path(__file__).resolve().parents[3]


def _truthy(value: str | None) -> bool:  # noqa: D401 – small helper
    """Return *True* when *value* looks like an affirmative string."""

    if value is None:
        return False
    return value.strip().lower() in {"1", "true", "yes", "on"}


@dataclass
class Settings:  # noqa: D401 – simple data container
    """Lightweight settings container populated from environment variables."""

    # Runtime flags -----------------------------------------------------
    testing: bool

    # Database ---------------------------------------------------------
    database_url: str

    # Auth -------------------------------------------------------------
    jwt_secret: str
    jwt_expires_seconds: int
    bcrypt_rounds: int

    # Ledger policy ----------------------------------------------------
    # When enabled, deleting a connection is restricted to its two parties.
    connection_delete_requires_party: bool

    # Feed -------------------------------------------------------------
    feed_page_limit_max: int

    # Misc
    log_level: str
    environment: Any
    allowed_cors_origins: str


def _load_settings() -> Settings:  # noqa: D401 – helper
    """Populate :class:`Settings` from environment variables."""

    node_env = os.getenv("NODE_ENV", "development")

    if node_env == "test":
        env_path = _REPO_ROOT / ".env.test"
        if not env_path.exists():
            env_path = _REPO_ROOT / ".env"
    else:
        env_path = _REPO_ROOT / ".env"

    if env_path.exists():
        # Variables already exported by the shell win over the file.
        load_dotenv(env_path, override=False)

    testing = _truthy(os.getenv("TESTING"))

    return Settings(
        testing=testing,
        database_url=os.getenv("DATABASE_URL", ""),
        jwt_secret=os.getenv("JWT_SECRET", "dev-secret"),
        jwt_expires_seconds=int(os.getenv("JWT_EXPIRES_SECONDS", "360000")),
        # bcrypt's minimum cost is 4; tests set it there to stay fast.
        bcrypt_rounds=int(os.getenv("BCRYPT_ROUNDS", "10")),
        connection_delete_requires_party=_truthy(os.getenv("CONNECTION_DELETE_REQUIRES_PARTY")),
        feed_page_limit_max=int(os.getenv("FEED_PAGE_LIMIT_MAX", "100")),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        environment=os.getenv("ENVIRONMENT"),
        allowed_cors_origins=os.getenv("ALLOWED_CORS_ORIGINS", ""),
    )


def _validate_required(settings: Settings) -> None:  # noqa: D401 – helper
    """Abort startup when the JWT secret is unusable outside tests."""

    if settings.testing:
        return

    env = (settings.environment or "").lower()
    if env == "production":
        weak = settings.jwt_secret.strip() in {"", "dev-secret"} or len(settings.jwt_secret) < 16
        if weak:
            raise RuntimeError(
                "CRITICAL: JWT_SECRET must be set (>=16 chars, not 'dev-secret') when ENVIRONMENT=production"
            )


@lru_cache(maxsize=1)
def get_settings() -> Settings:  # noqa: D401 – public accessor
    """Return :class:`Settings` instance loaded from environment."""

    settings = _load_settings()
    _validate_required(settings)
    return settings


__all__ = [
    "Settings",
    "get_settings",
]
