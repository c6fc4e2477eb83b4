"""Credential primitives: password hashing and access-token issuance."""

from __future__ import annotations

from datetime import timedelta
from typing import Optional

import bcrypt
from jose import jwt

from swapnet.config import get_settings
from swapnet.utils.time import utc_now

JWT_ALGORITHM = "HS256"

# bcrypt reads at most 72 bytes of a password; longer input is cut there on
# both hash and verify.
BCRYPT_MAX_BYTES = 72


def _password_bytes(password: str) -> bytes:
    return password.encode("utf-8")[:BCRYPT_MAX_BYTES]


def hash_password(password: str, rounds: Optional[int] = None) -> str:
    """Return a bcrypt hash of *password* as text."""

    cost = rounds or get_settings().bcrypt_rounds
    return bcrypt.hashpw(_password_bytes(password), bcrypt.gensalt(rounds=cost)).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(_password_bytes(password), password_hash.encode("utf-8"))
    except ValueError:
        # Stored value is not a bcrypt hash
        return False


def issue_access_token(user_id: int, email: str, expires_delta: Optional[timedelta] = None) -> str:
    """Return signed HS256 access token."""

    settings = get_settings()
    if expires_delta is None:
        expires_delta = timedelta(seconds=settings.jwt_expires_seconds)

    expiry = utc_now() + expires_delta
    payload = {
        "sub": str(user_id),
        "email": email,
        "exp": int(expiry.timestamp()),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=JWT_ALGORITHM)


def decode_access_token(token: str, secret: Optional[str] = None) -> dict:
    """Validate signature and expiry; raises ``jose.JWTError`` on failure."""

    return jwt.decode(token, secret or get_settings().jwt_secret, algorithms=[JWT_ALGORITHM])


__all__ = [
    "hash_password",
    "verify_password",
    "issue_access_token",
    "decode_access_token",
]
