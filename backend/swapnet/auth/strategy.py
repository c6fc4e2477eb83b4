"""Authentication strategy abstraction.

Request handlers never parse credentials themselves.  They depend on
:func:`swapnet.dependencies.auth.get_current_user`, which delegates to the
strategy below.  Tests can swap the strategy (or override the dependency)
without touching the routers.
"""

from __future__ import annotations

from abc import ABC
from abc import abstractmethod
from typing import Any
from typing import Optional

from fastapi import Request
from jose import JWTError
from sqlalchemy.orm import Session

from swapnet.auth.security import decode_access_token
from swapnet.config import get_settings
from swapnet.crud import crud
from swapnet.errors import Unauthenticated

# ---------------------------------------------------------------------------
# Strategy base-class
# ---------------------------------------------------------------------------


class AuthStrategy(ABC):
    """Pluggable authentication backend (strategy pattern)."""

    @abstractmethod
    def get_current_user(self, request: Request, db: Session):  # noqa: D401 – abstract
        """Return the authenticated user or raise :class:`Unauthenticated`."""

    @abstractmethod
    def validate_ws_token(self, token: Optional[str], db: Session):  # noqa: D401 – abstract
        """Return user for valid token, *None* otherwise (WS handshake)."""


# ---------------------------------------------------------------------------
# HS256 JWT validation
# ---------------------------------------------------------------------------


class JWTAuthStrategy(AuthStrategy):
    """Validates HS256 bearer tokens issued by :func:`issue_access_token`."""

    def __init__(self, secret: Optional[str] = None):
        self._secret = secret or get_settings().jwt_secret

    # Internal ----------------------------------------------------------

    def _decode(self, token: str) -> dict[str, Any]:  # noqa: D401 – helper
        return decode_access_token(token, self._secret)

    def _user_from_token(self, token: str, db: Session):
        """Return the user for *token* or ``None`` when it does not resolve."""

        try:
            payload = self._decode(token)
        except JWTError:
            return None

        try:
            user_id_int = int(payload.get("sub"))
        except (TypeError, ValueError):
            return None

        return crud.get_user(db, user_id_int)

    # Public API --------------------------------------------------------

    def get_current_user(self, request: Request, db: Session):  # noqa: D401 – impl
        auth_header: Optional[str] = request.headers.get("Authorization")
        if not auth_header or not auth_header.lower().startswith("bearer "):
            raise Unauthenticated("No token, authorization denied")

        token = auth_header[7:].strip()
        if not token:
            raise Unauthenticated("No token, authorization denied")

        user = self._user_from_token(token, db)
        if user is None:
            raise Unauthenticated("Token is not valid")
        return user

    def validate_ws_token(self, token: Optional[str], db: Session):  # noqa: D401 – impl
        if not token:
            return None
        return self._user_from_token(token, db)


__all__ = [
    "AuthStrategy",
    "JWTAuthStrategy",
]
