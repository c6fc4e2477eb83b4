"""FastAPI dependencies that expose the *current user*.

The token handling lives in :pymod:`swapnet.auth.strategy`; this module only
wires the strategy into FastAPI so request handlers stay branch-free.
"""

from __future__ import annotations

from typing import Optional

from fastapi import Depends
from fastapi import Request
from sqlalchemy.orm import Session

from swapnet.auth.strategy import AuthStrategy
from swapnet.auth.strategy import JWTAuthStrategy
from swapnet.database import get_db
from swapnet.errors import Unauthenticated

# ---------------------------------------------------------------------------
# Strategy selector – one instance per interpreter.
# ---------------------------------------------------------------------------


_strategy_cache: dict[str, AuthStrategy] = {}


def _get_strategy() -> AuthStrategy:  # noqa: D401 – internal helper
    """Return the *singleton* JWT strategy."""

    if "jwt" not in _strategy_cache:
        _strategy_cache["jwt"] = JWTAuthStrategy()
    return _strategy_cache["jwt"]


# ---------------------------------------------------------------------------
# Public dependencies
# ---------------------------------------------------------------------------


def get_current_user(request: Request, db: Session = Depends(get_db)):
    """Return the authenticated *User* row or raise **401**."""

    if "Authorization" not in request.headers:
        raise Unauthenticated("No token, authorization denied")
    return _get_strategy().get_current_user(request, db)


# ---------------------------------------------------------------------------
# WebSocket authentication helper
# ---------------------------------------------------------------------------


def validate_ws_jwt(token: Optional[str], db: Session):
    """Return user for a valid WebSocket token – *None* when invalid."""

    return _get_strategy().validate_ws_token(token, db)


__all__ = [
    "get_current_user",
    "validate_ws_jwt",
]
