"""Domain exceptions raised by the service layer.

Each exception carries the client-facing message and the HTTP status it maps
to.  ``swapnet.main`` renders every :class:`LedgerError` as ``{"msg": ...}``.
"""


class LedgerError(Exception):
    """Base exception for all expected, client-visible failures."""

    status_code = 500

    def __init__(self, msg: str, status_code: int = None):
        self.msg = msg
        if status_code is not None:
            self.status_code = status_code
        super().__init__(msg)


class Unauthenticated(LedgerError):
    """Raised when the caller identity is missing or invalid."""

    status_code = 401


class Forbidden(LedgerError):
    """Raised when the caller is authenticated but holds no allowed role.

    The Barter, Feed and Message stores answer with 401 instead of 403;
    callers pass ``status_code`` explicitly for those.
    """

    status_code = 403


class NotFound(LedgerError):
    status_code = 404


class BadRequest(LedgerError):
    """Raised for malformed input."""

    status_code = 400


class InvalidOperation(BadRequest):
    """Raised when a well-formed request asks for an impossible transition."""


class Conflict(BadRequest):
    """Raised when a relationship between the pair already exists."""


__all__ = [
    "LedgerError",
    "Unauthenticated",
    "Forbidden",
    "NotFound",
    "BadRequest",
    "InvalidOperation",
    "Conflict",
]
