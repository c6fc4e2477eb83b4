"""Shared *Enum* definitions for SQLAlchemy & Pydantic models.

The Enums inherit from ``str`` so that:

* JSON serialisation remains unchanged (values render as plain strings).
* Equality checks against raw literals (``status == "pending"``) keep working.
"""

from __future__ import annotations

from enum import Enum


class RequestStatus(str, Enum):
    """Lifecycle shared by Connection and BarterRequest ledger records."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class MessageStatus(str, Enum):
    SENT = "sent"
    DELIVERED = "delivered"
    READ = "read"


__all__ = [
    "RequestStatus",
    "MessageStatus",
]
