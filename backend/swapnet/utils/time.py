"""Timezone helpers – provide a single UTC *now()* function."""

from datetime import datetime
from datetime import timezone


def utc_now() -> datetime:  # noqa: D401 – simple utility
    """Return *aware* current time in UTC."""

    return datetime.now(timezone.utc)


__all__ = ["utc_now"]
