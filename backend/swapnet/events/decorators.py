"""Decorators for event handling."""

import functools
from datetime import datetime
from enum import Enum
from typing import Any
from typing import Callable
from typing import Dict

from .event_bus import EventType
from .event_bus import event_bus

# Columns never copied into an event payload
PRIVATE_COLUMNS = {"password_hash"}


def record_event_data(result: Any) -> Dict[str, Any]:
    """Convert a route result into a JSON-friendly event payload."""

    if hasattr(result, "__table__"):
        # For SQLAlchemy models
        event_data = {}
        for column in result.__table__.columns:
            if column.name in PRIVATE_COLUMNS:
                continue
            value = getattr(result, column.name)
            # Convert datetime objects to ISO string for JSON serialization
            if isinstance(value, datetime):
                value = value.isoformat()
            elif isinstance(value, Enum):
                value = value.value
            elif isinstance(value, list):
                value = list(value)
            event_data[column.name] = value
    elif hasattr(result, "model_dump"):
        # For Pydantic models
        event_data = result.model_dump()
    else:
        # For dictionaries
        event_data = dict(result)

    # Remove SQLAlchemy internal state if present
    event_data.pop("_sa_instance_state", None)
    return event_data


def publish_event(event_type: EventType):
    """Decorator that publishes an event after a successful function call.

    The decorated coroutine must return a SQLAlchemy row, a pydantic model or
    a dict.  The converted return value is the event data.

    Args:
        event_type: The type of event to publish
    """

    def decorator(func: Callable):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs) -> Any:
            # Call the original function
            result = await func(*args, **kwargs)

            if result is not None:
                event_data = record_event_data(result)

                # Add event_type field for WebSocket handlers
                event_data["event_type"] = event_type

                await event_bus.publish(event_type, event_data)

            return result

        return wrapper

    return decorator
