"""Event bus implementation for decoupled event handling."""

import logging
from enum import Enum
from typing import Any
from typing import Awaitable
from typing import Callable
from typing import Dict
from typing import Set

logger = logging.getLogger(__name__)


class EventType(str, Enum):
    """Standardized event types for the system."""

    # Relationship ledger
    CONNECTION_REQUESTED = "connection_requested"
    CONNECTION_ACCEPTED = "connection_accepted"
    CONNECTION_REJECTED = "connection_rejected"
    CONNECTION_DELETED = "connection_deleted"

    # Barter ledger
    BARTER_CREATED = "barter_created"
    BARTER_UPDATED = "barter_updated"
    BARTER_DELETED = "barter_deleted"

    # Messages
    MESSAGE_CREATED = "message_created"

    # Identity
    USER_UPDATED = "user_updated"


class EventBus:
    """Central event bus for publishing and subscribing to events."""

    def __init__(self):
        """Initialize an empty event bus."""
        self._subscribers: Dict[EventType, Set[Callable[[Dict[str, Any]], Awaitable[None]]]] = {}

    async def publish(self, event_type: EventType, data: Dict[str, Any]) -> None:
        """Publish an event to all subscribers.

        A failing subscriber is logged and does not stop the others.

        Args:
            event_type: The type of event being published
            data: Event payload data
        """
        if event_type not in self._subscribers:
            return

        logger.debug("Publishing event %s with data: %s", event_type, data)

        for callback in list(self._subscribers[event_type]):
            try:
                await callback(data)
            except Exception:
                logger.exception("Error in event handler for %s", event_type)

    def subscribe(self, event_type: EventType, callback: Callable[[Dict[str, Any]], Awaitable[None]]) -> None:
        """Subscribe to an event type.

        Args:
            event_type: The event type to subscribe to
            callback: Async callback function to handle the event
        """
        if event_type not in self._subscribers:
            self._subscribers[event_type] = set()

        self._subscribers[event_type].add(callback)
        logger.debug("Added subscriber for event %s", event_type)

    def unsubscribe(self, event_type: EventType, callback: Callable[[Dict[str, Any]], Awaitable[None]]) -> None:
        """Unsubscribe from an event type.

        Args:
            event_type: The event type to unsubscribe from
            callback: The callback function to remove
        """
        if event_type in self._subscribers:
            self._subscribers[event_type].discard(callback)
            logger.debug("Removed subscriber for event %s", event_type)

            # Clean up empty subscriber sets
            if not self._subscribers[event_type]:
                del self._subscribers[event_type]


# Global event bus instance
event_bus = EventBus()
