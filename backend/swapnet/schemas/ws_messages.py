"""WebSocket message definitions for the ``/api/ws`` channel.

Every frame in both directions is wrapped in :class:`Envelope`.  Payload
models below describe the ``data`` object for each message type.
"""

import time
from enum import Enum
from typing import Any
from typing import Dict
from typing import Optional

import jsonschema
from pydantic import BaseModel
from pydantic import Field


class Envelope(BaseModel):
    """Unified envelope for all WebSocket messages with validation."""

    v: int = Field(default=1, description="Protocol version")
    type: str = Field(description="Message type identifier")
    topic: str = Field(description="Topic routing string")
    req_id: Optional[str] = Field(default=None, description="Request correlation ID")
    ts: int = Field(description="Timestamp in milliseconds since epoch")
    data: Dict[str, Any] = Field(description="Message payload")

    @classmethod
    def create(
        cls,
        message_type: str,
        topic: str,
        data: Dict[str, Any],
        req_id: Optional[str] = None,
    ) -> "Envelope":
        """Create and validate a new envelope."""
        envelope = cls(
            type=message_type.lower(),
            topic=topic,
            data=data,
            req_id=req_id,
            ts=int(time.time() * 1000),
        )
        # Validate on creation for fail-fast behavior
        validate_envelope_fast(envelope.model_dump())
        return envelope


# Message payload schemas


class PingData(BaseModel):
    timestamp: Optional[int] = Field(default=None, ge=0)


class PongData(BaseModel):
    timestamp: Optional[int] = Field(default=None, ge=0)


class ErrorData(BaseModel):
    error: str = Field(min_length=1)
    details: Optional[Dict[str, Any]] = None


class JoinRoomData(BaseModel):
    """Subscribe the socket to the ``user:{user_id}`` room.

    Accepts ``userId`` as well as ``user_id``.
    """

    user_id: int = Field(ge=1, alias="userId")

    class Config:
        populate_by_name = True


class SendMessageData(BaseModel):
    """Direct message sent over the socket instead of ``POST /api/messages/send``.

    ``sender_id`` is optional; when present it must match the authenticated
    user of the socket.  Field names may be sent in camelCase
    (``senderId``, ``receiverId``).
    """

    sender_id: Optional[int] = Field(default=None, ge=1, alias="senderId")
    receiver_id: int = Field(ge=1, alias="receiverId")
    content: str = Field(min_length=1)

    class Config:
        populate_by_name = True


class MessageType(str, Enum):
    """Enumeration of all WebSocket message types."""

    PING = "ping"
    PONG = "pong"
    ERROR = "error"
    JOIN_ROOM = "join_room"
    SEND_MESSAGE = "send_message"
    # joinRoom / sendMessage as sent by camelCase clients, after lowercasing
    JOINROOM = "joinroom"
    SENDMESSAGE = "sendmessage"
    MESSAGE = "message"
    USER_UPDATE = "user_update"


def validate_envelope_fast(data: Dict[str, Any]) -> None:
    """Envelope validation using jsonschema."""
    try:
        jsonschema.validate(data, ENVELOPE_SCHEMA)
    except jsonschema.ValidationError as e:
        raise ValueError(f"Envelope validation failed: {e.message}") from e


# Schema constants for validation
ENVELOPE_SCHEMA = {
    "type": "object",
    "required": ["v", "type", "topic", "ts", "data"],
    "additionalProperties": False,
    "properties": {
        "v": {"type": "integer", "const": 1},
        "type": {"type": "string"},
        "topic": {"type": "string"},
        "req_id": {"type": ["string", "null"]},
        "ts": {"type": "integer"},
        "data": {"type": "object"},
    },
}
