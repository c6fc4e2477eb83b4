"""WebSocket message handlers.

Inbound frames are envelopes whose ``type`` selects a handler below.  The
socket's identity is the user authenticated during the handshake; payload
fields that name a user are checked against it.
"""

import logging
from typing import Any
from typing import Dict
from typing import Optional

from pydantic import ValidationError
from sqlalchemy.orm import Session

from swapnet.constants import user_topic
from swapnet.errors import LedgerError
from swapnet.events import EventType
from swapnet.events import event_bus
from swapnet.events.decorators import record_event_data
from swapnet.schemas.ws_messages import Envelope
from swapnet.schemas.ws_messages import ErrorData
from swapnet.schemas.ws_messages import JoinRoomData
from swapnet.schemas.ws_messages import MessageType
from swapnet.schemas.ws_messages import PingData
from swapnet.schemas.ws_messages import PongData
from swapnet.schemas.ws_messages import SendMessageData
from swapnet.services import message_service
from swapnet.websocket.manager import topic_manager

logger = logging.getLogger(__name__)


async def send_to_client(client_id: str, message: Dict[str, Any]) -> bool:
    """Push an envelope to a single client.

    Returns:
        True when the frame was sent, False if the *client_id* was unknown or
        the socket refused the frame.
    """

    ws = topic_manager.active_connections.get(client_id)
    if ws is None:
        return False

    try:
        await ws.send_json(message)
        return True
    except RuntimeError as e:
        logger.error("Error sending to client %s: %s", client_id, e)
        return False


async def send_error(
    client_id: str,
    error_msg: str,
    message_id: Optional[str] = None,
) -> None:
    """Send an error frame to a single client."""
    error_data = ErrorData(
        error=error_msg,
        details={"message_id": message_id} if message_id else None,
    )
    envelope = Envelope.create(
        message_type=MessageType.ERROR.value,
        topic="system",
        data=error_data.model_dump(),
        req_id=message_id,
    )
    await send_to_client(client_id, envelope.model_dump())


async def handle_ping(client_id: str, envelope: Envelope, _: Session) -> None:
    """Answer a ping with a pong carrying the same timestamp."""
    ping_data = PingData.model_validate(envelope.data)
    response_envelope = Envelope.create(
        message_type=MessageType.PONG.value,
        topic="system",
        data=PongData(timestamp=ping_data.timestamp).model_dump(),
        req_id=envelope.req_id,
    )
    await send_to_client(client_id, response_envelope.model_dump())


async def handle_pong(client_id: str, envelope: Envelope, _: Session) -> None:  # noqa: D401
    """Heartbeat reply; keeps the connection off the stale list."""
    topic_manager.record_pong(client_id)


async def handle_join_room(client_id: str, envelope: Envelope, _: Session) -> None:
    """Subscribe the socket to a user room.  Only the socket's own room is allowed."""
    data = JoinRoomData.model_validate(envelope.data)
    user_id = topic_manager.user_for(client_id)

    if data.user_id != user_id:
        await send_error(client_id, "Cannot join another user's room", envelope.req_id)
        return

    await topic_manager.subscribe_to_topic(client_id, user_topic(data.user_id))


async def handle_send_message(client_id: str, envelope: Envelope, db: Session) -> None:
    """Persist a direct message and deliver it to both users' rooms."""
    data = SendMessageData.model_validate(envelope.data)
    user_id = topic_manager.user_for(client_id)

    if data.sender_id is not None and data.sender_id != user_id:
        await send_error(client_id, "sender_id does not match the authenticated user", envelope.req_id)
        return

    try:
        message = message_service.send(db, user_id, data.receiver_id, data.content)
    except LedgerError as exc:
        await send_error(client_id, exc.msg, envelope.req_id)
        return

    event_data = record_event_data(message)
    event_data["event_type"] = EventType.MESSAGE_CREATED
    await event_bus.publish(EventType.MESSAGE_CREATED, event_data)


MESSAGE_HANDLERS = {
    MessageType.PING.value: handle_ping,
    MessageType.PONG.value: handle_pong,
    MessageType.JOIN_ROOM.value: handle_join_room,
    MessageType.SEND_MESSAGE.value: handle_send_message,
    MessageType.JOINROOM.value: handle_join_room,
    MessageType.SENDMESSAGE.value: handle_send_message,
}

_INBOUND_SCHEMA_MAP = {
    MessageType.PING.value: PingData,
    MessageType.PONG.value: PongData,
    MessageType.JOIN_ROOM.value: JoinRoomData,
    MessageType.SEND_MESSAGE.value: SendMessageData,
    MessageType.JOINROOM.value: JoinRoomData,
    MessageType.SENDMESSAGE.value: SendMessageData,
}


async def dispatch_message(client_id: str, message: Dict[str, Any], db: Session) -> None:
    """Validate an inbound envelope and route it to its handler.

    Args:
        client_id: The client ID that sent the message
        message: The raw decoded frame
        db: Database session
    """
    try:
        envelope = Envelope.model_validate(message)
    except ValidationError as exc:
        logger.debug("Invalid envelope from %s: %s", client_id, exc)
        await send_error(client_id, "INVALID_ENVELOPE")
        return

    message_type = envelope.type.lower()
    if message_type not in MESSAGE_HANDLERS:
        await send_error(client_id, f"Unknown message type: {message_type}", envelope.req_id)
        return

    model_cls = _INBOUND_SCHEMA_MAP.get(message_type)
    if model_cls is not None:
        try:
            model_cls.model_validate(envelope.data)
        except ValidationError as exc:
            logger.debug("Schema validation failed for %s: %s", message_type, exc)
            await send_error(client_id, "INVALID_PAYLOAD", envelope.req_id)
            return

    await MESSAGE_HANDLERS[message_type](client_id, envelope, db)


__all__ = ["dispatch_message", "send_error", "send_to_client"]
