"""WebSocket routing module.

One endpoint, ``/api/ws?token=<jwt>``.  The socket is authenticated before
the handshake is accepted and joins its user's room immediately.
"""

from __future__ import annotations

import json
import logging
import uuid
from typing import Optional

from fastapi import APIRouter
from fastapi import WebSocket
from fastapi import WebSocketDisconnect
from sqlalchemy.orm import Session
from sqlalchemy.orm import sessionmaker

from swapnet.constants import WS_ENDPOINT
from swapnet.database import get_session_factory
from swapnet.dependencies.auth import validate_ws_jwt
from swapnet.websocket.handlers import dispatch_message
from swapnet.websocket.handlers import send_error
from swapnet.websocket.manager import topic_manager

router = APIRouter()
logger = logging.getLogger(__name__)


def get_websocket_session(session_factory: Optional[sessionmaker] = None) -> Session:
    """Create a new database session for WebSocket handlers.

    The caller must close it.
    """
    factory = session_factory or get_session_factory()
    return factory()


@router.websocket(WS_ENDPOINT)
async def websocket_endpoint(websocket: WebSocket, token: Optional[str] = None):
    client_id = str(uuid.uuid4())
    logger.info("New WebSocket connection attempt from client %s", client_id)

    db_for_auth = get_websocket_session()
    try:
        user = validate_ws_jwt(token, db_for_auth)
        user_id = user.id if user is not None else None
    finally:
        db_for_auth.close()

    if user_id is None:
        # 4401 mirrors HTTP 401
        logger.info("WebSocket auth failed – closing connection for client %s", client_id)
        await websocket.close(code=4401, reason="Unauthorized")
        return

    try:
        await websocket.accept()
        await topic_manager.connect(client_id, websocket, user_id)
        logger.info("WebSocket connection established for client %s (user=%s)", client_id, user_id)

        while True:
            raw_data = await websocket.receive_text()
            try:
                data = json.loads(raw_data)
            except json.JSONDecodeError as e:
                logger.warning("Invalid JSON from client %s: %s", client_id, e)
                await send_error(client_id, "Invalid JSON payload")
                continue

            # Fresh session per frame
            db = get_websocket_session()
            try:
                await dispatch_message(client_id, data, db)
            finally:
                db.close()

    except WebSocketDisconnect:
        logger.info("WebSocket connection closed for client %s", client_id)
    except Exception:
        logger.exception("WebSocket error for client %s", client_id)
        await send_error(client_id, "Internal server error")
    finally:
        await topic_manager.disconnect(client_id)
        logger.info("Cleaned up connection for client %s", client_id)
