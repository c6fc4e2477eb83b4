"""Topic-based WebSocket connection manager.

Every socket is subscribed to its own ``user:{id}`` room.  Ledger and message
events arriving on the EventBus are relayed to the rooms of the users they
concern.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any
from typing import Dict
from typing import Iterable
from typing import Optional
from typing import Set

from fastapi import WebSocket
from fastapi.encoders import jsonable_encoder

from swapnet.config import get_settings
from swapnet.constants import user_topic
from swapnet.events import EventType
from swapnet.events import event_bus
from swapnet.schemas.ws_messages import Envelope
from swapnet.schemas.ws_messages import MessageType

logger = logging.getLogger(__name__)

# Record fields that name a user touched by a ledger event
PARTY_FIELDS = ("requester_id", "recipient_id", "responder_id", "sender_id", "receiver_id")


class TopicConnectionManager:
    """Manages WebSocket connections with topic-based subscriptions."""

    # Constants for back-pressure handling
    SEND_TIMEOUT = 1.0  # Timeout for individual send operations
    QUEUE_SIZE = 100  # Maximum queue size per connection
    HEARTBEAT_INTERVAL = 30
    HEARTBEAT_TIMEOUT = 60

    def __init__(self):
        """Initialize an empty topic-based connection manager."""
        # Map of client_id to WebSocket connection (guarded by `_lock`)
        self.active_connections: Dict[str, WebSocket] = {}
        # Map of client_id to message queue (guarded by `_lock`)
        self.client_queues: Dict[str, asyncio.Queue] = {}
        # Map of client_id to writer task (guarded by `_lock`)
        self.writer_tasks: Dict[str, asyncio.Task] = {}
        # Map of topic to set of subscribed client_ids (guarded by `_lock`)
        self.topic_subscriptions: Dict[str, Set[str]] = {}
        # Map of client_id to set of subscribed topics (guarded by `_lock`)
        self.client_topics: Dict[str, Set[str]] = {}
        # Map client_id -> authenticated user_id (guarded by `_lock`)
        self.client_users: Dict[str, Optional[int]] = {}

        # Last *pong* per client; the heartbeat loop drops silent sockets
        # with close code 4408.
        self._last_pong: Dict[str, float] = {}

        # Created lazily so the lock binds to the running loop (TestClient
        # spins up a fresh loop per test).
        self._lock: Optional[asyncio.Lock] = None
        self._lock_loop_id: Optional[int] = None

        self._cleanup_task: Optional[asyncio.Task] = None

        # Register for relevant events
        self._setup_event_handlers()

    def _get_lock(self) -> asyncio.Lock:
        """Get lock for current event loop, creating new one if needed."""
        try:
            current_loop = asyncio.get_running_loop()
            current_loop_id = id(current_loop)

            if self._lock is None or self._lock_loop_id != current_loop_id:
                self._lock = asyncio.Lock()
                self._lock_loop_id = current_loop_id

            return self._lock
        except RuntimeError:
            if self._lock is None:
                self._lock = asyncio.Lock()
            return self._lock

    def _setup_event_handlers(self) -> None:
        """Set up handlers for events we want to broadcast."""
        for event_type in (
            EventType.CONNECTION_REQUESTED,
            EventType.CONNECTION_ACCEPTED,
            EventType.CONNECTION_REJECTED,
            EventType.CONNECTION_DELETED,
            EventType.BARTER_CREATED,
            EventType.BARTER_UPDATED,
            EventType.BARTER_DELETED,
        ):
            event_bus.subscribe(event_type, self._handle_ledger_event)

        event_bus.subscribe(EventType.MESSAGE_CREATED, self._handle_message_event)
        event_bus.subscribe(EventType.USER_UPDATED, self._handle_user_event)

    async def connect(self, client_id: str, websocket: WebSocket, user_id: Optional[int] = None) -> None:
        """Register a new client connection.

        Args:
            client_id: Unique identifier for the client
            websocket: The client's WebSocket connection
            user_id: Authenticated user; the socket joins that user's room
        """
        async with self._get_lock():
            self.active_connections[client_id] = websocket
            self.client_topics[client_id] = set()
            self.client_users[client_id] = user_id
            self._last_pong[client_id] = time.time()

            # Unbounded under TESTING: the synchronous TestClient can enqueue
            # faster than the writer task drains.
            queue_size = 0 if get_settings().testing else self.QUEUE_SIZE
            self.client_queues[client_id] = asyncio.Queue(maxsize=queue_size)

            # Start writer task for this client
            self.writer_tasks[client_id] = asyncio.create_task(
                self._writer(client_id, websocket, self.client_queues[client_id])
            )

        if user_id is not None:
            await self.subscribe_to_topic(client_id, user_topic(user_id))

        logger.info("Client %s connected (user=%s)", client_id, user_id)

        if self._cleanup_task is None or self._cleanup_task.done():
            self._cleanup_task = asyncio.create_task(self._cleanup_loop())

    async def disconnect(self, client_id: str) -> None:
        """Remove a client connection and clean up subscriptions.

        Args:
            client_id: The client ID to remove
        """
        async with self._get_lock():
            if client_id in self.active_connections:
                self.client_users.pop(client_id, None)
                del self.active_connections[client_id]

                if client_id in self.writer_tasks:
                    writer_task = self.writer_tasks.pop(client_id)
                    if not writer_task.done():
                        writer_task.cancel()

                self.client_queues.pop(client_id, None)

                for topic in self.client_topics.pop(client_id, set()):
                    if topic in self.topic_subscriptions:
                        self.topic_subscriptions[topic].discard(client_id)
                        if not self.topic_subscriptions[topic]:
                            del self.topic_subscriptions[topic]

                logger.info("Client %s disconnected", client_id)

            self._last_pong.pop(client_id, None)

    # ------------------------------------------------------------------
    # Heart-beat helpers – client must respond with *pong*
    # ------------------------------------------------------------------

    def record_pong(self, client_id: str) -> None:
        """Update last-pong timestamp for the given client."""
        self._last_pong[client_id] = time.time()

    def user_for(self, client_id: str) -> Optional[int]:
        return self.client_users.get(client_id)

    async def subscribe_to_topic(self, client_id: str, topic: str) -> None:
        """Subscribe a client to a topic (e.g. ``"user:12"``)."""
        async with self._get_lock():
            self.topic_subscriptions.setdefault(topic, set()).add(client_id)
            self.client_topics.setdefault(client_id, set()).add(topic)
        logger.info("Client %s subscribed to topic %s", client_id, topic)

    # ------------------------------------------------------------------
    # Queue-based writer for back-pressure safety
    # ------------------------------------------------------------------

    async def _writer(self, client_id: str, websocket: WebSocket, queue: asyncio.Queue) -> None:
        """Drain the client's queue onto its socket; disconnect on send failure."""
        try:
            while True:
                payload = await queue.get()

                try:
                    await asyncio.wait_for(websocket.send_json(payload), timeout=self.SEND_TIMEOUT)
                except asyncio.TimeoutError:
                    logger.warning("Send timeout for client %s, disconnecting", client_id)
                    await self.disconnect(client_id)
                    return
                except Exception as e:
                    logger.warning("Send error for client %s: %s, disconnecting", client_id, e)
                    await self.disconnect(client_id)
                    return
                finally:
                    queue.task_done()

        except asyncio.CancelledError:
            logger.debug("Writer task for client %s cancelled", client_id)

    # ------------------------------------------------------------------
    # Cleanup helpers
    # ------------------------------------------------------------------

    async def _cleanup_loop(self) -> None:
        """Periodically ping clients and drop unresponsive sockets."""

        try:
            while True:
                await asyncio.sleep(self.HEARTBEAT_INTERVAL)

                ping_message = Envelope.create(message_type=MessageType.PING.value, topic="system", data={}).model_dump()

                async with self._get_lock():
                    client_queues = dict(self.client_queues)

                for client_id, queue in client_queues.items():
                    try:
                        queue.put_nowait(ping_message)
                    except asyncio.QueueFull:
                        logger.warning("Ping queue full for client %s, disconnecting", client_id)
                        asyncio.create_task(self.disconnect(client_id))

                now = time.time()
                async with self._get_lock():
                    stale = [cid for cid, ts in self._last_pong.items() if now - ts > self.HEARTBEAT_TIMEOUT]

                for cid in stale:
                    logger.warning("Client %s timed out (no pong), closing", cid)
                    ws = self.active_connections.get(cid)
                    if ws is not None:
                        try:
                            await ws.close(code=4408, reason="Heartbeat timeout")
                        except RuntimeError:
                            # Socket already closed by the peer
                            pass

                    await self.disconnect(cid)

        except asyncio.CancelledError:  # graceful shutdown
            logger.info("TopicConnectionManager cleanup task cancelled")

    # ------------------------------------------------------------------
    # Graceful shutdown helper – called from FastAPI lifespan
    # ------------------------------------------------------------------

    async def shutdown(self) -> None:  # noqa: D401 – simple helper
        """Cancel background heartbeat task and close websockets."""

        if self._cleanup_task and not self._cleanup_task.done():
            self._cleanup_task.cancel()
            try:
                await self._cleanup_task
            except asyncio.CancelledError:
                pass

        async with self._get_lock():
            for task in self.writer_tasks.values():
                if not task.done():
                    task.cancel()

            for client_id, ws in list(self.active_connections.items()):
                try:
                    await ws.close()
                except RuntimeError:
                    logger.debug("Socket for client %s already closed", client_id)

    async def broadcast_to_topic(self, topic: str, message: Dict[str, Any]) -> None:
        """Broadcast a message to all clients subscribed to a topic.

        Args:
            topic: The topic to broadcast to
            message: The message to broadcast (must be in envelope format)
        """
        if not (isinstance(message, dict) and "v" in message and "topic" in message and "ts" in message):
            logger.error("broadcast_to_topic: Invalid message format - envelope required")
            raise ValueError("Message must be in envelope format")

        async with self._get_lock():
            if topic not in self.topic_subscriptions:
                logger.debug("broadcast_to_topic: no subscribers for topic %s", topic)
                return

            client_queues = {client_id: self.client_queues.get(client_id) for client_id in self.topic_subscriptions[topic]}

        for client_id, queue in client_queues.items():
            if queue is None:
                continue
            try:
                queue.put_nowait(message)
            except asyncio.QueueFull:
                logger.warning("Queue full for client %s, disconnecting due to back-pressure", client_id)
                asyncio.create_task(self.disconnect(client_id))

        # Under TESTING wait for the writers so assertions right after a
        # broadcast see the frames.
        if get_settings().testing:
            await asyncio.gather(
                *(asyncio.wait_for(q.join(), timeout=1.0) for q in client_queues.values() if q is not None),
                return_exceptions=True,
            )

    async def broadcast_to_users(
        self,
        user_ids: Iterable[int],
        message_type: str,
        data: Dict[str, Any],
        req_id: Optional[str] = None,
    ) -> None:
        """Send one envelope to the room of every distinct user in *user_ids*."""

        serialized_data = jsonable_encoder(data)
        seen: Set[int] = set()
        for uid in user_ids:
            if uid is None or uid in seen:
                continue
            seen.add(uid)
            topic = user_topic(uid)
            envelope = Envelope.create(message_type=message_type, topic=topic, data=serialized_data, req_id=req_id)
            await self.broadcast_to_topic(topic, envelope.model_dump())

    # ------------------------------------------------------------------
    # EventBus relays
    # ------------------------------------------------------------------

    async def _handle_ledger_event(self, data: Dict[str, Any]) -> None:
        """Forward connection and barter changes to both parties' rooms."""
        event_type = data["event_type"]
        clean_data = {k: v for k, v in data.items() if k != "event_type"}
        parties = [clean_data.get(field) for field in PARTY_FIELDS]
        await self.broadcast_to_users(parties, str(EventType(event_type).value), clean_data)

    async def _handle_message_event(self, data: Dict[str, Any]) -> None:
        """Deliver a new direct message to receiver and sender."""
        clean_data = {k: v for k, v in data.items() if k != "event_type"}
        await self.broadcast_to_users(
            [clean_data.get("receiver_id"), clean_data.get("sender_id")],
            MessageType.MESSAGE.value,
            clean_data,
        )

    async def _handle_user_event(self, data: Dict[str, Any]) -> None:
        """Forward profile updates to the user's own room so other tabs update."""
        clean_data = {k: v for k, v in data.items() if k != "event_type"}
        await self.broadcast_to_users([clean_data["id"]], MessageType.USER_UPDATE.value, clean_data)


# Create a global instance of the connection manager
topic_manager = TopicConnectionManager()

__all__ = ["TopicConnectionManager", "topic_manager"]
