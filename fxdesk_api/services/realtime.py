from __future__ import annotations

import asyncio
import logging
from typing import Dict, Optional, Set
from uuid import UUID

from starlette.websockets import WebSocket, WebSocketState

from fxdesk_api.schemas.realtime import SessionStatusEvent, WsEnvelope

logger = logging.getLogger(__name__)


class BroadcastManager:
    """
    In-process pub-sub manager for WebSocket topics.

    Topics:
      - sessions:{tenant_id}
    """

    def __init__(self) -> None:
        self._topics: Dict[str, Set[WebSocket]] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        self._global_lock = asyncio.Lock()

    def _topic_lock(self, topic: str) -> asyncio.Lock:
        if topic not in self._locks:
            self._locks[topic] = asyncio.Lock()
        return self._locks[topic]

    # PUBLIC_INTERFACE
    def session_topic(self, tenant_id: UUID | str) -> str:
        """Return the cx session topic name for an organization."""
        return f"sessions:{tenant_id}"

    async def _ensure_topic(self, topic: str) -> None:
        async with self._global_lock:
            if topic not in self._topics:
                self._topics[topic] = set()

    def subscriber_count(self, topic: str) -> int:
        return len(self._topics.get(topic, ()))

    # PUBLIC_INTERFACE
    async def connect(self, topic: str, websocket: WebSocket) -> None:
        """Add an accepted websocket to the topic subscribers."""
        await self._ensure_topic(topic)
        async with self._topic_lock(topic):
            self._topics[topic].add(websocket)
            logger.info("WebSocket connected to topic=%s; subscribers=%d", topic, len(self._topics[topic]))

    # PUBLIC_INTERFACE
    async def disconnect(self, topic: str, websocket: WebSocket) -> None:
        if topic not in self._topics:
            return
        async with self._topic_lock(topic):
            self._topics[topic].discard(websocket)
            logger.info("WebSocket disconnected from topic=%s; subscribers=%d", topic, len(self._topics[topic]))

    # PUBLIC_INTERFACE
    async def broadcast(self, topic: str, message: dict, exclude: Optional[WebSocket] = None) -> None:
        """Send a JSON message to every subscriber; dead sockets are dropped."""
        await self._ensure_topic(topic)
        async with self._topic_lock(topic):
            to_drop: list[WebSocket] = []
            for ws in list(self._topics[topic]):
                if exclude is not None and ws is exclude:
                    continue
                try:
                    if ws.application_state == WebSocketState.DISCONNECTED or ws.client_state == WebSocketState.DISCONNECTED:
                        to_drop.append(ws)
                        continue
                    await ws.send_json(message)
                except Exception:
                    logger.exception("Failed to send message to websocket; scheduling drop")
                    to_drop.append(ws)
            for ws in to_drop:
                self._topics[topic].discard(ws)

    # PUBLIC_INTERFACE
    async def publish_session_status(self, tenant_id: UUID | str, event: SessionStatusEvent) -> None:
        """Publish a `session.status` event to the organization's session topic."""
        env = WsEnvelope(
            type="session.status",
            payload=event.model_dump(mode="json"),
            user_id=event.user_id,
            channel=str(event.session_id),
        )
        await self.broadcast(self.session_topic(tenant_id), env.model_dump(mode="json"))


# Singleton instance
broadcast_manager = BroadcastManager()
