from __future__ import annotations

import asyncio

import logging
from typing import Any, Dict, Optional, Set

from starlette.websockets import WebSocket, WebSocketState

from src.schemas.realtime import WsEnvelope

logger = logging.getLogger(__name__)

# Single topic every stock client subscribes to.
STOCK_TOPIC = "stock"

DASHBOARD_STATS_EVENT = "dashboard.stats"


class BroadcastManager:
    """
    Simple in-process pub-sub manager for WebSocket topics.

    Delivery is best effort: there is no ordering, acknowledgement or replay, and
    sockets that fail on send are dropped from the topic.
    """

    def __init__(self) -> None:
        self._topics: Dict[str, Set[WebSocket]] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        self._global_lock = asyncio.Lock()

    def _topic_lock(self, topic: str) -> asyncio.Lock:
        if topic not in self._locks:
            self._locks[topic] = asyncio.Lock()
        return self._locks[topic]

    async def _ensure_topic(self, topic: str) -> None:
        async with self._global_lock:
            if topic not in self._topics:
                self._topics[topic] = set()

    # PUBLIC_INTERFACE
    def subscriber_count(self, topic: str = STOCK_TOPIC) -> int:
        """Number of sockets currently subscribed to topic."""
        return len(self._topics.get(topic, ()))

    # PUBLIC_INTERFACE
    async def connect(self, topic: str, websocket: WebSocket) -> None:
        """
        Add an accepted websocket to topic subscribers.
        """
        await self._ensure_topic(topic)
        async with self._topic_lock(topic):
            self._topics[topic].add(websocket)
            logger.info("WebSocket connected to topic=%s; subscribers=%d", topic, len(self._topics[topic]))

    # PUBLIC_INTERFACE
    async def disconnect(self, topic: str, websocket: WebSocket) -> None:
        """Remove websocket from topic subscribers."""
        if topic not in self._topics:
            return
        async with self._topic_lock(topic):
            self._topics[topic].discard(websocket)
            logger.info("WebSocket disconnected from topic=%s; subscribers=%d", topic, len(self._topics[topic]))

    # PUBLIC_INTERFACE
    async def broadcast(self, topic: str, message: dict, exclude: Optional[WebSocket] = None) -> None:
        """
        Broadcast a dict message to all subscribers in the topic.
        """
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
    async def publish_event(
        self,
        event_type: str,
        payload: Dict[str, Any],
        user_id: Optional[str] = None,
        topic: str = STOCK_TOPIC,
    ) -> None:
        """Wrap payload in a WsEnvelope and broadcast it on the topic."""
        env = WsEnvelope(type=event_type, payload=payload, user_id=user_id, channel=topic)
        await self.broadcast(topic, env.model_dump(mode="json"))

    # PUBLIC_INTERFACE
    async def publish_dashboard_stats(self, stats: Dict[str, Any]) -> None:
        """Push a dashboard statistics snapshot to every stock subscriber."""
        await self.publish_event(DASHBOARD_STATS_EVENT, stats)


# Singleton instance
broadcast_manager = BroadcastManager()
