"""
Subscription registry: which live connections watch which dashboard topic.

Every connection gets a Subscriber with its own bounded outbox. Publishing
only drops the event into each member's outbox, so one slow client can never
hold up delivery to the others; each connection drains its own outbox in
order from a single writer task.
"""

import asyncio
import logging
import threading
import uuid
from typing import Any, Dict, Optional, Set

logger = logging.getLogger(__name__)

DEFAULT_QUEUE_SIZE = 100


def dashboard_topic(dashboard_id: str) -> str:
    return f"dashboard-{dashboard_id}"


class Subscriber:
    """One live connection's outbox."""

    def __init__(self, connection_id: str, queue_size: int = DEFAULT_QUEUE_SIZE):
        self.connection_id = connection_id
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=queue_size)
        self.closed = False

    def deliver(self, event: Dict[str, Any]) -> bool:
        """Hand an event over without blocking. False if it was not queued."""
        if self.closed:
            return False
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            logger.warning(
                "Outbox full for connection %s, dropping %s event",
                self.connection_id,
                event.get("type"),
            )
            return False
        return True

    async def next_event(self) -> Dict[str, Any]:
        return await self._queue.get()

    def pending(self) -> int:
        return self._queue.qsize()

    def close(self) -> None:
        self.closed = True


class SubscriptionRegistry:
    def __init__(self, queue_size: int = DEFAULT_QUEUE_SIZE):
        self._queue_size = queue_size
        self._lock = threading.Lock()
        self._subscribers: Dict[str, Subscriber] = {}
        self._topics: Dict[str, Set[str]] = {}
        self._memberships: Dict[str, Set[str]] = {}

    def connect(self, connection_id: Optional[str] = None) -> Subscriber:
        subscriber = Subscriber(connection_id or uuid.uuid4().hex, self._queue_size)
        with self._lock:
            self._subscribers[subscriber.connection_id] = subscriber
            self._memberships.setdefault(subscriber.connection_id, set())
        logger.info("Client connected: %s", subscriber.connection_id)
        return subscriber

    def join(self, connection_id: str, topic: str) -> None:
        with self._lock:
            if connection_id not in self._subscribers:
                raise KeyError(f"Unknown connection: {connection_id}")
            self._topics.setdefault(topic, set()).add(connection_id)
            self._memberships[connection_id].add(topic)
        logger.debug("Connection %s joined %s", connection_id, topic)

    def leave(self, connection_id: str, topic: str) -> None:
        with self._lock:
            self._discard(connection_id, topic)
            topics = self._memberships.get(connection_id)
            if topics is not None:
                topics.discard(topic)
        logger.debug("Connection %s left %s", connection_id, topic)

    def leave_all(self, connection_id: str) -> None:
        """Disconnect hook: drop every membership and close the outbox."""
        with self._lock:
            topics = self._memberships.pop(connection_id, set())
            for topic in topics:
                self._discard(connection_id, topic)
            subscriber = self._subscribers.pop(connection_id, None)
        if subscriber is not None:
            subscriber.close()
            logger.info(
                "Client disconnected: %s (left %d topics)", connection_id, len(topics)
            )

    def publish(self, topic: str, event: Dict[str, Any]) -> int:
        """Fan an event out to everyone on the topic right now."""
        with self._lock:
            recipients = [
                self._subscribers[connection_id]
                for connection_id in self._topics.get(topic, ())
                if connection_id in self._subscribers
            ]

        delivered = 0
        for subscriber in recipients:
            if subscriber.deliver(event):
                delivered += 1
        logger.debug("Published %s to %s: %d recipients", event.get("type"), topic, delivered)
        return delivered

    def send(self, connection_id: str, event: Dict[str, Any]) -> bool:
        """Point-to-point delivery to a single connection."""
        with self._lock:
            subscriber = self._subscribers.get(connection_id)
        if subscriber is None:
            return False
        return subscriber.deliver(event)

    def subscribers(self, topic: str) -> Set[str]:
        with self._lock:
            return set(self._topics.get(topic, ()))

    def topics_for(self, connection_id: str) -> Set[str]:
        with self._lock:
            return set(self._memberships.get(connection_id, ()))

    def stats(self) -> Dict[str, int]:
        with self._lock:
            return {
                "connections": len(self._subscribers),
                "topics": len(self._topics),
                "subscriptions": sum(len(members) for members in self._topics.values()),
            }

    def _discard(self, connection_id: str, topic: str) -> None:
        members = self._topics.get(topic)
        if members is None:
            return
        members.discard(connection_id)
        if not members:
            del self._topics[topic]
