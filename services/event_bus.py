"""
Simple Async Pub/Sub Event Bus

Lightweight publish/subscribe utility built on asyncio queues. Feed consumers
publish rendered views and any number of WebSocket handlers subscribe and
consume them independently.

The bus keeps the last event of every topic so a new subscriber starts from
the current view instead of waiting for the next change.
"""

import asyncio
from collections import defaultdict
from typing import Any, DefaultDict, Dict, Optional, Set

from core.logging import get_logger


class EventBus:
    """
    Async event bus with topic-based pub/sub.

    - Each subscriber gets its own asyncio.Queue and never blocks publishers.
    - publish() is synchronous so feed listeners can call it directly.
    - Unsubscribing is important to avoid queue leaks when clients disconnect.
    """

    def __init__(self, max_queue_size: int = 100) -> None:
        self._topics: DefaultDict[str, Set[asyncio.Queue]] = defaultdict(set)
        self._latest: Dict[str, Any] = {}
        self._max_queue_size = max_queue_size
        self._logger = get_logger(__name__)

    def subscribe(self, topic: str, replay_latest: bool = True) -> asyncio.Queue:
        """
        Subscribe to a topic. Returns an asyncio.Queue for receiving events.
        """
        queue: asyncio.Queue = asyncio.Queue(maxsize=self._max_queue_size)
        if replay_latest and topic in self._latest:
            queue.put_nowait(self._latest[topic])
        self._topics[topic].add(queue)
        self._logger.debug(f"Subscriber added to topic '{topic}'. total={len(self._topics[topic])}")
        return queue

    def unsubscribe(self, topic: str, queue: asyncio.Queue) -> None:
        self._topics.get(topic, set()).discard(queue)
        self._logger.debug(f"Subscriber removed from topic '{topic}'. total={len(self._topics.get(topic, ()))}")

    def publish(self, topic: str, event: Any) -> None:
        """
        Publish an event to a topic.

        A full subscriber queue drops its oldest event so slow clients
        always end up with the latest view.
        """
        self._latest[topic] = event

        for q in list(self._topics.get(topic, set())):
            if q.full():
                q.get_nowait()
                self._logger.warning(f"Dropping oldest event for topic '{topic}' due to full queue")
            q.put_nowait(event)

    def latest(self, topic: str) -> Optional[Any]:
        return self._latest.get(topic)

    def subscriber_count(self, topic: str) -> int:
        return len(self._topics.get(topic, ()))


# Singleton event bus for the application
bus = EventBus()
