"""
Simple Async Pub/Sub Event Bus

This module provides a lightweight publish/subscribe utility built on top of
asyncio queues. Book subscriptions publish every BookUpdate on the topic
"book:<venue>:<instrument>", and any number of WebSocket handlers subscribe and
consume those updates independently.
"""

import asyncio
from typing import Any, Dict, DefaultDict, Set
from collections import defaultdict

from core.logging import get_logger


def book_topic(venue: str, instrument_id: str) -> str:
    """
    Example:
        >>> book_topic("OKX", "BTC-USDT")
        'book:OKX:BTC-USDT'
    """
    return f"book:{venue}:{instrument_id}"


class EventBus:
    """
    Async event bus with topic-based pub/sub.

    - Each subscriber gets its own asyncio.Queue and will not block publishers.
    - A full queue drops its oldest event: book consumers only care about the latest state.
    - Unsubscribing is important to avoid queue leaks when clients disconnect.
    """

    def __init__(self, max_queue_size: int = 100) -> None:
        self._topics: DefaultDict[str, Set[asyncio.Queue]] = defaultdict(set)
        self._max_queue_size = max_queue_size
        self._logger = get_logger(__name__)

    def subscriber_count(self, topic: str) -> int:
        return len(self._topics.get(topic, ()))

    async def subscribe(self, topic: str) -> asyncio.Queue:
        """
        Subscribe to a topic. Returns an asyncio.Queue for receiving events.
        """
        queue: asyncio.Queue = asyncio.Queue(maxsize=self._max_queue_size)
        self._topics[topic].add(queue)
        self._logger.debug(f"Subscriber added to topic '{topic}'. total={len(self._topics[topic])}")
        return queue

    async def unsubscribe(self, topic: str, queue: asyncio.Queue) -> None:
        """
        Unsubscribe a queue from a topic.
        """
        subscribers = self._topics.get(topic)
        if subscribers and queue in subscribers:
            subscribers.remove(queue)
            # Drain to allow GC
            while not queue.empty():
                queue.get_nowait()
            if not subscribers:
                del self._topics[topic]
        self._logger.debug(f"Subscriber removed from topic '{topic}'. total={self.subscriber_count(topic)}")

    def publish_nowait(self, topic: str, event: Dict[str, Any]) -> None:
        """
        Publish an event from synchronous code (engine callbacks run outside coroutines).
        """
        for q in list(self._topics.get(topic, ())):
            if q.full():
                q.get_nowait()
                self._logger.warning(f"Dropping oldest event for topic '{topic}' due to full queue")
            q.put_nowait(event)

    async def publish(self, topic: str, event: Dict[str, Any]) -> None:
        """
        Publish an event to a topic.
        """
        self.publish_nowait(topic, event)


# Singleton event bus for the application
bus = EventBus()
