"""Fan-out of live updates to independently-lifetimed subscribers."""
from __future__ import annotations

import asyncio
import itertools
import logging
from typing import Any, Optional

from agent_dashboard.observability import record_broadcast

logger = logging.getLogger("agent_dashboard.broadcast")

_subscriber_ids = itertools.count(1)


class Subscription:
    """One observer's bounded mailbox.

    When the mailbox is full the oldest message is dropped, so a slow
    observer skips intermediate states but always receives the newest one.
    """

    def __init__(self, maxsize: int):
        self.id = next(_subscriber_ids)
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=max(1, maxsize))
        self.closed = False
        self.dropped = 0

    def offer(self, message: Any) -> None:
        if self.closed:
            raise ConnectionError(f"subscriber {self.id} is closed")
        while True:
            try:
                self._queue.put_nowait(message)
                return
            except asyncio.QueueFull:
                try:
                    self._queue.get_nowait()
                    self.dropped += 1
                except asyncio.QueueEmpty:
                    pass

    async def get(self, timeout: Optional[float] = None) -> Any:
        if timeout is None:
            return await self._queue.get()
        return await asyncio.wait_for(self._queue.get(), timeout=timeout)

    def pending(self) -> int:
        return self._queue.qsize()

    def close(self) -> None:
        self.closed = True


class Broadcaster:
    def __init__(self, queue_size: int = 8):
        self.queue_size = queue_size
        self._subscribers: dict[int, Subscription] = {}

    def __len__(self) -> int:
        return len(self._subscribers)

    def subscribe(self) -> Subscription:
        subscription = Subscription(self.queue_size)
        self._subscribers[subscription.id] = subscription
        logger.info(f"Subscriber {subscription.id} connected ({len(self._subscribers)} total)")
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        subscription.close()
        if self._subscribers.pop(subscription.id, None) is not None:
            logger.info(f"Subscriber {subscription.id} disconnected ({len(self._subscribers)} total)")

    def publish(self, message: Any, kind: str = "") -> int:
        """Offer ``message`` to every subscriber without blocking.

        Subscribers whose channel is dead are pruned; the failure is not
        retried and never reaches the publisher.
        """
        delivered = 0
        for subscription in list(self._subscribers.values()):
            try:
                subscription.offer(message)
                delivered += 1
            except Exception as e:  # noqa: BLE001
                logger.debug(f"Pruning subscriber {subscription.id}: {e}")
                self._subscribers.pop(subscription.id, None)
        record_broadcast(kind, delivered)
        return delivered
