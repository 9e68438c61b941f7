from __future__ import annotations

import asyncio
import logging
import threading
from dataclasses import dataclass
from typing import Any, Optional

logger = logging.getLogger(__name__)

QUEUE_SIZE = 256


class SubscriberOverflow(Exception):
    """Raised to a reader whose queue filled up; it must resync from a snapshot."""


@dataclass(eq=False)
class Subscription:
    raffle_id: str
    loop: asyncio.AbstractEventLoop
    queue: asyncio.Queue
    overflowed: bool = False

    def offer(self, event: Optional[dict]) -> None:
        if self.overflowed:
            return
        try:
            self.queue.put_nowait(event)
        except asyncio.QueueFull:
            self.overflowed = True
            while not self.queue.empty():
                self.queue.get_nowait()
            self.queue.put_nowait(None)
            logger.warning("Ticket feed subscriber for raffle %s fell behind", self.raffle_id)

    async def get(self) -> dict:
        event = await self.queue.get()
        if event is None:
            raise SubscriberOverflow(self.raffle_id)
        return event


def ticket_update_event(row: dict) -> dict:
    return {"event": "UPDATE", "table": "tickets", "new": row}


class TicketFeed:
    """Fan-out of ticket row updates to the sockets watching one raffle.

    Publishing is safe from worker threads (sync route handlers); delivery
    happens on the loop that owns each subscription. A subscriber that lets
    ``queue_size`` events pile up is cut off instead of buffering forever.
    """

    def __init__(self, queue_size: int = QUEUE_SIZE) -> None:
        self.queue_size = queue_size
        self._lock = threading.Lock()
        self._subscribers: dict[str, set[Subscription]] = {}

    def subscribe(self, raffle_id: str) -> Subscription:
        subscription = Subscription(
            raffle_id=str(raffle_id),
            loop=asyncio.get_running_loop(),
            queue=asyncio.Queue(maxsize=self.queue_size),
        )
        with self._lock:
            self._subscribers.setdefault(subscription.raffle_id, set()).add(subscription)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        with self._lock:
            subscribers = self._subscribers.get(subscription.raffle_id)
            if not subscribers:
                return
            subscribers.discard(subscription)
            if not subscribers:
                del self._subscribers[subscription.raffle_id]

    def subscriber_count(self, raffle_id: str) -> int:
        with self._lock:
            return len(self._subscribers.get(str(raffle_id), ()))

    def publish(self, raffle_id: str, row: dict[str, Any]) -> int:
        event = ticket_update_event(row)
        with self._lock:
            subscribers = list(self._subscribers.get(str(raffle_id), ()))
        delivered = 0
        for subscription in subscribers:
            if subscription.overflowed:
                self.unsubscribe(subscription)
                continue
            try:
                subscription.loop.call_soon_threadsafe(subscription.offer, event)
            except RuntimeError:
                logger.info("Dropping ticket feed subscriber with closed loop (raffle %s)", raffle_id)
                self.unsubscribe(subscription)
                continue
            delivered += 1
        return delivered
