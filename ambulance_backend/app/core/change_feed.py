"""
Change feed for live updates.

Writers publish which documents changed; live streams subscribe and
re-query when woken. Delivery inside one process is direct. When a Redis
client is bound, events are also published on a channel and relayed to
the subscribers of every other worker.
"""

import asyncio
import json
import logging
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncIterator, Awaitable, Callable, Iterable, Optional, Set, Tuple, TypeVar

from redis.exceptions import RedisError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ambulance_backend.app.core.config import settings
from ambulance_backend.app.core.reliability import CircuitBreaker, CircuitOpenError

logger = logging.getLogger(__name__)

USERS = "users"
AMBULANCES = "ambulances"

T = TypeVar("T")


@dataclass(frozen=True)
class ChangeEvent:
    """A set of documents in one collection that were written."""
    collection: str
    document_ids: Tuple[str, ...] = ()

    def to_json(self, origin: str) -> str:
        return json.dumps({
            "origin": origin,
            "collection": self.collection,
            "document_ids": list(self.document_ids),
        })

    @classmethod
    def from_json(cls, raw: str) -> Tuple[str, "ChangeEvent"]:
        data = json.loads(raw)
        return data["origin"], cls(data["collection"], tuple(data.get("document_ids") or ()))


@dataclass(eq=False)
class Subscription:
    """
    Interest in a set of collections, optionally narrowed to one document.

    Any number of matching events between two waits collapse into one
    wake-up; the stream re-reads the current state anyway.
    """
    collections: Set[str]
    document_id: Optional[str] = None
    _changed: asyncio.Event = field(default_factory=asyncio.Event)
    _loop: asyncio.AbstractEventLoop = field(default_factory=asyncio.get_running_loop)

    def matches(self, event: ChangeEvent) -> bool:
        if event.collection not in self.collections:
            return False
        if self.document_id is None:
            return True
        return self.document_id in event.document_ids

    def notify(self) -> None:
        # Writers may publish from another thread and event loop
        try:
            current = asyncio.get_running_loop()
        except RuntimeError:
            current = None
        if current is self._loop:
            self._changed.set()
        elif not self._loop.is_closed():
            self._loop.call_soon_threadsafe(self._changed.set)

    async def wait(self) -> None:
        await self._changed.wait()
        self._changed.clear()


class ChangeFeed:
    def __init__(self, redis=None, channel: str = settings.change_feed_channel):
        self.redis = redis
        self.channel = channel
        self.origin = uuid.uuid4().hex
        self.breaker = CircuitBreaker("change-relay", failure_threshold=3, reset_timeout=30)
        self._subscriptions: Set[Subscription] = set()

    def bind(self, redis) -> None:
        self.redis = redis

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    @asynccontextmanager
    async def subscribe(self, collections: Iterable[str], document_id: Optional[str] = None) -> AsyncIterator[Subscription]:
        subscription = Subscription(set(collections), document_id)
        self._subscriptions.add(subscription)
        try:
            yield subscription
        finally:
            self._subscriptions.discard(subscription)

    def _deliver(self, event: ChangeEvent) -> None:
        for subscription in list(self._subscriptions):
            if subscription.matches(event):
                subscription.notify()

    async def publish(self, *events: ChangeEvent) -> None:
        """
        Deliver events locally, then fan them out through Redis.

        A Redis outage never fails the caller: the write already committed,
        only remote workers miss the wake-up.
        """
        for event in events:
            self._deliver(event)

        if self.redis is None:
            return

        for event in events:
            try:
                await self.breaker.call(self.redis.publish, self.channel, event.to_json(self.origin))
            except CircuitOpenError:
                logger.debug("Change relay circuit open, skipping remote publish")
                return
            except Exception as exc:
                logger.warning("Failed to publish change event to Redis: %s", exc)
                return

    async def relay(self, retry_delay: float = 5.0) -> None:
        """
        Forward events published by other workers to local subscribers.

        Runs until cancelled. A lost Redis connection is logged and the
        channel is resubscribed after retry_delay seconds.
        """
        while True:
            try:
                await self.relay_once()
            except (RedisError, OSError) as exc:
                logger.warning("Change relay lost Redis: %s; retrying in %ss", exc, retry_delay)
            else:
                logger.warning("Change relay stream ended; resubscribing in %ss", retry_delay)
            await asyncio.sleep(retry_delay)

    async def relay_once(self) -> None:
        """Consume the channel until the subscription ends or fails."""
        pubsub = self.redis.pubsub()
        try:
            await pubsub.subscribe(self.channel)
            async for message in pubsub.listen():
                if message.get("type") != "message":
                    continue
                try:
                    origin, event = ChangeEvent.from_json(message["data"])
                except (ValueError, KeyError, TypeError) as exc:
                    logger.warning("Dropping malformed change event: %s", exc)
                    continue
                if origin != self.origin:
                    self._deliver(event)
        finally:
            try:
                await pubsub.unsubscribe(self.channel)
            except (RedisError, OSError) as exc:
                logger.debug("Change relay unsubscribe failed: %s", exc)
            await pubsub.aclose()


async def watch(
    feed: "ChangeFeed",
    session_factory: async_sessionmaker,
    fetch: Callable[[AsyncSession], Awaitable[T]],
    collections: Iterable[str],
    document_id: Optional[str] = None,
) -> AsyncIterator[T]:
    """
    Yield fetch()'s result now and again after every matching change.

    A fresh session is opened per emission so no connection is held while
    waiting. The stream runs until the consumer closes it.
    """
    async with feed.subscribe(collections, document_id) as subscription:
        while True:
            async with session_factory() as db:
                snapshot = await fetch(db)
            yield snapshot
            await subscription.wait()


async def stop_relay(task: "asyncio.Task") -> None:
    """Cancel a relay task; a crash it already had is logged, not raised."""
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass
    except Exception:
        logger.exception("Change relay had stopped with an error")


change_feed = ChangeFeed()
