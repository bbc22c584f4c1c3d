"""Bill change notifications over Redis pub/sub.

Writers publish a small event after every committed mutation; subscribers
re-fetch the whole bill snapshot when an event for their bill arrives.
Delivery is best-effort and unordered across writers.
"""
import asyncio
import logging
from typing import Awaitable, Callable, Optional, Union
from uuid import UUID

from pydantic import BaseModel, ValidationError

from splitbill.services.redis_store import RedisStore

logger = logging.getLogger(__name__)

CHANNEL_PREFIX = "bill:"

Predicate = Callable[["ChangeEvent"], bool]
Callback = Callable[["ChangeEvent"], Union[None, Awaitable[None]]]


def channel_for(bill_id: UUID) -> str:
    return f"{CHANNEL_PREFIX}{bill_id}"


class ChangeEvent(BaseModel):
    """A row-level change on one of a bill's tables"""
    bill_id: UUID
    table: str
    action: str  # insert | update | upsert | delete
    record_id: Optional[UUID] = None


def for_bill(bill_id: UUID) -> Predicate:
    """Predicate matching every change on one bill"""
    return lambda event: event.bill_id == bill_id


class Subscription:
    """A running subscription; call ``cancel()`` to stop it"""

    def __init__(self, pubsub, predicate: Predicate, callback: Callback):
        self._pubsub = pubsub
        self._predicate = predicate
        self._callback = callback
        self._task: Optional[asyncio.Task] = None

    @property
    def active(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> "Subscription":
        self._task = asyncio.create_task(self._run())
        return self

    async def dispatch(self, message: dict) -> bool:
        """
        Decode one pub/sub message and hand it to the callback.

        Returns:
            True if the callback was invoked
        """
        if message.get("type") not in ("message", "pmessage"):
            return False
        try:
            event = ChangeEvent.model_validate_json(message["data"])
        except (KeyError, ValidationError) as e:
            logger.warning("Dropping malformed change event: %s", e)
            return False

        if not self._predicate(event):
            return False

        result = self._callback(event)
        if asyncio.iscoroutine(result):
            await result
        return True

    async def _run(self) -> None:
        try:
            async for message in self._pubsub.listen():
                try:
                    await self.dispatch(message)
                except Exception:
                    logger.exception("Change callback failed")
        except Exception as e:
            logger.warning("Change feed listener stopped: %s", e)

    async def wait(self) -> None:
        """Block until the listener stops, either cancelled or because Redis went away"""
        if self._task is not None:
            await asyncio.wait({self._task})

    async def cancel(self) -> None:
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        try:
            await self._pubsub.punsubscribe()
            await self._pubsub.aclose()
        except Exception as e:
            logger.warning("Change feed unsubscribe failed: %s", e)


class ChangeFeed:
    """Publish and subscribe to bill change events"""

    @classmethod
    async def publish(cls, event: ChangeEvent) -> bool:
        """
        Publish a change event for its bill.

        Failures are logged and reported as False; the write that produced
        the event has already been committed.
        """
        try:
            client = await RedisStore.get_client()
            await client.publish(channel_for(event.bill_id), event.model_dump_json())
            return True
        except Exception as e:
            logger.warning("Change feed publish failed for bill %s: %s", event.bill_id, e)
            return False

    @classmethod
    async def on_change(cls, predicate: Predicate, callback: Callback) -> Subscription:
        """
        Subscribe to every bill channel and invoke ``callback`` for events
        matching ``predicate``.

        Args:
            predicate: Filter over ChangeEvent
            callback: Plain or async function taking the event

        Returns:
            The started Subscription
        """
        client = await RedisStore.get_client()
        pubsub = client.pubsub(ignore_subscribe_messages=True)
        await pubsub.psubscribe(f"{CHANNEL_PREFIX}*")
        return Subscription(pubsub, predicate, callback).start()
