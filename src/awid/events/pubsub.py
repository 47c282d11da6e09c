"""Best-effort fan-out over Redis Pub/Sub.

Messages go to whoever is subscribed at publish time and are then gone:
- no persistence, a late subscriber never sees earlier messages
- no acknowledgment or retry, a listener that blips loses what was sent meanwhile

That is enough for live, advisory notifications ("a new order arrived")
because clients reconcile on their next full fetch.

Publishing uses the primary connection. Subscribing uses the dedicated
subscriber connection, created on the first subscribe and shared by every
channel.

Example:
    channel = PubSubChannel(connection)

    async def on_order(event: dict) -> None:
        await push_to_clients(event)

    await channel.subscribe("orders", on_order)
    await channel.publish("orders", {"id": "o-1", "status": "created"})
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any, cast

from awid.cache.connection import store_errors
from awid.cache.serialization import Raw, decode, encode

if TYPE_CHECKING:
    from redis.asyncio.client import PubSub

    from awid.cache.connection import RedisConnection

logger = logging.getLogger(__name__)

MessageCallback = Callable[[Any], Awaitable[None] | None]

LISTEN_TIMEOUT = 1.0


class PubSubChannel:
    """Publishes to and listens on named Redis channels.

    Callbacks receive the decoded message (structured value, or the raw
    string when it is not JSON). A failing callback is logged and does not
    stop delivery to the others.
    """

    def __init__(self, connection: RedisConnection):
        self.connection = connection
        self._callbacks: dict[str, list[MessageCallback]] = {}
        self._pubsub: PubSub | None = None
        self._task: asyncio.Task[None] | None = None
        self._running = False
        self._subscribe_lock = asyncio.Lock()

    @property
    def channels(self) -> list[str]:
        """Channels this instance is subscribed to."""
        return list(self._callbacks)

    async def publish(self, channel: str, message: Any) -> int:
        """Publish a message to a channel.

        Returns the number of subscribers that received it.
        """
        with store_errors("publish"):
            count = cast(int, await self.connection.client.publish(channel, encode(message)))
        logger.debug(f"Published to {channel} ({count} subscribers)")
        return count

    async def subscribe(self, channel: str, callback: MessageCallback) -> None:
        """Register ``callback`` for every message received on ``channel``.

        Concurrent subscribers to a new channel share one SUBSCRIBE; each
        returns only once the channel is live.
        """
        async with self._subscribe_lock:
            callbacks = self._callbacks.get(channel)
            if callbacks is not None:
                callbacks.append(callback)
                return

            pubsub = await self._get_pubsub()
            with store_errors("subscribe"):
                await pubsub.subscribe(channel)
            self._callbacks[channel] = [callback]
        logger.info(f"Subscribed to channel {channel}")

        if not self._running:
            self._running = True
            self._task = asyncio.create_task(self._listen_loop())

    async def unsubscribe(self, channel: str) -> None:
        """Stop listening on a channel and drop its callbacks."""
        if self._callbacks.pop(channel, None) is None or self._pubsub is None:
            return
        with store_errors("unsubscribe"):
            await self._pubsub.unsubscribe(channel)
        logger.info(f"Unsubscribed from channel {channel}")

    async def close(self) -> None:
        """Stop the listener and release the pubsub handle."""
        self._running = False

        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        if self._pubsub:
            await self._pubsub.aclose()
            self._pubsub = None

        self._callbacks.clear()

    async def _get_pubsub(self) -> PubSub:
        if self._pubsub is None:
            subscriber = await self.connection.subscriber()
            self._pubsub = subscriber.pubsub(ignore_subscribe_messages=True)
        return self._pubsub

    async def _listen_loop(self) -> None:
        """Main loop for receiving channel messages."""
        while self._running and self._pubsub:
            try:
                if not self._callbacks:
                    await asyncio.sleep(LISTEN_TIMEOUT)
                    continue

                message = await self._pubsub.get_message(
                    ignore_subscribe_messages=True,
                    timeout=LISTEN_TIMEOUT,
                )

                if message is None:
                    continue

                if message["type"] == "message":
                    await self._dispatch(message["channel"], message["data"])

            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Error in pub/sub listener: {e}")
                await asyncio.sleep(LISTEN_TIMEOUT)

    async def _dispatch(self, channel: str | bytes, data: str | bytes) -> None:
        """Decode a message and hand it to the channel's callbacks."""
        if isinstance(channel, bytes):
            channel = channel.decode()

        decoded = decode(data)
        if isinstance(decoded, Raw):
            logger.debug(f"Message on {channel} is not JSON, delivering raw value")

        for callback in list(self._callbacks.get(channel, [])):
            try:
                result = callback(decoded.value)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(f"Subscriber callback failed on {channel}: {e}")
