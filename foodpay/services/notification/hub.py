"""In-process WebSocket hub delivering live events to joined channels.

`publish` may be called from request worker threads. It never awaits a
socket: each subscriber owns a bounded queue drained by a pump task on the
subscriber's own event loop, and messages are handed over with
`call_soon_threadsafe`. Delivery is at-most-once and nothing is persisted.
"""

import asyncio
import threading
from typing import Any

from foodpay.common.logging import logger
from foodpay.services.notification.fanout import ADMIN_CHANNEL, customer_channel


class Subscriber:
    """One connected socket plus the channels it has joined."""

    def __init__(
        self,
        websocket,
        customer_id: str | None,
        is_admin: bool,
        loop: asyncio.AbstractEventLoop,
        queue_size: int,
        send_timeout: float,
    ) -> None:
        self.websocket = websocket
        self.customer_id = customer_id
        self.is_admin = is_admin
        self.loop = loop
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=queue_size)
        self.send_timeout = send_timeout
        self.channels: set[str] = set()

    def offer(self, message: dict[str, Any]) -> None:
        try:
            self.queue.put_nowait(message)
        except asyncio.QueueFull:
            logger.warning(
                "notification_dropped reason=queue_full customer_id=%s event=%s",
                self.customer_id,
                message.get("event"),
            )

    async def pump(self) -> None:
        """Drain queued messages to the socket until cancelled or the socket dies."""

        while True:
            message = await self.queue.get()
            try:
                await asyncio.wait_for(self.websocket.send_json(message), timeout=self.send_timeout)
            except asyncio.TimeoutError:
                logger.warning(
                    "notification_dropped reason=send_timeout customer_id=%s event=%s",
                    self.customer_id,
                    message.get("event"),
                )
            except Exception as exc:
                logger.warning(
                    "notification_dropped reason=send_failed customer_id=%s event=%s error=%s",
                    self.customer_id,
                    message.get("event"),
                    exc,
                )


class NotificationHub:
    """Channel registry implementing the fanout transport protocol."""

    def __init__(self, queue_size: int = 100, send_timeout: float = 2.0) -> None:
        self.queue_size = queue_size
        self.send_timeout = send_timeout
        self._channels: dict[str, set[Subscriber]] = {}
        self._lock = threading.Lock()

    def subscribe(self, websocket, customer_id: str | None, is_admin: bool) -> Subscriber:
        """Register a socket; must run on the socket's event loop."""

        subscriber = Subscriber(
            websocket,
            customer_id,
            is_admin,
            asyncio.get_running_loop(),
            self.queue_size,
            self.send_timeout,
        )
        if customer_id:
            self.join(subscriber, customer_channel(customer_id))
        if is_admin:
            self.join(subscriber, ADMIN_CHANNEL)
        return subscriber

    def join(self, subscriber: Subscriber, channel: str) -> None:
        with self._lock:
            self._channels.setdefault(channel, set()).add(subscriber)
            subscriber.channels.add(channel)

    def leave(self, subscriber: Subscriber, channel: str) -> None:
        with self._lock:
            members = self._channels.get(channel)
            if members is not None:
                members.discard(subscriber)
                if not members:
                    del self._channels[channel]
            subscriber.channels.discard(channel)

    def unsubscribe(self, subscriber: Subscriber) -> None:
        for channel in list(subscriber.channels):
            self.leave(subscriber, channel)

    def subscriber_count(self, channel: str) -> int:
        with self._lock:
            return len(self._channels.get(channel, ()))

    def publish(self, channel: str, event: str, payload: dict[str, Any]) -> None:
        message = {"event": event, "channel": channel, "data": payload}
        with self._lock:
            members = list(self._channels.get(channel, ()))
        for subscriber in members:
            try:
                subscriber.loop.call_soon_threadsafe(subscriber.offer, message)
            except RuntimeError:
                # Loop already closed: the connection is gone.
                logger.warning("notification_subscriber_gone channel=%s", channel)
                self.unsubscribe(subscriber)
