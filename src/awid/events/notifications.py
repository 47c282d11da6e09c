"""Live notification bridge between instances.

Business operations broadcast an event after a state change; every instance
listens on the broadcast channel and forwards matching events to the clients
connected to it (WebSocket, SSE, ...). The transport itself lives outside
this package.

Envelope on the wire:
    {"event": "order:created", "data": {...}, "options": {"organizationId": "org-1"}}

Example:
    notifier = LiveNotifier(channel)

    async def deliver(notification: LiveNotification) -> None:
        for client in connected_clients():
            if notification.is_for(client.user_id, client.organization_id, client.role):
                await client.send(notification.to_message())

    await notifier.listen(deliver)
    await notifier.broadcast(LiveEventType.ORDER_CREATED, order, organization_id=org_id)
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from awid.events.pubsub import PubSubChannel

logger = logging.getLogger(__name__)

BROADCAST_CHANNEL = "ws:broadcast"


class LiveEventType(str, Enum):
    """Events pushed to connected clients."""

    # Deliveries
    DELIVERY_ASSIGNED = "delivery:assigned"
    DELIVERY_STARTED = "delivery:started"
    DELIVERY_POSITION_UPDATE = "delivery:position"
    DELIVERY_COMPLETED = "delivery:completed"
    DELIVERY_FAILED = "delivery:failed"

    # Orders
    ORDER_CREATED = "order:created"
    ORDER_STATUS_CHANGED = "order:status"
    ORDER_CANCELLED = "order:cancelled"

    # Stock
    STOCK_LOW = "stock:low"
    STOCK_OUT = "stock:out"

    # Payments
    PAYMENT_RECEIVED = "payment:received"
    DEBT_UPDATED = "debt:updated"

    # System
    SYNC_REQUIRED = "sync:required"
    NOTIFICATION = "notification"


@dataclass
class BroadcastOptions:
    """Recipient filter carried with a broadcast."""

    organization_id: str | None = None
    user_id: str | None = None
    role: str | None = None  # Comma-separated list of allowed roles
    exclude_user_id: str | None = None

    def to_dict(self) -> dict[str, str]:
        data = {
            "organizationId": self.organization_id,
            "userId": self.user_id,
            "role": self.role,
            "excludeUserId": self.exclude_user_id,
        }
        return {k: v for k, v in data.items() if v is not None}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "BroadcastOptions":
        return cls(
            organization_id=data.get("organizationId"),
            user_id=data.get("userId"),
            role=data.get("role"),
            exclude_user_id=data.get("excludeUserId"),
        )


@dataclass
class LiveNotification:
    """A broadcast event as received by an instance."""

    event: str
    data: Any = None
    options: BroadcastOptions = field(default_factory=BroadcastOptions)

    def is_for(
        self,
        user_id: str | None,
        organization_id: str | None = None,
        role: str | None = None,
    ) -> bool:
        """Check whether a connected client should receive this event."""
        opts = self.options
        if opts.organization_id and organization_id != opts.organization_id:
            return False
        if opts.user_id and user_id != opts.user_id:
            return False
        if opts.role:
            allowed_roles = opts.role.split(",")
            if not role or role not in allowed_roles:
                return False
        if opts.exclude_user_id and user_id == opts.exclude_user_id:
            return False
        return True

    def to_message(self) -> dict[str, Any]:
        """Client-facing message shape."""
        return {"type": self.event, "payload": self.data}

    def to_envelope(self) -> dict[str, Any]:
        return {"event": self.event, "data": self.data, "options": self.options.to_dict()}

    @classmethod
    def from_envelope(cls, envelope: Any) -> "LiveNotification":
        """Parse a received envelope.

        Raises:
            ValueError: if the envelope is not a broadcast message
        """
        if not isinstance(envelope, dict) or not isinstance(envelope.get("event"), str):
            raise ValueError("Not a broadcast envelope")
        options = envelope.get("options") or {}
        if not isinstance(options, dict):
            raise ValueError("Broadcast options must be an object")
        return cls(
            event=envelope["event"],
            data=envelope.get("data"),
            options=BroadcastOptions.from_dict(options),
        )


NotificationHandler = Callable[[LiveNotification], Awaitable[None]]


class LiveNotifier:
    """Broadcasts live events to all instances over one pub/sub channel."""

    def __init__(self, channel: PubSubChannel, name: str = BROADCAST_CHANNEL):
        self.channel = channel
        self.name = name

    async def broadcast(
        self,
        event: LiveEventType | str,
        data: Any = None,
        *,
        organization_id: str | None = None,
        user_id: str | None = None,
        role: str | None = None,
        exclude_user_id: str | None = None,
    ) -> int:
        """Publish an event to every listening instance.

        Returns the number of instances that received it.
        """
        notification = LiveNotification(
            event=event.value if isinstance(event, LiveEventType) else event,
            data=data,
            options=BroadcastOptions(
                organization_id=organization_id,
                user_id=user_id,
                role=role,
                exclude_user_id=exclude_user_id,
            ),
        )
        return await self.channel.publish(self.name, notification.to_envelope())

    async def listen(self, handler: NotificationHandler) -> None:
        """Forward every received broadcast to ``handler``.

        Called once at startup. Malformed envelopes are logged and dropped.
        """

        async def on_message(message: Any) -> None:
            try:
                notification = LiveNotification.from_envelope(message)
            except ValueError as e:
                logger.error(f"Dropping malformed broadcast on {self.name}: {e}")
                return
            await handler(notification)

        await self.channel.subscribe(self.name, on_message)
