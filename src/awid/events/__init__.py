"""Event fan-out for AWID.

Provides best-effort live notifications:
- PubSubChannel: publish/subscribe over Redis Pub/Sub
- LiveNotifier: broadcast envelope with recipient filtering
"""

from awid.events.notifications import (
    BroadcastOptions,
    LiveEventType,
    LiveNotification,
    LiveNotifier,
)
from awid.events.pubsub import PubSubChannel

__all__ = [
    "PubSubChannel",
    "LiveNotifier",
    "LiveNotification",
    "LiveEventType",
    "BroadcastOptions",
]
