"""Real-time infrastructure — in-process websocket fan-out.

Learn: Events flow in one direction:
1. A route handler finishes a database write
2. It asks the Broadcaster to publish a Notification (fire-and-forget)
3. The Broadcaster pushes the JSON frame to every socket in the
   ConnectionRegistry, pruning any that turn out to be dead

Everything lives in one process. Clients treat each notification as a
cue to refetch state, so a missed frame only delays an update.
"""

from eventhub.realtime.broadcaster import (
    Broadcaster,
    BroadcastReport,
    SendResult,
    get_broadcaster,
)
from eventhub.realtime.notifications import Notification, NotificationKind
from eventhub.realtime.registry import ConnectionRegistry

__all__ = [
    "Broadcaster",
    "BroadcastReport",
    "ConnectionRegistry",
    "Notification",
    "NotificationKind",
    "SendResult",
    "get_broadcaster",
]
