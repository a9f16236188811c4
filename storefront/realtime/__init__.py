from storefront.realtime.channels import Channels, Events, order_status_event
from storefront.realtime.hub import RealtimeHub, Subscription, get_realtime_hub
from storefront.realtime.outbox import enqueue_event

__all__ = [
    "Channels",
    "Events",
    "RealtimeHub",
    "Subscription",
    "enqueue_event",
    "get_realtime_hub",
    "order_status_event",
]
