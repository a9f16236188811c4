from storefront.client.http import StorefrontAPIError, StorefrontClient
from storefront.client.list_watcher import ListRefreshWatcher
from storefront.client.push import RemoteChannelFeed, channel_url
from storefront.client.reconciliation import TERMINAL_OUTCOMES, OrderStatusReconciler, Outcome
from storefront.client.scheduling import PeriodicTask
from storefront.client.state import AppState

__all__ = [
    "AppState",
    "ListRefreshWatcher",
    "OrderStatusReconciler",
    "Outcome",
    "PeriodicTask",
    "RemoteChannelFeed",
    "StorefrontAPIError",
    "StorefrontClient",
    "TERMINAL_OUTCOMES",
    "channel_url",
]
