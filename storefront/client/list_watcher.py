from __future__ import annotations

import logging
from typing import Callable

from storefront.client.push import RemoteChannelFeed
from storefront.client.scheduling import PeriodicTask
from storefront.core.config import get_settings
from storefront.realtime import Channels, RealtimeHub, get_realtime_hub

logger = logging.getLogger(__name__)


class ListRefreshWatcher:
    """Falls back to periodic reloads of a list view when push is degraded.

    Every ``check_interval_seconds`` the channel health is checked; once the
    channel is degraded ``reload`` runs every ``poll_interval_seconds`` until
    the watcher is stopped. With ``push_base_url`` the channel is read from
    the server over WebSocket into a private hub, and connection failures on
    that feed are what mark it degraded.
    """

    def __init__(
        self,
        reload: Callable[[], None],
        hub: RealtimeHub | None = None,
        channel: str = Channels.ORDERS,
        check_interval_seconds: float | None = None,
        poll_interval_seconds: float | None = None,
        push_base_url: str | None = None,
    ):
        settings = get_settings()
        check_interval_seconds = check_interval_seconds or settings.channel_health_check_seconds
        poll_interval_seconds = poll_interval_seconds or settings.list_poll_interval_seconds
        self.reload = reload
        self.hub = hub or (RealtimeHub() if push_base_url else get_realtime_hub())
        self.channel = channel
        self.feed = RemoteChannelFeed(push_base_url, channel, self.hub) if push_base_url else None
        self._checker = PeriodicTask(f"channel-health-{channel}", check_interval_seconds, self.check_once)
        self._poller = PeriodicTask(f"list-refresh-{channel}", poll_interval_seconds, self.reload)

    @property
    def polling(self) -> bool:
        return self._poller.running

    def check_once(self) -> bool:
        if self.polling or not self.hub.is_channel_failed(self.channel):
            return False
        logger.warning("channel %s degraded, refreshing lists by polling", self.channel)
        self._poller.start()
        return True

    def start(self) -> None:
        if self.feed is not None:
            self.feed.start()
        self._checker.start()

    def stop(self) -> None:
        if self.feed is not None:
            self.feed.stop()
        self._checker.stop()
        self._poller.stop()
