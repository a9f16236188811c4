from __future__ import annotations

import json
import logging
import threading
from typing import Any, Callable

import httpx
from websockets.exceptions import ConnectionClosed, WebSocketException
from websockets.sync.client import connect as ws_connect

from storefront.core.config import get_settings
from storefront.realtime import RealtimeHub

logger = logging.getLogger(__name__)


def channel_url(base_url: str, channel: str, order_id: str | None = None) -> str:
    url = httpx.URL(base_url)
    scheme = "wss" if url.scheme == "https" else "ws"
    params = {"order_id": order_id} if order_id else None
    return str(url.copy_with(scheme=scheme, path=f"{url.path.rstrip('/')}/realtime/{channel}", params=params))


class RemoteChannelFeed:
    """Mirrors one server realtime channel into a local hub.

    Frames from ``WS /realtime/{channel}`` are rebroadcast on ``hub`` so
    subscribers there see server events from another process. A failed or
    timed-out connect, or a dropped connection, marks the channel degraded on
    ``hub`` and the feed reconnects after ``reconnect_seconds``; the next
    successful connect marks it healthy again.
    """

    def __init__(
        self,
        base_url: str,
        channel: str,
        hub: RealtimeHub,
        order_id: str | None = None,
        connect_timeout_seconds: float | None = None,
        reconnect_seconds: float | None = None,
        connect: Callable[..., Any] = ws_connect,
    ):
        settings = get_settings()
        self.url = channel_url(base_url, channel, order_id)
        self.channel = channel
        self.hub = hub
        self.connect_timeout_seconds = connect_timeout_seconds or settings.realtime_connect_timeout_seconds
        self.reconnect_seconds = reconnect_seconds or settings.realtime_reconnect_seconds
        self._connect = connect
        self._stop = threading.Event()
        self._connected = threading.Event()
        self._lock = threading.Lock()
        self._connection: Any = None
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def wait_connected(self, timeout: float | None = None) -> bool:
        return self._connected.wait(timeout)

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name=f"realtime-feed-{self.channel}", daemon=True)
        self._thread.start()

    def stop(self, timeout: float | None = 5.0) -> None:
        self._stop.set()
        with self._lock:
            connection = self._connection
        if connection is not None:
            connection.close()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
        self._thread = None

    def _degrade(self, reason: str) -> None:
        self._connected.clear()
        logger.warning("realtime feed %s %s", self.url, reason)
        self.hub.mark_failed(self.channel)

    def _dispatch(self, raw: str | bytes) -> None:
        try:
            frame = json.loads(raw)
        except ValueError:
            frame = None
        if not isinstance(frame, dict) or not isinstance(frame.get("event"), str):
            logger.warning("realtime feed %s dropped malformed frame", self.url)
            return
        payload = frame.get("payload")
        self.hub.broadcast(self.channel, frame["event"], payload if isinstance(payload, dict) else {})

    def _run(self) -> None:
        while not self._stop.is_set():
            try:
                connection = self._connect(self.url, open_timeout=self.connect_timeout_seconds)
            except TimeoutError:
                self._degrade("timed out")
            except (OSError, WebSocketException) as exc:
                self._degrade(f"channel error: {exc}")
            else:
                self._consume(connection)
            self._stop.wait(self.reconnect_seconds)

    def _consume(self, connection: Any) -> None:
        with self._lock:
            self._connection = connection
        self.hub.mark_healthy(self.channel)
        self._connected.set()
        logger.info("realtime feed connected to %s", self.url)
        try:
            while not self._stop.is_set():
                self._dispatch(connection.recv())
        except ConnectionClosed as exc:
            if not self._stop.is_set():
                self._degrade(f"closed: {exc}")
        except (OSError, WebSocketException) as exc:
            if not self._stop.is_set():
                self._degrade(f"channel error: {exc}")
        finally:
            with self._lock:
                self._connection = None
            connection.close()
