from __future__ import annotations

import asyncio
import logging
from typing import Any

from fastapi import APIRouter, WebSocket

from storefront.realtime import Channels, get_realtime_hub

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/realtime", tags=["realtime"])


@router.get("/health")
def realtime_health():
    snapshot = get_realtime_hub().snapshot()
    channels = {
        name: snapshot.get(name, {"subscribers": 0, "state": "ok"})
        for name in sorted(set(Channels.ALL) | set(snapshot))
    }
    return {
        "ok": all(info["state"] == "ok" for info in channels.values()),
        "channels": channels,
    }


@router.websocket("/{channel}")
async def stream_channel(websocket: WebSocket, channel: str, order_id: str | None = None):
    """Relay hub broadcasts on ``channel`` as ``{"event", "payload"}`` frames.

    Hub callbacks run on whichever thread committed the session, so frames
    are handed to the socket's loop through ``call_soon_threadsafe``.
    """
    if channel not in Channels.ALL:
        await websocket.close(code=1008)
        return

    hub = get_realtime_hub()
    loop = asyncio.get_running_loop()
    frames: asyncio.Queue[dict[str, Any]] = asyncio.Queue()

    def forward(event: str, payload: dict[str, Any]) -> None:
        loop.call_soon_threadsafe(frames.put_nowait, {"event": event, "payload": payload})

    subscription = hub.subscribe(channel, None, forward, match={"order_id": order_id} if order_id else None)
    await websocket.accept()
    logger.debug("websocket joined %s order_id=%s", channel, order_id)

    receiver = asyncio.ensure_future(websocket.receive())
    try:
        while True:
            getter = asyncio.ensure_future(frames.get())
            done, _ = await asyncio.wait({receiver, getter}, return_when=asyncio.FIRST_COMPLETED)
            if receiver in done:
                if receiver.result().get("type") == "websocket.disconnect":
                    getter.cancel()
                    break
                receiver = asyncio.ensure_future(websocket.receive())
            if getter in done:
                await websocket.send_json(getter.result())
            else:
                getter.cancel()
    finally:
        receiver.cancel()
        hub.unsubscribe(subscription)
        logger.debug("websocket left %s order_id=%s", channel, order_id)
