import asyncio
from typing import Any, Awaitable, Callable

from fastapi import WebSocket, WebSocketDisconnect

from ..services.live_feed import LiveFeedHub
from ..utils.logging import get_logger

logger = get_logger(__name__)


async def stream_collection(
    websocket: WebSocket,
    feed: LiveFeedHub,
    collection: str,
    loader: Callable[[], Awaitable[Any]],
    key: str
) -> None:
    """
    Send ``{"collection": ..., key: snapshot}`` on connect and after every
    change until the client disconnects or the hub closes.
    """

    async def pump():
        async for snapshot in feed.snapshots(collection, loader):
            await websocket.send_json({"collection": collection, key: snapshot})

    async def wait_for_disconnect():
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                return

    tasks = {asyncio.create_task(pump()), asyncio.create_task(wait_for_disconnect())}
    try:
        done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
    finally:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    for task in done:
        error = task.exception()
        if error is not None and not isinstance(error, WebSocketDisconnect):
            raise error

    logger.debug(f"Live feed for {collection} closed")
