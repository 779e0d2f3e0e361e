"""Serialized access to one websocket connection.

A channel is read by exactly one task (the connection's own read loop) but may
be written by many: its owner, plus every other connection that forwards an
envelope to it. Writes go through a per-channel ``asyncio.Lock`` so that
concurrent forwards to one recipient never interleave within a frame.
"""

import asyncio
import json
from typing import TYPE_CHECKING, Any, Optional, Union

if TYPE_CHECKING:
    from websockets.asyncio.server import ServerConnection


class Channel:
    """Full-duplex message channel wrapping a websocket connection.

    Attributes:
        websocket: Underlying connection (anything with ``recv``, ``send``
            and ``close`` coroutines).
    """

    def __init__(self, websocket: "ServerConnection"):
        self.websocket = websocket
        self._write_lock = asyncio.Lock()

    @property
    def remote_address(self) -> Optional[Any]:
        return getattr(self.websocket, "remote_address", None)

    async def read_message(self) -> Union[str, bytes]:
        """Wait for the next inbound message.

        Raises:
            websockets.exceptions.ConnectionClosed: When the connection is
                closed, normally or otherwise.
        """
        return await self.websocket.recv()

    async def write_message(self, payload: str) -> None:
        """Write one complete text message.

        Raises:
            websockets.exceptions.ConnectionClosed: If the connection is gone.
        """
        async with self._write_lock:
            await self.websocket.send(payload)

    async def write_json(self, value: Any) -> None:
        await self.write_message(json.dumps(value))

    async def close(self, code: int = 1000, reason: str = "") -> None:
        await self.websocket.close(code, reason)
