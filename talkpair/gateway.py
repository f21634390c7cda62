"""
Connection gateway: the outbound half of the transport boundary.

The core only ever calls `deliver`, which must not block. The WebSocket
implementation queues each message for a per-connection writer task.
"""
import asyncio
import logging
from typing import Any, Dict, Optional

from aiohttp import WSCloseCode, web

logger = logging.getLogger("talkpair")


class Gateway:
    """Outbound notifications addressed to a single identity"""

    def deliver(self, identity: str, message: Dict[str, Any]) -> None:
        raise NotImplementedError

    def is_connected(self, identity: str) -> bool:
        return False

    def close(self, identity: str) -> None:
        """Drop the live connection of an identity that the core disconnected"""

    def pairing_start(self, identity: str, room_id: str, initiator: bool) -> None:
        self.deliver(identity, {
            "type": "pairing-start",
            "roomId": room_id,
            "initiator": initiator,
        })

    def relayed_message(self, identity: str, kind: str, room_id: str, payload: Any) -> None:
        self.deliver(identity, {
            "type": kind,
            "roomId": room_id,
            "payload": payload,
        })

    def call_ended(self, identity: str, room_id: str, reason: str) -> None:
        self.deliver(identity, {
            "type": "call-ended",
            "roomId": room_id,
            "reason": reason,
        })


class Connection:
    """One live WebSocket plus its outbound queue"""

    def __init__(self, identity: str, ws: web.WebSocketResponse):
        self.identity = identity
        self.ws = ws
        self.queue: "asyncio.Queue[Optional[Dict[str, Any]]]" = asyncio.Queue()
        self.writer: Optional[asyncio.Task] = None

    def start(self) -> None:
        self.writer = asyncio.ensure_future(self._drain())

    async def _drain(self) -> None:
        while True:
            message = await self.queue.get()
            if message is None:
                return
            if self.ws.closed:
                logger.debug("Dropping %s for closed socket of %s", message.get("type"), self.identity)
                continue
            try:
                await self.ws.send_json(message)
            except Exception as e:
                logger.debug(f"Failed to send to {self.identity}: {e}")

    async def stop(self) -> None:
        self.queue.put_nowait(None)
        if self.writer is not None:
            await self.writer


class WebSocketGateway(Gateway):
    """Routes notifications to the WebSocket currently bound to an identity"""

    def __init__(self):
        self._connections: Dict[str, Connection] = {}

    def __len__(self) -> int:
        return len(self._connections)

    def attach(self, identity: str, ws: web.WebSocketResponse) -> Connection:
        previous = self._connections.get(identity)
        if previous is not None:
            logger.warning("Identity %s reconnected, replacing previous socket", identity)
            asyncio.ensure_future(previous.ws.close())
        connection = Connection(identity, ws)
        connection.start()
        self._connections[identity] = connection
        logger.info(f"📡 WebSocket client {identity} connected (total: {len(self._connections)})")
        return connection

    async def detach(self, connection: Connection) -> bool:
        """Unbind a connection. Returns False if a newer socket already replaced it."""
        await connection.stop()
        if self._connections.get(connection.identity) is not connection:
            return False
        del self._connections[connection.identity]
        logger.info(f"📡 WebSocket client {connection.identity} disconnected (remaining: {len(self._connections)})")
        return True

    def deliver(self, identity: str, message: Dict[str, Any]) -> None:
        connection = self._connections.get(identity)
        if connection is None:
            logger.debug("No live connection for %s, dropping %s", identity, message.get("type"))
            return
        connection.queue.put_nowait(message)

    def is_connected(self, identity: str) -> bool:
        connection = self._connections.get(identity)
        return connection is not None and not connection.ws.closed

    def close(self, identity: str) -> None:
        connection = self._connections.get(identity)
        if connection is None or connection.ws.closed:
            return
        logger.info("Closing socket of disconnected client %s", identity)
        asyncio.ensure_future(connection.ws.close())

    async def close_all(self) -> None:
        for connection in list(self._connections.values()):
            await connection.ws.close(code=WSCloseCode.GOING_AWAY, message=b"Server shutdown")
