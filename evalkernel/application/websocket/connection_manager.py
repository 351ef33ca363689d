from typing import Dict, Any, Callable
from fastapi import WebSocket
import asyncio
import structlog

from evalkernel.application.channel import encode_message

logger = structlog.get_logger(__name__)


class ConnectionManager:
    """Manages kernel WebSocket connections and their outbound queues"""

    def __init__(self):
        self.active_connections: Dict[str, WebSocket] = {}
        self._outboxes: Dict[str, asyncio.Queue] = {}
        self._pumps: Dict[str, asyncio.Task] = {}
        self._lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket, session_id: str):
        """Accept a new WebSocket connection and start its sender"""
        await websocket.accept()

        async with self._lock:
            outbox: asyncio.Queue = asyncio.Queue()
            self.active_connections[session_id] = websocket
            self._outboxes[session_id] = outbox
            self._pumps[session_id] = asyncio.create_task(self._pump(session_id, websocket, outbox))

        logger.info("WebSocket connected", session_id=session_id)

    async def disconnect(self, session_id: str):
        """Stop the sender and close the WebSocket"""
        async with self._lock:
            ws = self.active_connections.pop(session_id, None)
            pump = self._pumps.pop(session_id, None)
            self._outboxes.pop(session_id, None)

        if pump is not None:
            pump.cancel()

        if ws is not None:
            try:
                await ws.close()
            except Exception as e:
                logger.debug("Error closing WebSocket", session_id=session_id, error=str(e))

        logger.info("WebSocket disconnected", session_id=session_id)

    def send(self, session_id: str, message: Any) -> bool:
        """Queue a message for a session; never blocks"""
        outbox = self._outboxes.get(session_id)
        if outbox is None:
            logger.warning("Attempted to send to disconnected session", session_id=session_id)
            return False

        outbox.put_nowait(message)
        return True

    def sender(self, session_id: str) -> Callable[[Any], bool]:
        """Send capability bound to one session"""
        return lambda message: self.send(session_id, message)

    async def _pump(self, session_id: str, websocket: WebSocket, outbox: asyncio.Queue):
        while True:
            message = await outbox.get()
            try:
                await websocket.send_text(encode_message(message))
            except Exception as e:
                logger.error("Failed to send message", session_id=session_id, error=str(e))
