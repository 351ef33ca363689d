from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from typing import Optional
import json
from datetime import datetime, timezone
import structlog

from evalkernel.application.websocket.connection_manager import ConnectionManager
from evalkernel.application.schema.events import StatusEvent, FaultEvent
from evalkernel.domain.context.context_manager import ContextManager
from evalkernel.domain.dispatch.dispatcher import Dispatcher
from evalkernel.domain.errors import MalformedMessage
from evalkernel.infrastructure.config.settings import WorkerSettings
from evalkernel.infrastructure.observability.logging import kernel_logger

logger = structlog.get_logger(__name__)


def create_app(settings: Optional[WorkerSettings] = None) -> FastAPI:
    """Build the kernel WebSocket application"""

    settings = settings or WorkerSettings.from_env()

    app = FastAPI(title="Kernel WebSocket Server")
    connection_manager = ConnectionManager()
    app.state.connection_manager = connection_manager
    app.state.settings = settings

    @app.websocket("/ws/kernel/{session_id}")
    async def kernel_websocket(websocket: WebSocket, session_id: str):
        """One kernel per connection: own contexts, own dispatcher"""

        if session_id in connection_manager.active_connections:
            await websocket.close(code=1008, reason="Session already connected")
            return

        await connection_manager.connect(websocket, session_id)
        send = connection_manager.sender(session_id)
        structlog.contextvars.bind_contextvars(session_id=session_id)

        def report_fault(error: BaseException):
            kernel_logger.log_fault(error, source="dispatcher", details={"session_id": session_id})
            send(FaultEvent.from_error(error))

        context_manager = ContextManager(send, default_config=settings.context_config())
        dispatcher = Dispatcher(context_manager, report_fault)

        send(StatusEvent(status="online"))
        kernel_logger.log_lifecycle("online", "websocket", session_id=session_id)

        try:
            while True:
                data = await websocket.receive_text()

                try:
                    raw = json.loads(data)
                except json.JSONDecodeError as e:
                    report_fault(MalformedMessage(data, f"invalid JSON: {e}"))
                    continue

                dispatcher.submit(raw)

        except WebSocketDisconnect:
            logger.info("Client disconnected", session_id=session_id)
        except Exception as e:
            logger.error("WebSocket error", error=str(e), session_id=session_id)
        finally:
            context_manager.discard_all()
            await dispatcher.drain()
            await connection_manager.disconnect(session_id)
            kernel_logger.log_lifecycle("offline", "websocket", session_id=session_id)

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {
            "status": "healthy",
            "active_connections": len(connection_manager.active_connections),
            "timestamp": datetime.now(timezone.utc).isoformat()
        }

    return app
