from typing import Dict, Any, Optional, TextIO
import asyncio
import json
import sys
import structlog

from evalkernel.application.channel import StdioChannel
from evalkernel.application.schema.events import StatusEvent, FaultEvent
from evalkernel.domain.context.context_manager import ContextManager
from evalkernel.domain.dispatch.dispatcher import Dispatcher
from evalkernel.domain.errors import MalformedMessage
from evalkernel.infrastructure.config.settings import WorkerSettings
from evalkernel.infrastructure.observability.logging import kernel_logger

logger = structlog.get_logger(__name__)


class KernelWorker:
    """Serves kernel messages read line by line from a text stream"""

    def __init__(
        self,
        settings: Optional[WorkerSettings] = None,
        input_stream: Optional[TextIO] = None,
        output_stream: Optional[TextIO] = None
    ):
        self.settings = settings or WorkerSettings()
        self.input_stream = input_stream or sys.stdin
        self.channel = StdioChannel(output_stream or sys.stdout)
        self.context_manager = ContextManager(
            self.channel.send,
            default_config=self.settings.context_config(),
        )
        self.dispatcher = Dispatcher(self.context_manager, self.report_fault)

    def report_fault(self, error: BaseException) -> None:
        """Process-level fault channel"""

        kernel_logger.log_fault(error, source="dispatcher")
        self.channel.send(FaultEvent.from_error(error))

    def on_uncaught_exception(self, loop: asyncio.AbstractEventLoop, context: Dict[str, Any]) -> None:
        """Event loop exception handler; the worker keeps running"""

        error = context.get("exception")
        if error is None:
            error = RuntimeError(context.get("message", "Unknown event loop error"))

        kernel_logger.log_fault(error, source="event_loop", details={"message": context.get("message")})
        self.channel.send(FaultEvent.from_error(error))

    async def read_line(self) -> str:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.input_stream.readline)

    def decode(self, line: str) -> Any:
        try:
            return json.loads(line)
        except json.JSONDecodeError as e:
            raise MalformedMessage(line, f"invalid JSON: {e}") from e

    async def serve(self) -> None:
        """Announce liveness, then dispatch messages until the input closes"""

        loop = asyncio.get_running_loop()
        loop.set_exception_handler(self.on_uncaught_exception)

        self.channel.send(StatusEvent(status="online"))
        kernel_logger.log_lifecycle("online", "stdio")

        try:
            while True:
                line = await self.read_line()
                if not line:
                    logger.info("Input closed")
                    break

                line = line.strip()
                if not line:
                    continue

                try:
                    raw = self.decode(line)
                except MalformedMessage as e:
                    self.report_fault(e)
                    continue

                self.dispatcher.submit(raw)

            # Give dispatches submitted for the last lines a chance to start
            await asyncio.sleep(0)
        finally:
            # Nobody is left to reply: release waiters so runs can settle
            self.context_manager.discard_all()
            await self.dispatcher.drain()
            kernel_logger.log_lifecycle("offline", "stdio")


async def run_worker(settings: WorkerSettings, input_stream: TextIO, output_stream: TextIO) -> None:
    worker = KernelWorker(settings, input_stream=input_stream, output_stream=output_stream)
    await worker.serve()
