from typing import Any, Callable, Set
import asyncio
import structlog

from evalkernel.domain.context.context import Context
from evalkernel.domain.context.context_manager import ContextManager
from evalkernel.domain.errors import (
    EvaluationFault, MissingContextForReply, UnhandledAction
)
from evalkernel.domain.execution.executor import run
from evalkernel.domain.inspection.inspector import classify, property_names
from evalkernel.domain.models.kernel_state import Action, KernelMessage

logger = structlog.get_logger(__name__)


class Dispatcher:
    """Routes inbound kernel messages to their handlers"""

    def __init__(
        self,
        context_manager: ContextManager,
        report_fault: Callable[[BaseException], None]
    ):
        self.context_manager = context_manager
        self.report_fault = report_fault
        self._tasks: Set[asyncio.Task] = set()

    def submit(self, raw: Any) -> asyncio.Task:
        """Dispatch a message as its own task so suspended runs don't block the next one"""

        task = asyncio.get_running_loop().create_task(self.on_message(raw))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def drain(self) -> None:
        """Wait for every dispatched message to settle"""

        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def on_message(self, raw: Any) -> None:
        """Handle one decoded inbound message"""

        context = None

        try:
            message = KernelMessage.from_wire(raw)

            # Each dispatch task has its own contextvars copy
            structlog.contextvars.bind_contextvars(context_id=message.context_id)
            logger.debug("Received message", action=message.action, request_id=message.request_id)

            def on_missing():
                if message.action == Action.REPLY:
                    raise MissingContextForReply(message.context_id)

            context = self.context_manager.resolve(message.context_id, on_missing)

            await self.route(message, context)

        except Exception as error:
            if context is None:
                logger.error("Message failed before context resolution", error=str(error))
                self.report_fault(error)
            else:
                logger.info("Message failed", error=str(error))
                context.send_error(error)

    async def route(self, message: KernelMessage, context: Context) -> None:
        action = message.action

        if action == Action.GET_ALL_PROPERTY_NAMES:
            await self.on_name_request(message.code, context)
        elif action == Action.INSPECT:
            await self.on_inspect_request(message.code, context)
        elif action == Action.RUN:
            await self.on_run_request(message.code, context)
        elif action == Action.REPLY:
            self.on_reply(message, context)
        else:
            raise UnhandledAction(action)

    def on_reply(self, message: KernelMessage, context: Context) -> None:
        context.requester.receive(message.request_id, message.reply)

    async def on_name_request(self, code: str, context: Context) -> None:
        context.send({
            "id": context.id,
            "names": property_names(await run(code, context)),
            "end": True,
        })

    async def on_inspect_request(self, code: str, context: Context) -> None:
        context.send({
            "id": context.id,
            "inspection": classify(await run(code, context)).to_wire(),
            "end": True,
        })

    async def on_run_request(self, code: str, context: Context) -> None:
        context.begin_run()

        try:
            result = await run(code, context)
        except EvaluationFault as fault:
            # A result already ended this run; report on the fault channel instead
            if context.done:
                logger.warning("Evaluation failed after run ended")
                self.report_fault(fault)
                return
            raise
        finally:
            context.stdout.flush()

        # A result has already been sent for this run
        if context.done:
            return

        # The code opted into sending its own result later
        if context.async_mode:
            return

        if context.config.await_execution:
            context.helpers.send_result(result)
        else:
            context.send_result(result)
