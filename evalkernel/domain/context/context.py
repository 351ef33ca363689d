from typing import Dict, Any, Optional, Callable, Set
import asyncio
import functools
import inspect
import traceback
import structlog

from evalkernel.domain.context.requester import Requester
from evalkernel.domain.errors import EvaluationFault
from evalkernel.domain.models.kernel_state import KernelConfig, ContextId, UNDEFINED
from evalkernel.infrastructure.display.mimer import Mimer, DEFAULT_MIMER

logger = structlog.get_logger(__name__)

HELPERS_NAME = "kernel"


class ContextStream:
    """Line-buffered text stream that forwards output as context messages"""

    def __init__(self, context: "Context", name: str):
        self.context = context
        self.name = name
        self._buffer = ""

    def write(self, text: str) -> int:
        self._buffer += text
        if "\n" in self._buffer:
            self.flush()
        return len(text)

    def flush(self) -> None:
        if self._buffer:
            text, self._buffer = self._buffer, ""
            self.context.send({"id": self.context.id, self.name: text})

    def writable(self) -> bool:
        return True


class ContextHelpers:
    """Handle exposed to evaluated code as `kernel`"""

    def __init__(self, context: "Context"):
        self._context = context

    @property
    def config(self) -> KernelConfig:
        return self._context.config

    def defer(self) -> None:
        """Opt into deferred delivery; the code sends its own result later"""
        self._context.async_mode = True

    def done(self, value: Any = UNDEFINED) -> None:
        """Finish the current run, optionally with a result"""

        if value is not UNDEFINED:
            self.send_result(value)
            return

        context = self._context
        if context.done:
            return
        context.stdout.flush()
        context.done = True
        context.send({"id": context.id, "end": True})

    def send_result(self, value: Any, keep_alive: bool = False) -> None:
        """Send a settled value right away"""
        self._context.deliver(value, keep_alive=keep_alive)

    def send_error(self, error: BaseException) -> None:
        self._context.send_error(error)

    def mime(self, value: Any) -> Dict[str, str]:
        return self._context.mimer.encode(value)

    async def request(self, payload: Any) -> Any:
        """Ask the front-end for something and wait for the reply"""
        return await self._context.requester.send(payload)

    async def input(self, prompt: str = "") -> Any:
        reply = await self.request({"input": {"prompt": prompt}})
        if isinstance(reply, dict) and "input" in reply:
            return reply["input"]
        return reply


class Context:
    """Per-conversation evaluation state and send capabilities"""

    def __init__(
        self,
        context_id: ContextId,
        send: Callable[[Any], None],
        config: Optional[KernelConfig] = None,
        mimer: Mimer = DEFAULT_MIMER
    ):
        self.id = context_id
        self.done = False
        self.async_mode = False
        self.config = config or KernelConfig()
        self.mimer = mimer
        self._send = send
        self._settling: Set[asyncio.Future] = set()

        self.requester = Requester(context_id, send)
        self.helpers = ContextHelpers(self)
        self.stdout = ContextStream(self, "stdout")
        self.namespace: Dict[str, Any] = {
            "__name__": "__main__",
            HELPERS_NAME: self.helpers,
            "print": functools.partial(print, file=self.stdout),
        }

    def begin_run(self) -> None:
        """Reset per-run flags"""
        self.done = False
        self.async_mode = False

    def send(self, message: Any) -> None:
        self._send(message)

    def send_result(self, value: Any) -> None:
        """Standard result sender; awaitable values are sent once they settle"""

        if inspect.isawaitable(value):
            future = asyncio.ensure_future(value)
            self._settling.add(future)
            future.add_done_callback(self._on_settled)
            return

        self.deliver(value)

    def deliver(self, value: Any, keep_alive: bool = False) -> None:
        """Send a result unless one was already sent for this run"""

        if self.done:
            logger.debug("Result dropped, run already done", context_id=self.id)
            return

        self.stdout.flush()
        if not keep_alive:
            self.done = True

        self.send({
            "id": self.id,
            "mime": self.mimer.encode(value),
            "end": not keep_alive,
        })

    def send_error(self, error: BaseException) -> None:
        """Send an error and end the current run"""

        self.stdout.flush()
        self.done = True
        self.send({
            "id": self.id,
            "error": format_error(error),
            "end": True,
        })

    def discard(self) -> None:
        """Release pending requests and unsettled results"""

        cancelled = self.requester.cancel_all()
        for future in list(self._settling):
            future.remove_done_callback(self._on_settled)
            future.cancel()
        self._settling.clear()

        logger.info("Context discarded", context_id=self.id, cancelled_requests=cancelled)

    def _on_settled(self, future: asyncio.Future) -> None:
        self._settling.discard(future)

        if self.done or self.async_mode:
            logger.debug("Settled result dropped", context_id=self.id, done=self.done)
            return

        if future.cancelled():
            self.send_error(asyncio.CancelledError("Result was cancelled"))
        elif future.exception() is not None:
            self.send_error(EvaluationFault(future.exception()))
        else:
            self.deliver(future.result())


def format_error(error: BaseException) -> Dict[str, Any]:
    """Error payload; evaluation faults report the exception raised by the code"""

    if isinstance(error, EvaluationFault):
        error = error.error

    return {
        "ename": type(error).__name__,
        "evalue": str(error),
        "traceback": traceback.format_exception(type(error), error, error.__traceback__),
    }
