from typing import Dict, Any, Callable, Tuple
import asyncio
import itertools
import structlog

from evalkernel.domain.errors import UnknownRequestId
from evalkernel.domain.models.kernel_state import ContextId

logger = structlog.get_logger(__name__)

REQUEST_ACTION = "request"


class Requester:
    """Correlates replies from the front-end with pending in-context requests"""

    def __init__(self, context_id: ContextId, send: Callable[[Any], None]):
        self.context_id = context_id
        self._send = send
        self._ids = itertools.count(1)
        self._waiters: Dict[int, asyncio.Future] = {}

    @property
    def pending(self) -> int:
        """Number of requests still waiting for a reply"""
        return len(self._waiters)

    def register(self) -> Tuple[int, asyncio.Future]:
        """Allocate a fresh request id and its waiter"""

        request_id = next(self._ids)
        waiter = asyncio.get_running_loop().create_future()
        self._waiters[request_id] = waiter
        return request_id, waiter

    async def send(self, payload: Any) -> Any:
        """Emit a request to the front-end and wait for its reply"""

        request_id, waiter = self.register()

        logger.debug("Sending request", context_id=self.context_id, request_id=request_id)

        try:
            self._send([REQUEST_ACTION, payload, self.context_id, request_id])
            return await waiter
        finally:
            self._waiters.pop(request_id, None)

    def receive(self, request_id: Any, payload: Any) -> None:
        """Resolve the waiter registered under request_id"""

        waiter = self._waiters.pop(request_id, None)
        if waiter is None or waiter.done():
            raise UnknownRequestId(request_id)

        logger.debug("Received reply", context_id=self.context_id, request_id=request_id)
        waiter.set_result(payload)

    def cancel_all(self) -> int:
        """Cancel every pending waiter and return how many were cancelled"""

        waiters = list(self._waiters.values())
        self._waiters.clear()

        for waiter in waiters:
            waiter.cancel()

        return len(waiters)
