"""
Kernel error taxonomy
"""

from typing import Any


class KernelError(Exception):
    """Base class for errors raised by the kernel itself"""


class MalformedMessage(KernelError):
    """Inbound message could not be decoded"""

    def __init__(self, message: Any, reason: str):
        self.message = message
        self.reason = reason
        super().__init__(f"Malformed message ({reason}): {message!r}")


class UnhandledAction(KernelError):
    """Dispatcher received an action outside the known set"""

    def __init__(self, action: Any):
        self.action = action
        super().__init__(f"Unhandled action: {action}")


class MissingContextForReply(KernelError):
    """A reply named a context that does not exist"""

    def __init__(self, context_id: Any):
        self.context_id = context_id
        super().__init__(f"Received a reply for a missing context: {context_id}")


class UnknownRequestId(KernelError):
    """A reply named a request id with no pending waiter"""

    def __init__(self, request_id: Any):
        self.request_id = request_id
        super().__init__(f"No pending request with id: {request_id}")


class EvaluationFault(KernelError):
    """Evaluated code raised; the original exception is kept as __cause__"""

    def __init__(self, error: BaseException):
        self.error = error
        super().__init__(f"{type(error).__name__}: {error}")
