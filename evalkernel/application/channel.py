from typing import Any, TextIO
from pydantic import BaseModel
import json
import structlog

logger = structlog.get_logger(__name__)


def encode_message(message: Any) -> str:
    """Serialize an outbound message to one JSON document"""

    if isinstance(message, BaseModel):
        message = message.model_dump(mode="json", exclude_none=True)

    return json.dumps(message, default=repr)


class StdioChannel:
    """Writes one JSON document per line to a text stream"""

    def __init__(self, stream: TextIO):
        self.stream = stream
        self.closed = False

    def send(self, message: Any) -> bool:
        """Write a message; returns False once the stream is gone"""

        if self.closed:
            logger.warning("Attempted to send on a closed channel")
            return False

        try:
            self.stream.write(encode_message(message) + "\n")
            self.stream.flush()
            return True
        except (BrokenPipeError, ValueError) as e:
            logger.error("Channel write failed", error=str(e))
            self.closed = True
            return False
