from typing import Optional, Literal
from pydantic import BaseModel, Field
from datetime import datetime, timezone
import traceback


class BaseEvent(BaseModel):
    """Base model for process-level channel events"""
    timestamp: Optional[datetime] = Field(default_factory=lambda: datetime.now(timezone.utc))


class StatusEvent(BaseEvent):
    """Liveness signal sent before any message is accepted"""
    status: Literal["online", "offline"]


class FaultEvent(BaseEvent):
    """Fault not attributable to a context"""
    stderr: str

    @classmethod
    def from_error(cls, error: BaseException) -> "FaultEvent":
        """Create a fault event carrying the formatted traceback"""
        return cls(
            stderr="".join(traceback.format_exception(type(error), error, error.__traceback__))
        )
