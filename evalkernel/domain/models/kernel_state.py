from typing import Dict, Any, Optional, List, Union
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from enum import Enum

from evalkernel.domain.errors import MalformedMessage


class Action(str, Enum):
    """Inbound message actions"""
    GET_ALL_PROPERTY_NAMES = "getAllPropertyNames"
    INSPECT = "inspect"
    RUN = "run"
    REPLY = "reply"


class ValueKind(str, Enum):
    """Closed set of value classifications"""
    UNDEFINED = "Undefined"
    NULL = "Null"
    BOOLEAN = "Boolean"
    NUMBER = "Number"
    STRING = "String"
    FUNCTION = "Function"
    OBJECT = "Object"


class _Undefined:
    """Completion value of code that ends in a statement"""

    _instance: Optional["_Undefined"] = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "undefined"

    def __bool__(self) -> bool:
        return False

    def __reduce__(self):
        return (_Undefined, ())


UNDEFINED = _Undefined()

ContextId = Union[int, str]


class KernelConfig(BaseModel):
    """Per-context configuration, mutable from evaluated code"""
    model_config = ConfigDict(validate_assignment=True)

    await_execution: bool = Field(
        default=False,
        description="Deliver run results through the immediate sender",
    )


class KernelMessage(BaseModel):
    """Decoded inbound message"""
    action: Any
    code: Any = None
    context_id: ContextId
    request_id: Optional[ContextId] = None

    @property
    def reply(self) -> Any:
        """Reply payload; shares slot 1 with code"""
        return self.code

    @classmethod
    def from_wire(cls, raw: Any) -> "KernelMessage":
        """Decode an `[action, code, contextId, requestId?]` array"""

        if not isinstance(raw, (list, tuple)):
            raise MalformedMessage(raw, "expected an array")
        if len(raw) < 3:
            raise MalformedMessage(raw, "expected at least 3 items")

        try:
            return cls(
                action=raw[0],
                code=raw[1],
                context_id=raw[2],
                request_id=raw[3] if len(raw) > 3 else None,
            )
        except ValidationError as e:
            raise MalformedMessage(raw, str(e)) from e


class InspectionResult(BaseModel):
    """Structured description of a value"""
    model_config = ConfigDict(populate_by_name=True)

    string: str
    type: str
    constructor_list: Optional[List[str]] = Field(default=None, alias="constructorList")
    length: Optional[int] = None

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)
