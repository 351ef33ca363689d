"""
Value introspection: classification and property name listing.

Every value is first classified into a closed set of kinds (see ValueKind).
Undefined, Null, Boolean, Number, String and Function are reported with fixed
constructor lists; any other value walks the classes along its MRO.

Property names are gathered by walking a "prototype chain": the value itself
(or its class, for Boolean/Number/String values) followed by the classes of
its MRO. Each link contributes the names in its own ``__dict__``.
"""

from typing import Any, Callable, Dict, List, Optional
from collections.abc import Mapping
import inspect
import numbers
import textwrap

from evalkernel.domain.models.kernel_state import (
    InspectionResult, ValueKind, UNDEFINED
)

MAX_CHAIN_DEPTH = 64

FIXED_CONSTRUCTOR_LISTS: Dict[ValueKind, List[str]] = {
    ValueKind.BOOLEAN: ["Boolean", "Object"],
    ValueKind.NUMBER: ["Number", "Object"],
    ValueKind.STRING: ["String", "Object"],
    ValueKind.FUNCTION: ["Function", "Object"],
}

# Kinds whose property walk starts at the class instead of the value
BOXED_KINDS = (ValueKind.BOOLEAN, ValueKind.NUMBER, ValueKind.STRING)


def kind_of(value: Any) -> ValueKind:
    """Classify a value into its ValueKind"""

    if value is UNDEFINED:
        return ValueKind.UNDEFINED
    if value is None:
        return ValueKind.NULL
    # bool before Number: bool is an int subclass
    if isinstance(value, bool):
        return ValueKind.BOOLEAN
    if isinstance(value, numbers.Number):
        return ValueKind.NUMBER
    if isinstance(value, str):
        return ValueKind.STRING
    if inspect.isroutine(value):
        return ValueKind.FUNCTION
    return ValueKind.OBJECT


def walk_chain(
    start: Any,
    successor: Callable[[Any], Any],
    limit: int = MAX_CHAIN_DEPTH
) -> List[Any]:
    """Follow successor() from start until None, a revisited link or limit links"""

    chain: List[Any] = []
    visited = set()
    link = start

    while link is not None and len(chain) < limit:
        if id(link) in visited:
            break
        visited.add(id(link))
        chain.append(link)
        link = successor(link)

    return chain


def _linear_successor(links: List[Any]) -> Callable[[Any], Any]:
    following = {id(current): after for current, after in zip(links, links[1:])}
    return lambda link: following.get(id(link))


def _prototype_chain(value: Any, kind: ValueKind) -> List[Any]:
    start = type(value) if kind in BOXED_KINDS else value

    if isinstance(start, type):
        links = list(start.__mro__)
    else:
        links = [start] + list(type(start).__mro__)

    return walk_chain(links[0], _linear_successor(links))


def _own_names(link: Any) -> List[str]:
    try:
        namespace = vars(link)
    except TypeError:
        return []

    if not isinstance(namespace, Mapping):
        return []

    return sorted(name for name in namespace.keys() if isinstance(name, str))


def property_names(value: Any) -> List[str]:
    """All property names along the value's prototype chain, first-seen order"""

    kind = kind_of(value)
    if kind in (ValueKind.UNDEFINED, ValueKind.NULL):
        return []

    names: List[str] = []
    seen = set()

    for link in _prototype_chain(value, kind):
        for name in _own_names(link):
            if name not in seen:
                seen.add(name)
                names.append(name)

    return names


def constructor_list(value: Any) -> List[str]:
    """Class names from type(value) to object"""

    mro = list(type(value).__mro__)
    return [cls.__name__ for cls in walk_chain(mro[0], _linear_successor(mro))]


def _render(value: Any) -> str:
    try:
        return repr(value)
    except Exception:
        return object.__repr__(value)


def _function_source(function: Any) -> str:
    try:
        return textwrap.dedent(inspect.getsource(function)).rstrip("\n")
    except (OSError, TypeError):
        return _render(function)


def _required_positional_count(function: Any) -> Optional[int]:
    try:
        parameters = inspect.signature(function).parameters.values()
    except (TypeError, ValueError):
        return None

    positional = (
        inspect.Parameter.POSITIONAL_ONLY,
        inspect.Parameter.POSITIONAL_OR_KEYWORD,
    )
    return sum(
        1 for p in parameters
        if p.kind in positional and p.default is inspect.Parameter.empty
    )


def _length(value: Any) -> Optional[int]:
    if not hasattr(type(value), "__len__"):
        return None
    try:
        return len(value)
    except Exception:
        return None


def classify(value: Any) -> InspectionResult:
    """Describe a value: rendering, type name, constructor chain and length"""

    kind = kind_of(value)

    if kind == ValueKind.UNDEFINED:
        return InspectionResult(string="undefined", type=kind.value)

    if kind == ValueKind.NULL:
        return InspectionResult(string="None", type=kind.value)

    if kind in (ValueKind.BOOLEAN, ValueKind.NUMBER):
        return InspectionResult(
            string=repr(value),
            type=kind.value,
            constructor_list=list(FIXED_CONSTRUCTOR_LISTS[kind]),
        )

    if kind == ValueKind.STRING:
        return InspectionResult(
            string=value,
            type=kind.value,
            constructor_list=list(FIXED_CONSTRUCTOR_LISTS[kind]),
            length=len(value),
        )

    if kind == ValueKind.FUNCTION:
        return InspectionResult(
            string=_function_source(value),
            type=kind.value,
            constructor_list=list(FIXED_CONSTRUCTOR_LISTS[kind]),
            length=_required_positional_count(value),
        )

    constructors = constructor_list(value)
    return InspectionResult(
        string=_render(value),
        type=constructors[0] if constructors else "",
        constructor_list=constructors,
        length=_length(value),
    )
