"""
Execution adapter: runs a code fragment in a context's namespace.

The value of a trailing expression statement is the completion value; code
ending in any other statement completes with UNDEFINED. Top-level ``await``
is allowed, which is how evaluated code suspends on front-end requests. An
awaitable completion value is awaited before it is returned.
"""

from typing import Any, Optional, Tuple
import ast
import asyncio
import inspect
import itertools
import linecache
import structlog

from evalkernel.domain.errors import EvaluationFault
from evalkernel.domain.models.kernel_state import UNDEFINED

logger = structlog.get_logger(__name__)

COMPILE_FLAGS = ast.PyCF_ALLOW_TOP_LEVEL_AWAIT

_cell_numbers = itertools.count(1)


def register_source(code: str, context_id: Any) -> str:
    """Make the source visible to tracebacks and inspect.getsource"""

    filename = f"<kernel-{context_id}-{next(_cell_numbers)}>"
    linecache.cache[filename] = (len(code), None, code.splitlines(True), filename)
    return filename


def split_completion(code: str, filename: str) -> Tuple[ast.Module, Optional[ast.Expression]]:
    """Split code into leading statements and the trailing expression, if any"""

    tree = compile(code, filename, "exec", flags=ast.PyCF_ONLY_AST | COMPILE_FLAGS)

    if tree.body and isinstance(tree.body[-1], ast.Expr):
        statements = ast.Module(body=tree.body[:-1], type_ignores=[])
        expression = ast.Expression(body=tree.body[-1].value)
        return statements, expression

    return tree, None


async def _evaluate(tree: ast.AST, filename: str, mode: str, namespace: dict) -> Any:
    compiled = compile(tree, filename, mode, flags=COMPILE_FLAGS)
    value = eval(compiled, namespace)

    if compiled.co_flags & inspect.CO_COROUTINE:
        value = await value

    return value


async def run(code: str, context) -> Any:
    """Execute code against context.namespace and return its completion value"""

    filename = register_source(code, context.id)
    logger.debug("Executing code", context_id=context.id, filename=filename)

    try:
        statements, expression = split_completion(code, filename)

        await _evaluate(statements, filename, "exec", context.namespace)

        if expression is None:
            return UNDEFINED

        value = await _evaluate(expression, filename, "eval", context.namespace)

        # Completion values settle before the caller looks at them
        while inspect.isawaitable(value):
            value = await value

        return value

    except asyncio.CancelledError:
        raise
    except BaseException as e:
        logger.debug("Evaluation raised", context_id=context.id, error=repr(e))
        raise EvaluationFault(e) from e
