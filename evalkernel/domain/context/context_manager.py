from typing import Dict, Any, Optional, Callable
import structlog

from evalkernel.domain.context.context import Context
from evalkernel.domain.models.kernel_state import KernelConfig, ContextId
from evalkernel.infrastructure.display.mimer import Mimer, DEFAULT_MIMER

logger = structlog.get_logger(__name__)


class ContextManager:
    """Looks up contexts by id, constructing them on first use"""

    def __init__(
        self,
        send: Callable[[Any], None],
        default_config: Optional[KernelConfig] = None,
        mimer: Mimer = DEFAULT_MIMER
    ):
        self.contexts: Dict[ContextId, Context] = {}
        self.default_config = default_config or KernelConfig()
        self.mimer = mimer
        self._send = send

    def resolve(self, context_id: ContextId, on_missing: Optional[Callable[[], None]] = None) -> Context:
        """Return the context for context_id, calling on_missing before creating it"""

        context = self.contexts.get(context_id)
        if context is not None:
            return context

        if on_missing is not None:
            on_missing()

        context = Context(
            context_id,
            self._send,
            config=self.default_config.model_copy(),
            mimer=self.mimer,
        )
        self.contexts[context_id] = context

        logger.info("Context created", context_id=context_id)

        return context

    def get(self, context_id: ContextId) -> Optional[Context]:
        return self.contexts.get(context_id)

    def discard(self, context_id: ContextId) -> bool:
        """Drop a context, releasing anything it is waiting on"""

        context = self.contexts.pop(context_id, None)
        if context is None:
            return False

        context.discard()
        return True

    def discard_all(self) -> None:
        for context_id in list(self.contexts.keys()):
            self.discard(context_id)
