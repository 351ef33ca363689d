"""
Default display encoder.

Produces MIME bundles for values sent as results. ``text/plain`` is always
present; richer representations come from the value's own ``_repr_*_`` hooks.
"""

from typing import Dict, Any, Tuple
from dataclasses import dataclass
import json
import structlog

logger = structlog.get_logger(__name__)

DEFAULT_HOOKS: Tuple[Tuple[str, str], ...] = (
    ("text/html", "_repr_html_"),
    ("text/markdown", "_repr_markdown_"),
    ("text/latex", "_repr_latex_"),
    ("image/svg+xml", "_repr_svg_"),
    ("application/json", "_repr_json_"),
)


@dataclass(frozen=True)
class Mimer:
    """Encodes values into MIME bundles"""
    hooks: Tuple[Tuple[str, str], ...] = DEFAULT_HOOKS

    def encode(self, value: Any) -> Dict[str, str]:
        """Build the MIME bundle for a value"""

        bundle = {"text/plain": self._plain(value)}

        custom = self._call_hook(value, "_repr_mimebundle_")
        if isinstance(custom, dict):
            bundle.update({str(k): self._as_text(v) for k, v in custom.items()})
            return bundle

        for mime_type, hook in self.hooks:
            rendered = self._call_hook(value, hook)
            if rendered is not None:
                bundle[mime_type] = self._as_text(rendered)

        return bundle

    def _plain(self, value: Any) -> str:
        try:
            return repr(value)
        except Exception:
            return object.__repr__(value)

    def _call_hook(self, value: Any, hook: str) -> Any:
        # Hooks are looked up on the class, so classes themselves are skipped
        method = getattr(type(value), hook, None)
        if method is None or isinstance(value, type):
            return None

        try:
            return method(value)
        except Exception as e:
            logger.warning("Display hook failed", hook=hook, error=str(e))
            return None

    def _as_text(self, rendered: Any) -> str:
        if isinstance(rendered, str):
            return rendered
        if isinstance(rendered, bytes):
            return rendered.decode("utf-8", errors="replace")
        return json.dumps(rendered, default=str)


# Process-wide encoder, created once at import
DEFAULT_MIMER = Mimer()
