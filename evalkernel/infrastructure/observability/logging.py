import structlog
import logging
import sys
from typing import Dict, Any, Optional, TextIO
import os


def setup_logging(
    log_level: str = "INFO",
    log_format: str = "json",
    service_name: str = "evalkernel",
    stream: Optional[TextIO] = None
) -> None:
    """Setup structured logging configuration"""

    # stdout may be the kernel channel, so logs default to stderr
    logging.basicConfig(
        format="%(message)s",
        stream=stream or sys.stderr,
        level=getattr(logging, log_level.upper(), logging.INFO),
        force=True,
    )

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    structlog.contextvars.bind_contextvars(
        service=service_name,
        pid=os.getpid(),
        version=os.getenv("SERVICE_VERSION", "unknown")
    )


class KernelLogger:
    """Specialized logger for worker lifecycle and process faults"""

    def __init__(self, name: str):
        self.logger = structlog.get_logger(name)

    def log_lifecycle(self, status: str, transport: str, **kwargs):
        """Log worker start/stop events"""

        self.logger.info(
            "kernel_lifecycle",
            status=status,
            transport=transport,
            **kwargs
        )

    def log_fault(
        self,
        error: BaseException,
        source: str,
        details: Optional[Dict[str, Any]] = None
    ):
        """Log a fault that is not attributable to a context"""

        self.logger.error(
            "kernel_fault",
            source=source,
            error_type=type(error).__name__,
            error=str(error),
            details=details or {},
            exc_info=error,
        )


# Global logger instance
kernel_logger = KernelLogger("evalkernel")
