from typing import Literal
from pydantic import BaseModel, Field
import os

from evalkernel.domain.models.kernel_state import KernelConfig

TRUTHY = ("1", "true", "yes", "on")


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in TRUTHY


class WorkerSettings(BaseModel):
    """Process-level worker settings"""
    debug: bool = False
    log_level: str = "INFO"
    log_format: Literal["json", "console"] = "json"
    await_execution: bool = Field(default=False, description="Default for new contexts")
    host: str = "127.0.0.1"
    port: int = 8000

    @classmethod
    def from_env(cls) -> "WorkerSettings":
        """Build settings from environment variables"""

        debug = _env_flag("DEBUG")

        return cls(
            debug=debug,
            log_level=os.getenv("KERNEL_LOG_LEVEL", "DEBUG" if debug else "INFO"),
            log_format=os.getenv("KERNEL_LOG_FORMAT", "json"),
            await_execution=_env_flag("KERNEL_AWAIT_EXECUTION"),
            host=os.getenv("KERNEL_HOST", "127.0.0.1"),
            port=int(os.getenv("KERNEL_PORT", "8000")),
        )

    def context_config(self) -> KernelConfig:
        """Config template for newly created contexts"""
        return KernelConfig(await_execution=self.await_execution)
