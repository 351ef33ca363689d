"""
Kernel worker entry point.

    python -m evalkernel                         # JSON lines over stdin/stdout
    python -m evalkernel --transport websocket   # FastAPI WebSocket server
"""

from typing import List, Optional
import argparse
import asyncio
import contextlib
import sys

from evalkernel.application.worker import run_worker
from evalkernel.infrastructure.config.settings import WorkerSettings
from evalkernel.infrastructure.observability.logging import setup_logging


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="evalkernel", description="Code evaluation kernel worker")
    parser.add_argument("--transport", choices=["stdio", "websocket"], default="stdio")
    parser.add_argument("--host", default=None, help="WebSocket bind host")
    parser.add_argument("--port", type=int, default=None, help="WebSocket bind port")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> None:
    args = parse_args(argv)
    settings = WorkerSettings.from_env()

    setup_logging(log_level=settings.log_level, log_format=settings.log_format)

    if args.transport == "websocket":
        import uvicorn
        from evalkernel.application.websocket.ws_server import create_app

        uvicorn.run(
            create_app(settings),
            host=args.host or settings.host,
            port=args.port or settings.port,
        )
        return

    channel_stream = sys.stdout
    # stdout carries the channel; anything else written to it goes to stderr
    with contextlib.redirect_stdout(sys.stderr):
        asyncio.run(run_worker(settings, sys.stdin, channel_stream))


if __name__ == "__main__":
    main()
