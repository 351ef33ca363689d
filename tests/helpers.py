"""Shared helpers for the kernel test suite"""

import asyncio
from typing import Any, List


async def settle(rounds: int = 5):
    """Let callbacks and freshly scheduled tasks run"""
    for _ in range(rounds):
        await asyncio.sleep(0)


def results(sent: List[Any]) -> List[dict]:
    return [m for m in sent if isinstance(m, dict) and "mime" in m]


def errors(sent: List[Any]) -> List[dict]:
    return [m for m in sent if isinstance(m, dict) and "error" in m]


def requests(sent: List[Any]) -> List[list]:
    return [m for m in sent if isinstance(m, list) and m and m[0] == "request"]
