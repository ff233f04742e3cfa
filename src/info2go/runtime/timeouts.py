"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Module: runtime/timeouts.py.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable
from typing import TypeVar

T = TypeVar("T")


async def await_with_timeout(awaitable: Awaitable[T], timeout_s: float | None) -> T:
    """Await value with optional timeout."""
    if timeout_s is None:
        return await awaitable
    return await asyncio.wait_for(awaitable, timeout=timeout_s)


async def wait_or_cancelled(cancel_event: asyncio.Event, delay_s: float) -> bool:
    """
    Sleep up to `delay_s`, waking early when `cancel_event` is set.

    Returns:
        ``True`` when the wait ended because of cancellation.
    """
    if cancel_event.is_set():
        return True
    try:
        await asyncio.wait_for(cancel_event.wait(), timeout=max(0.0, delay_s))
    except asyncio.TimeoutError:
        return False
    return True
