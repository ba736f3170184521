"""Coroutine helpers standing in for a network client."""

from __future__ import annotations

import asyncio


async def fetch(value: int) -> int:
    """Return twice *value* after yielding to the event loop."""
    await asyncio.sleep(0)
    return value * 2
