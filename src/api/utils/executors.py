"""Bridges from the async request handlers into the blocking split pipeline."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any, TypeVar

from image_splitter.tracker import RunTracker

T = TypeVar("T")


async def run_sync(func: Callable[..., T], /, *args: Any, **kwargs: Any) -> T:
    return await asyncio.to_thread(func, *args, **kwargs)


async def run_tracked(tracker: RunTracker, func: Callable[..., T], /, *args: Any, **kwargs: Any) -> T:
    """Run *func* on a worker thread, counted by *tracker* until it returns.

    Shutdown waits on the same tracker, so a split that already started is
    allowed to finish writing its run directory.
    """

    return await asyncio.to_thread(tracker.run, func, *args, **kwargs)


__all__ = ["run_sync", "run_tracked"]
