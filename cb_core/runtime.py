from __future__ import annotations

import asyncio
import inspect
import threading
from typing import Any, Callable, Optional


class Canceler:
    """One-shot stop signal shared by a stream driver and its response handle.

    fire() may be called from any thread, any number of times; only the
    first call has an effect. Waiters are woken on the loop that created
    the canceler.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._fired = False
        self._event = asyncio.Event()
        try:
            self._loop: Optional[asyncio.AbstractEventLoop] = asyncio.get_running_loop()
        except RuntimeError:
            self._loop = None

    @property
    def fired(self) -> bool:
        return self._fired

    def fire(self) -> bool:
        with self._lock:
            if self._fired:
                return False
            self._fired = True

        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        loop = self._loop
        if loop is None or running is loop:
            self._event.set()
        elif not loop.is_closed():
            loop.call_soon_threadsafe(self._event.set)
        return True

    async def wait(self) -> None:
        if self._fired:
            return
        await self._event.wait()

    async def sleep(self, seconds: float) -> bool:
        """Wait for the throttle interval or the signal; True means canceled."""
        if self._fired:
            return True
        if seconds <= 0:
            await asyncio.sleep(0)
            return self._fired
        try:
            await asyncio.wait_for(self._event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return self._fired
        return True


async def invoke(fn: Callable[..., Any], *args: Any) -> Any:
    """Await coroutine functions; run blocking callables in a worker thread."""
    if inspect.iscoroutinefunction(fn):
        return await fn(*args)
    return await asyncio.to_thread(fn, *args)
