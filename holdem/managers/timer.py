from __future__ import annotations
import asyncio
import logging
from typing import Awaitable, Callable, Dict

logger = logging.getLogger(__name__)

Callback = Callable[[], Awaitable[None]]

class TimerRegistry:
    """Named, cancellable timers for one session.

    Every timer is an asyncio task stored under a key (``round``,
    ``removal:<player>``, ...). Scheduling a key cancels whatever was
    registered under it first. A finished task only clears its own entry,
    so a cancelled timer cannot unregister its replacement.
    """

    def __init__(self, name: str = ''):
        self.name = name
        self._tasks: Dict[str, asyncio.Task] = {}

    def schedule(self, key: str, delay: float, callback: Callback) -> asyncio.Task:
        """Run ``callback`` once after ``delay`` seconds."""
        async def _fire():
            await asyncio.sleep(delay)
            await callback()
        return self._spawn(key, _fire())

    def start_interval(self, key: str, interval: float, callback: Callable[[], Awaitable[bool]]) -> asyncio.Task:
        """Run ``callback`` every ``interval`` seconds until it returns False."""
        async def _loop():
            while True:
                await asyncio.sleep(interval)
                if not await callback():
                    break
        return self._spawn(key, _loop())

    def run(self, key: str, coro: Awaitable[None]) -> asyncio.Task:
        """Track an arbitrary background coroutine under ``key``."""
        return self._spawn(key, coro)

    def _spawn(self, key: str, coro) -> asyncio.Task:
        self.cancel(key)
        task = asyncio.create_task(self._guard(key, coro))
        self._tasks[key] = task
        return task

    async def _guard(self, key: str, coro):
        try:
            await coro
        except asyncio.CancelledError:
            return
        except Exception:
            logger.exception("[timer-error] session=%s key=%s", self.name, key)
        finally:
            if self._tasks.get(key) is asyncio.current_task():
                del self._tasks[key]

    def cancel(self, key: str) -> bool:
        task = self._tasks.pop(key, None)
        if task is None:
            return False
        # A task cancelling itself (e.g. a tick that ends the round) must not
        # interrupt its own callback
        if task is not asyncio.current_task():
            task.cancel()
        return True

    def cancel_prefix(self, prefix: str):
        for key in [k for k in self._tasks if k.startswith(prefix)]:
            self.cancel(key)

    def cancel_all(self):
        for key in list(self._tasks):
            self.cancel(key)

    def is_active(self, key: str) -> bool:
        task = self._tasks.get(key)
        return task is not None and not task.done()

    def keys(self):
        return list(self._tasks)
