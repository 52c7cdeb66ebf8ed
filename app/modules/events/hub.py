import asyncio
import logging
from collections import defaultdict
from typing import Any, Awaitable, Callable, Coroutine

log = logging.getLogger("event.hub")

Handler = Callable[[Any], Awaitable[None]]

class EventHub:
    """In-process publish/subscribe keyed by event class.

    Handlers run after the publishing transaction has committed. A failing
    handler is logged and does not affect the other handlers or the publisher.
    """

    def __init__(self):
        self._handlers: dict[type, list[Handler]] = defaultdict(list)

    def subscribe(self, event_type: type, handler: Handler) -> None:
        self._handlers[event_type].append(handler)

    async def publish(self, event: Any) -> None:
        for handler in list(self._handlers.get(type(event), ())):
            try:
                await handler(event)
            except Exception:
                log.exception("Handler %r failed for %s", handler, type(event).__name__)

class BackgroundTasks:
    """Tracks fire-and-forget tasks so they are not garbage collected and can be drained on shutdown."""

    def __init__(self, name: str = "background"):
        self.name = name
        self._tasks: set[asyncio.Task] = set()

    def spawn(self, coro: Coroutine, *, label: str = "") -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro, name=f"{self.name}:{label}" if label else None)
        self._tasks.add(task)
        task.add_done_callback(self._done)
        return task

    def _done(self, task: asyncio.Task):
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            log.error("Background task %s failed", task.get_name(), exc_info=exc)

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        # tasks may spawn follow-ups while we wait
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def cancel_all(self) -> None:
        for t in list(self._tasks):
            t.cancel()
        await self.drain()
