"""In-process event bus (asyncio).

``publish`` never waits for subscribers: each handler runs as its own task,
and a failing handler is logged without affecting the publisher or the other
handlers. ``drain`` awaits whatever is still running (shutdown, tests).
"""

import asyncio
import logging
from collections import defaultdict
from collections.abc import Awaitable, Callable
from typing import Any

logger = logging.getLogger("pm.events")

Handler = Callable[[Any], Awaitable[None]]


class InProcessEventBus:
    def __init__(self) -> None:
        self._handlers: dict[type, list[Handler]] = defaultdict(list)
        self._pending: set[asyncio.Task[None]] = set()

    def subscribe(self, event_type: type, handler: Handler) -> None:
        self._handlers[event_type].append(handler)

    def publish(self, event: object) -> None:
        handlers = self._handlers.get(type(event), [])
        if not handlers:
            logger.debug("no subscribers for %s", type(event).__name__)
        for handler in handlers:
            task = asyncio.get_running_loop().create_task(handler(event))
            self._pending.add(task)
            task.add_done_callback(self._on_done)

    def _on_done(self, task: "asyncio.Task[None]") -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("event handler failed: %r", exc, exc_info=exc)

    async def drain(self) -> None:
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
