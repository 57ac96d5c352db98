"""Fan-out of controller events to registered handlers."""

import asyncio
import inspect
import logging
from typing import Any, Callable, Optional

from .models import EventType

logger = logging.getLogger(__name__)

EventCallback = Callable[[Any], Any]


class EventHub:
    """Maps each event kind to an ordered list of handlers.

    Handlers are invoked without being awaited; coroutine handlers are
    scheduled as tasks which the hub keeps a reference to until they finish.
    """

    def __init__(self, log: Optional[logging.Logger] = None) -> None:
        self._handlers: dict[EventType, list[EventCallback]] = {}
        self._tasks: set[asyncio.Task] = set()
        self._logger = log or logger

    def add(self, event_type: EventType, handler: EventCallback) -> None:
        self._handlers.setdefault(event_type, []).append(handler)

    def remove(self, event_type: EventType, handler: EventCallback) -> None:
        handlers = self._handlers.get(event_type)
        if handlers and handler in handlers:
            handlers.remove(handler)

    def handlers(self, event_type: EventType) -> tuple[EventCallback, ...]:
        return tuple(self._handlers.get(event_type, ()))

    def fire(self, event_type: EventType, data: Any = None) -> None:
        for handler in self.handlers(event_type):
            try:
                result = handler(data)
            except Exception as e:
                self._logger.error(f"{event_type.name} handler error: {e}")
                continue
            if inspect.isawaitable(result):
                task = asyncio.ensure_future(result)
                self._tasks.add(task)
                task.add_done_callback(self._on_task_done)

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            self._logger.error(f"Event handler error: {task.exception()}")
