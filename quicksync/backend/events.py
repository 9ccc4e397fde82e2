"""Pushed event channel for transfer progress and native file drops.

Backends publish progress while long transfers run; the window layer
publishes drop events carrying absolute source paths. Subscribers may be
plain callables or coroutine functions. Coroutine handlers are scheduled as
tasks on the running loop so publishers never wait on subscribers.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Callable, Sequence

from .types import TransferProgress

logger = logging.getLogger(__name__)

ProgressHandler = Callable[[TransferProgress], object]
DropHandler = Callable[[list[str]], object]


class EventChannel:
    """Fan-out of pushed backend events to registered handlers."""

    def __init__(self) -> None:
        self._progress_handlers: list[ProgressHandler] = []
        self._drop_handlers: list[DropHandler] = []
        self._tasks: set[asyncio.Task] = set()

    def subscribe_progress(self, handler: ProgressHandler) -> Callable[[], None]:
        """Register ``handler`` for progress events and return an unsubscribe callable."""
        self._progress_handlers.append(handler)
        return lambda: self._discard(self._progress_handlers, handler)

    def subscribe_drops(self, handler: DropHandler) -> Callable[[], None]:
        """Register ``handler`` for native drop events and return an unsubscribe callable."""
        self._drop_handlers.append(handler)
        return lambda: self._discard(self._drop_handlers, handler)

    def publish_progress(self, event: TransferProgress) -> None:
        for handler in list(self._progress_handlers):
            self._deliver(handler, event)

    def publish_drop(self, paths: Sequence[str]) -> None:
        for handler in list(self._drop_handlers):
            self._deliver(handler, list(paths))

    async def settle(self) -> None:
        """Wait until every handler task scheduled so far has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    @staticmethod
    def _discard(handlers: list, handler: object) -> None:
        try:
            handlers.remove(handler)
        except ValueError:
            pass

    def _deliver(self, handler: Callable, payload: object) -> None:
        result = handler(payload)
        if not inspect.isawaitable(result):
            return
        task = asyncio.ensure_future(result)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Event handler failed: %s", exc, exc_info=exc)


__all__ = [
    "EventChannel",
    "ProgressHandler",
    "DropHandler",
]
