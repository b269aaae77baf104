"""Session-expired notification."""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from threading import Lock
from typing import Union

logger = logging.getLogger(__name__)

Listener = Callable[[], Union[None, Awaitable[None]]]


class SessionEvents:
    """Observers told when the user must authenticate again.

    Listeners take no arguments. Coroutine listeners are scheduled on the
    running event loop. A listener that raises is logged and the remaining
    listeners still run.
    """

    def __init__(self) -> None:
        self._listeners: list[Listener] = []
        self._lock = Lock()
        self._pending: set[asyncio.Task[None]] = set()

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(listener)
        return lambda: self.unsubscribe(listener)

    def unsubscribe(self, listener: Listener) -> None:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def __len__(self) -> int:
        return len(self._listeners)

    def emit(self) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                result = listener()
                if inspect.isawaitable(result):
                    self._schedule(listener, result)
            except Exception:
                logger.exception("Session-expired listener %r failed", listener)

    def _schedule(self, listener: Listener, awaitable: Awaitable[None]) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # Called outside a loop: the coroutine can never run.
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            raise
        task = loop.create_task(_run_listener(listener, awaitable))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)


async def _run_listener(listener: Listener, awaitable: Awaitable[None]) -> None:
    try:
        await awaitable
    except Exception:
        logger.exception("Session-expired listener %r failed", listener)
