"""In-process event bus for cross-view notifications.

Used for the "summary updated" broadcast: any view showing an identity
re-reads its summary when the event names that identity. Handlers may be
plain callables or coroutine functions.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SummaryUpdated:
    email_identity: str
    thread_id: str = ""


class EventBus:
    """Named events with subscribe/unsubscribe.

    A failing handler is logged and does not stop the others.
    """

    def __init__(self) -> None:
        self._handlers: dict[str, list[Callable[[Any], Any]]] = {}
        self._tasks: set[asyncio.Task[Any]] = set()

    def subscribe(self, name: str, handler: Callable[[Any], Any]) -> Callable[[], None]:
        """Register a handler. Returns a function that unsubscribes it."""
        self._handlers.setdefault(name, []).append(handler)

        def unsubscribe() -> None:
            handlers = self._handlers.get(name, [])
            if handler in handlers:
                handlers.remove(handler)

        return unsubscribe

    def emit(self, name: str, payload: Any) -> int:
        """Deliver *payload* to every handler of *name*. Returns handler count."""
        handlers = list(self._handlers.get(name, []))
        for handler in handlers:
            try:
                result = handler(payload)
            except Exception:
                logger.warning("Event handler for %s failed", name, exc_info=True)
                continue
            if asyncio.iscoroutine(result):
                self._schedule(name, result)
        return len(handlers)

    def _schedule(self, name: str, coro: Any) -> None:
        try:
            task = asyncio.get_running_loop().create_task(coro)
        except RuntimeError:
            coro.close()
            logger.warning("Dropped async handler for %s: no running loop", name)
            return
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
