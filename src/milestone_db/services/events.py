from __future__ import annotations

import asyncio
import inspect
import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Deque, Dict, List, Optional


logger = logging.getLogger(__name__)


@dataclass
class StoreEvent:
    name: str  # "save" or "error"
    collection_name: str
    snapshot: Optional[Dict[str, Any]] = None
    saved: bool = False
    error: Optional[BaseException] = None
    created_at: datetime = field(default_factory=datetime.utcnow)


Listener = Callable[[StoreEvent], Any]


class EventChannel:
    def __init__(self, history_size: int = 1000) -> None:
        self._listeners: List[Listener] = []
        self._events: Deque[StoreEvent] = deque(maxlen=history_size)
        self._lock = asyncio.Lock()

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def publish(self, event: StoreEvent) -> None:
        async with self._lock:
            self._events.append(event)
        for listener in list(self._listeners):
            try:
                result = listener(event)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("Milestone event listener failed for %s event", event.name)

    async def all(self) -> List[StoreEvent]:
        async with self._lock:
            return list(self._events)

    async def reset(self) -> None:
        async with self._lock:
            self._events.clear()
