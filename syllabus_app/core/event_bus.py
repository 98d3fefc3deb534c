from __future__ import annotations

import threading
from collections.abc import Callable
from typing import Any

EventHandler = Callable[[dict[str, Any]], None]


class EventBus:
    def __init__(self) -> None:
        self._handlers: dict[str, list[EventHandler]] = {}
        self._lock = threading.Lock()

    def subscribe(self, event_name: str, handler: EventHandler) -> None:
        with self._lock:
            self._handlers.setdefault(event_name, []).append(handler)

    def emit(self, event_name: str, data: dict[str, Any]) -> None:
        with self._lock:
            handlers = list(self._handlers.get(event_name, [])) + list(self._handlers.get('*', []))
        if not handlers:
            return
        payload = {'event_name': event_name, **data}
        for handler in handlers:
            handler(payload)
