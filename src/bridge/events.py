"""
In-process pub/sub for cross-feature notifications.

Listeners subscribe to an exact event name (``training:started``), a
namespace wildcard (``training:*``) or everything (``*``). Each subscription
returns an unsubscribe callable so components never hold stale callbacks.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Callable

from loguru import logger

EventCallback = Callable[[Any, str], None]


@dataclass(eq=False)
class _Listener:
    callback: EventCallback
    once: bool = False


class EventBus:
    """Named-event pub/sub with wildcard and one-shot listeners."""

    def __init__(self, debug: bool = False):
        self._listeners: dict[str, list[_Listener]] = defaultdict(list)
        self.debug = debug

    def on(self, event: str, callback: EventCallback) -> Callable[[], None]:
        return self._add(event, callback, once=False)

    def once(self, event: str, callback: EventCallback) -> Callable[[], None]:
        return self._add(event, callback, once=True)

    def off(self, event: str, callback: EventCallback) -> None:
        listeners = self._listeners.get(event)
        if not listeners:
            return
        listeners[:] = [entry for entry in listeners if entry.callback is not callback]
        if not listeners:
            del self._listeners[event]

    def emit(self, event: str, data: Any = None) -> None:
        if self.debug:
            logger.debug("Event {}: {}", event, data)

        self._notify(event, data, event)
        namespace, sep, _ = event.partition(":")
        if sep and namespace:
            self._notify(f"{namespace}:*", data, event)
        self._notify("*", data, event)

    def clear(self, event: str | None = None) -> None:
        if event is None:
            self._listeners.clear()
        else:
            self._listeners.pop(event, None)

    def listener_count(self, event: str) -> int:
        return len(self._listeners.get(event, []))

    def event_names(self) -> list[str]:
        return [name for name, listeners in self._listeners.items() if listeners]

    def _add(self, event: str, callback: EventCallback, once: bool) -> Callable[[], None]:
        listener = _Listener(callback=callback, once=once)
        self._listeners[event].append(listener)

        def unsubscribe() -> None:
            listeners = self._listeners.get(event)
            if listeners and listener in listeners:
                listeners.remove(listener)
                if not listeners:
                    del self._listeners[event]

        return unsubscribe

    def _notify(self, key: str, data: Any, event: str) -> None:
        listeners = self._listeners.get(key)
        if not listeners:
            return
        for listener in list(listeners):
            if listener.once:
                self._discard(key, listener)
            try:
                listener.callback(data, event)
            except Exception:
                logger.exception("Event listener for {} failed", event)

    def _discard(self, key: str, listener: _Listener) -> None:
        listeners = self._listeners.get(key)
        if listeners and listener in listeners:
            listeners.remove(listener)
            if not listeners:
                del self._listeners[key]
