"""In-process models of the browser surfaces the session monitor relies on.

``SharedStorage`` behaves like same-origin ``localStorage``: every tab gets a
:class:`StorageView`, and a write from one view is delivered synchronously as
a :class:`StorageEvent` to the listeners of every *other* view. ``EventTarget``
stands in for the document the activity listeners are attached to.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

type StorageListener = Callable[[StorageEvent], None]
type EventListener = Callable[[ActivityEvent], None]


@dataclass(frozen=True, slots=True)
class StorageEvent:
    key: str | None
    old_value: str | None
    new_value: str | None


class SharedStorage:
    """Origin-wide key/value store shared by every tab."""

    def __init__(self) -> None:
        self._data: dict[str, str] = {}
        self._views: list[StorageView] = []

    def tab(self) -> StorageView:
        """Open a new tab-local handle on this storage."""

        view = StorageView(self)
        self._views.append(view)
        return view

    def close_tab(self, view: StorageView) -> None:
        if view in self._views:
            self._views.remove(view)

    def snapshot(self) -> dict[str, str]:
        return dict(self._data)

    def _write(self, source: StorageView, key: str, value: str | None) -> None:
        old_value = self._data.get(key)
        if value is None:
            if key not in self._data:
                return
            del self._data[key]
        else:
            if old_value == value:
                return
            self._data[key] = value
        self._broadcast(source, StorageEvent(key=key, old_value=old_value, new_value=value))

    def _clear(self, source: StorageView) -> None:
        if not self._data:
            return
        self._data.clear()
        self._broadcast(source, StorageEvent(key=None, old_value=None, new_value=None))

    def _broadcast(self, source: StorageView, event: StorageEvent) -> None:
        for view in list(self._views):
            if view is not source:
                view._deliver(event)


class StorageView:
    """One tab's view of :class:`SharedStorage` plus its own ``sessionStorage``."""

    def __init__(self, storage: SharedStorage) -> None:
        self._storage = storage
        self._listeners: list[StorageListener] = []
        self.session_storage: dict[str, str] = {}

    def get_item(self, key: str) -> str | None:
        return self._storage._data.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._storage._write(self, key, str(value))

    def remove_item(self, key: str) -> None:
        self._storage._write(self, key, None)

    def clear(self) -> None:
        self._storage._clear(self)

    def add_listener(self, listener: StorageListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: StorageListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def close(self) -> None:
        self._listeners.clear()
        self._storage.close_tab(self)

    def _deliver(self, event: StorageEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.warning("session.storage.listener_failed", exc_info=True)


@dataclass(slots=True)
class ActivityEvent:
    type: str
    passive: bool = False
    default_prevented: bool = field(default=False)

    def prevent_default(self) -> None:
        # Passive listeners cannot cancel the event.
        if not self.passive:
            self.default_prevented = True


@dataclass(frozen=True, slots=True)
class _Registration:
    listener: EventListener
    passive: bool


class EventTarget:
    """Minimal DOM-style event target with passive listener tracking."""

    def __init__(self) -> None:
        self._registry: dict[str, list[_Registration]] = {}

    def add_event_listener(self, event_type: str, listener: EventListener, *, passive: bool = False) -> None:
        registrations = self._registry.setdefault(event_type, [])
        if any(item.listener == listener for item in registrations):
            return
        registrations.append(_Registration(listener=listener, passive=passive))

    def remove_event_listener(self, event_type: str, listener: EventListener) -> None:
        registrations = self._registry.get(event_type)
        if not registrations:
            return
        remaining = [item for item in registrations if item.listener != listener]
        if remaining:
            self._registry[event_type] = remaining
        else:
            del self._registry[event_type]

    def dispatch_event(self, event_type: str) -> bool:
        """Deliver ``event_type``; returns ``False`` when a listener cancelled it."""

        cancelled = False
        for item in list(self._registry.get(event_type, ())):
            event = ActivityEvent(type=event_type, passive=item.passive)
            item.listener(event)
            cancelled = cancelled or event.default_prevented
        return not cancelled

    def listener_count(self, event_type: str | None = None) -> int:
        if event_type is not None:
            return len(self._registry.get(event_type, ()))
        return sum(len(items) for items in self._registry.values())

    def is_passive(self, event_type: str, listener: EventListener) -> bool:
        return any(
            item.passive for item in self._registry.get(event_type, ()) if item.listener == listener
        )


__all__ = [
    "ActivityEvent",
    "EventTarget",
    "SharedStorage",
    "StorageEvent",
    "StorageView",
]
