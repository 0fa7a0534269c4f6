"""Event bus for diagnostics envelopes.

Archive operations publish ``operation.start`` / ``operation.end`` here;
consumers subscribe to one event name or to everything.
"""

from __future__ import annotations

import contextlib
import traceback
from collections.abc import Callable, Iterator
from typing import Any

from wktarchive.core.logging import get_logger

_logger = get_logger(__name__)

EventCallback = Callable[[dict[str, Any]], None]
AnyEventCallback = Callable[[str, dict[str, Any]], None]


class EventBus:
    """Synchronous pub/sub.

    Example:
        bus = EventBus()
        bus.subscribe("operation.end", lambda env: print(env["data"]["status"]))
        bus.publish("operation.end", {"data": {"status": "succeeded"}})
    """

    def __init__(self) -> None:
        self._by_event: dict[str, list[EventCallback]] = {}
        self._catch_all: list[AnyEventCallback] = []

    def subscribe(self, event: str, callback: EventCallback) -> None:
        self._by_event.setdefault(event, []).append(callback)

    def unsubscribe(self, event: str, callback: EventCallback) -> None:
        subs = self._by_event.get(event, [])
        if callback in subs:
            subs.remove(callback)

    def subscribe_all(self, callback: AnyEventCallback) -> None:
        """Receive every event as (event name, payload)."""
        self._catch_all.append(callback)

    def unsubscribe_all(self, callback: AnyEventCallback) -> None:
        if callback in self._catch_all:
            self._catch_all.remove(callback)

    @contextlib.contextmanager
    def recording(self) -> Iterator[list[tuple[str, dict[str, Any]]]]:
        """Collect (event, payload) pairs published inside the block."""
        seen: list[tuple[str, dict[str, Any]]] = []

        def _record(event: str, data: dict[str, Any]) -> None:
            seen.append((event, data))

        self.subscribe_all(_record)
        try:
            yield seen
        finally:
            self.unsubscribe_all(_record)

    def publish(self, event: str, data: dict[str, Any] | None = None) -> None:
        """Deliver to exact-name subscribers, then catch-all ones.

        A failing subscriber is logged and skipped.
        """
        payload = data or {}
        for cb in list(self._by_event.get(event, [])):
            self._call(event, cb, payload)
        for cb_all in list(self._catch_all):
            self._call(event, cb_all, event, payload)

    @staticmethod
    def _call(event: str, cb: Callable[..., None], *args: Any) -> None:
        try:
            cb(*args)
        except Exception as e:
            _logger.error(
                f"Event subscriber {cb!r} failed on '{event}': {type(e).__name__}: {e}\n"
                f"{traceback.format_exc()}"
            )

    def clear(self) -> None:
        self._by_event.clear()
        self._catch_all.clear()


_global_bus = EventBus()


def get_event_bus() -> EventBus:
    return _global_bus
