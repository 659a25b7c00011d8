"""Event bus for runtime events.

Simple pub/sub system; the reporter publishes dump lifecycle envelopes here so
that observers (UIs, JSONL sinks, tests) can follow a dump without the core
depending on them.
"""

from __future__ import annotations

import traceback
from collections import defaultdict
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

from diagbundle.core.logging import get_logger

_logger = get_logger(__name__)


def build_envelope(
    *,
    event: str,
    component: str,
    operation: str,
    data: dict[str, Any],
) -> dict[str, Any]:
    """Build the canonical runtime event envelope.

    Schema:
        {
          "event": "<string>",
          "component": "<string>",
          "operation": "<string>",
          "timestamp": "<iso8601 utc>",
          "data": { ... }
        }

    Timestamp is emitted in UTC with a trailing 'Z'.
    """
    ts = datetime.now(UTC).replace(microsecond=0).isoformat().replace("+00:00", "Z")
    return {
        "event": event,
        "component": component,
        "operation": operation,
        "timestamp": ts,
        "data": data,
    }


class EventBus:
    """Simple event bus.

    Example:
        bus = EventBus()

        def on_dump_end(data):
            print(data["data"]["destination"])

        bus.subscribe("dump.end", on_dump_end)
        bus.publish("dump.end", {"data": {"destination": "/tmp/report.zip"}})
    """

    def __init__(self) -> None:
        self._subscribers: dict[str, list[Callable[[dict[str, Any]], None]]] = defaultdict(list)
        self._all_subscribers: list[Callable[[str, dict[str, Any]], None]] = []

    def subscribe(self, event: str, callback: Callable[[dict[str, Any]], None]) -> None:
        """Subscribe to an event.

        Args:
            event: Event name
            callback: Callback function (receives event data dict)
        """
        self._subscribers[event].append(callback)

    def unsubscribe(self, event: str, callback: Callable[[dict[str, Any]], None]) -> None:
        """Unsubscribe from an event.

        Args:
            event: Event name
            callback: Callback function to remove
        """
        if event in self._subscribers:
            self._subscribers[event].remove(callback)

    def subscribe_all(self, callback: Callable[[str, dict[str, Any]], None]) -> None:
        """Subscribe to all published events.

        Args:
            callback: Callback function (receives event name and event data dict)
        """
        self._all_subscribers.append(callback)

    def publish(self, event: str, data: dict[str, Any] | None = None) -> None:
        """Publish an event.

        Handler failures are logged and never reach the publisher.

        Args:
            event: Event name
            data: Event data (optional)
        """
        data = data or {}

        for cb in list(self._subscribers.get(event, [])):
            self._dispatch(event, cb, data)
        for cb_all in list(self._all_subscribers):
            self._dispatch(event, lambda d, cb_all=cb_all: cb_all(event, d), data, catch_all=True)

    def _dispatch(
        self,
        event: str,
        cb: Callable[[dict[str, Any]], None],
        data: dict[str, Any],
        *,
        catch_all: bool = False,
    ) -> None:
        try:
            cb(data)
        except Exception as e:
            kind = "all-event handler" if catch_all else "event handler"
            _logger.error(
                f"Error in {kind} for '{event}': {type(e).__name__}: {e}\n"
                f"{traceback.format_exc()}"
            )

    def clear(self) -> None:
        """Clear all subscribers."""
        self._subscribers.clear()
        self._all_subscribers.clear()


# Global event bus instance
_global_bus: EventBus | None = None


def get_event_bus() -> EventBus:
    """Get global event bus instance."""
    global _global_bus
    if _global_bus is None:
        _global_bus = EventBus()
    return _global_bus
