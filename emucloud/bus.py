"""Minimal event bus for emucloud events."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from loguru import logger

from emucloud.events import EmucloudEvent

Handler = Callable[..., Any]

log = logger.bind(component="bus")


class EventBus:
    """Fire-and-forget dispatcher for EmucloudEvents.

    Handlers run synchronously in registration order. A failing handler is
    logged and skipped so that emitting never fails the operation that
    produced the event.
    """

    def __init__(self) -> None:
        self._handlers: list[tuple[tuple[type, ...], Handler]] = []

    def on[F: Callable[..., Any]](
        self,
        *event_types: type[EmucloudEvent],
    ) -> Callable[[F], F]:
        """Register handler. Empty event_types = wildcard."""

        def decorator(fn: F) -> F:
            self._handlers.append((event_types, fn))
            return fn

        return decorator

    def emit(self, event: EmucloudEvent) -> None:
        for types, handler in self._handlers:
            if types and not isinstance(event, types):
                continue
            try:
                handler(event)
            except Exception:
                log.exception(
                    "Event handler {handler} failed for {event}",
                    handler=getattr(handler, "__name__", repr(handler)),
                    event=type(event).__name__,
                )

    def clear(self) -> None:
        """Remove all handlers."""
        self._handlers.clear()
