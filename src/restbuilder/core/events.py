"""Post-mutation event announcer (source of truth).

``EventAnnouncer`` keeps, per ``(category, event)`` pair, the ordered list of
subscriber callables and invokes them synchronously on ``publish``.

Contract
--------
- ``subscribe(category, event, handler)``: ``event`` must be one of
  :data:`EVENTS` (an ``after_`` prefix is accepted and stripped); anything else
  raises ``CompositionError``. Non-callable handlers raise ``TypeError``.
  Subscribing after ``freeze()`` raises ``RuntimeError``.
- ``publish(category, event, payload)`` calls every handler registered for the
  pair, in subscription order, with ``payload``; returns the number of
  handlers invoked. Exceptions raised by a handler are not caught: they
  propagate to the publisher and stop the remaining handlers.
- ``has_subscribers(category, event)`` tells the pipeline whether an event is
  worth building.
- ``freeze()`` turns every subscriber list into a tuple; after that the
  announcer is safe to read from any number of threads.

No queueing, retry or persistence.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Sequence, Tuple

from .errors import CompositionError

__all__ = ["EVENTS", "EventAnnouncer", "normalize_event"]

EVENTS: Tuple[str, ...] = ("create", "update", "delete")


def normalize_event(event: str) -> str:
    name = str(event).strip().lower().lstrip(":")
    if name.startswith("after_"):
        name = name[len("after_") :]
    if name not in EVENTS:
        raise CompositionError(f"Unknown event {event!r}; expected one of {', '.join(EVENTS)}")
    return name


class EventAnnouncer:
    """Synchronous fan-out of ``create``/``update``/``delete`` notifications."""

    __slots__ = ("_subscribers", "_frozen")

    def __init__(self) -> None:
        self._subscribers: Dict[Tuple[str, str], Sequence[Callable]] = {}
        self._frozen = False

    @property
    def frozen(self) -> bool:
        return self._frozen

    def subscribe(self, category: str, event: str, handler: Callable) -> "EventAnnouncer":
        if self._frozen:
            raise RuntimeError("EventAnnouncer is frozen; subscribe during composition")
        if not callable(handler):
            raise TypeError(f"Subscriber must be callable, got {handler!r}")
        key = (str(category), normalize_event(event))
        handlers: List[Callable] = list(self._subscribers.get(key, ()))
        handlers.append(handler)
        self._subscribers[key] = handlers
        return self

    def has_subscribers(self, category: str, event: str) -> bool:
        return bool(self._subscribers.get((str(category), normalize_event(event))))

    def subscribers(self, category: str, event: str) -> Tuple[Callable, ...]:
        return tuple(self._subscribers.get((str(category), normalize_event(event)), ()))

    def publish(self, category: str, event: str, payload: Any) -> int:
        handlers = self._subscribers.get((str(category), normalize_event(event)), ())
        for handler in handlers:
            handler(payload)
        return len(handlers)

    def freeze(self) -> "EventAnnouncer":
        self._subscribers = {key: tuple(value) for key, value in self._subscribers.items()}
        self._frozen = True
        return self
