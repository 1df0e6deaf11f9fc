"""Decorator helpers for declaring features and subscribers (source of truth).

Rebuild this module exactly from the behaviours below. It contains only marker
helpers; nothing is registered at decoration time.

``feature(name, *, only=None)`` / ``group_feature(name, *, only=None)``

- Return a decorator appending ``{"kind": "feature" | "group_feature",
  "name": name, "only": only}`` to the list stored on the function under
  ``TARGET_ATTR_NAME``. ``only`` is kept as given; ``None`` means GET and POST.

``on_event(event)``

- Appends ``{"kind": "event", "event": event}``. The event name is validated
  when the descriptor is built, not here.

Markers accumulate, so one method may serve several features or events. The
decorators return the original function unchanged aside from the marker.
``ResourceClass.descriptor()`` consumes them.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Iterable, Optional

__all__ = ["TARGET_ATTR_NAME", "feature", "group_feature", "on_event"]

TARGET_ATTR_NAME = "__restbuilder_targets__"


def _mark(payload: Dict[str, Any]) -> Callable:
    def decorator(func: Callable) -> Callable:
        markers = list(getattr(func, TARGET_ATTR_NAME, []))
        markers.append(dict(payload))
        setattr(func, TARGET_ATTR_NAME, markers)
        return func

    return decorator


def feature(name: str, *, only: Optional[Iterable[str]] = None) -> Callable:
    """Mark a method as the handler of the ``/:id/<name>`` feature."""
    return _mark({"kind": "feature", "name": name, "only": only})


def group_feature(name: str, *, only: Optional[Iterable[str]] = None) -> Callable:
    """Mark a method as the handler of the ``/<name>`` group feature."""
    return _mark({"kind": "group_feature", "name": name, "only": only})


def on_event(event: str) -> Callable:
    """Mark a method as subscriber of ``create``, ``update`` or ``delete``."""
    return _mark({"kind": "event", "event": event})
