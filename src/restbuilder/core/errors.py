"""Exceptions raised while composing resources."""

from __future__ import annotations

__all__ = ["CompositionError"]


class CompositionError(ValueError):
    """A resource declaration cannot be turned into a route set.

    Raised before serving starts: unknown action or event names, empty
    resource names, unsupported HTTP methods, non-callable handlers.
    """
