"""Provider contract and its default implementation.

A provider performs the data work behind a resource's actions. Every
capability has the same shape::

    handle_<action>(context, tree, options) -> context

``tree`` is the :class:`~restbuilder.core.tree.RouteTree` serving the request
(singular/plural names, ``append_resource``, ``send_resource`` ...) and
``options`` is the descriptor's ``provider_options``, passed through untouched.

Failures are reported on the returned context (``error_code``/``errors``,
see ``RouteTree.send_errors``), never raised across this boundary. The base
class answers every CRUD capability with ``501 Not yet implemented.``;
subclasses override what they support. Objects that do not subclass
``Provider`` work too: the tree binds the default for whatever they lack.
"""

from __future__ import annotations

from typing import Any

from .context import RequestContext

__all__ = ["NOT_IMPLEMENTED_BODY", "NOT_IMPLEMENTED_STATUS", "Provider", "not_implemented"]

NOT_IMPLEMENTED_STATUS = 501
NOT_IMPLEMENTED_BODY = "Not yet implemented."


def not_implemented(context: RequestContext) -> RequestContext:
    return context.halt(NOT_IMPLEMENTED_STATUS, NOT_IMPLEMENTED_BODY, "text/plain")


class Provider:
    """Base provider: nothing implemented, preload is a pass-through."""

    def on_compose(self, tree: Any, options: Any) -> None:
        """Hook run once when a resource using this provider is composed."""

    def handle_index(self, context: RequestContext, tree: Any, options: Any) -> RequestContext:
        return not_implemented(context)

    def handle_show(self, context: RequestContext, tree: Any, options: Any) -> RequestContext:
        return not_implemented(context)

    def handle_create(self, context: RequestContext, tree: Any, options: Any) -> RequestContext:
        return not_implemented(context)

    def handle_update(self, context: RequestContext, tree: Any, options: Any) -> RequestContext:
        return not_implemented(context)

    def handle_delete(self, context: RequestContext, tree: Any, options: Any) -> RequestContext:
        return not_implemented(context)

    def handle_preload(self, context: RequestContext, tree: Any, options: Any) -> RequestContext:
        return context
