"""Pydantic payload validation plugin (source of truth).

Rebuild exactly from this contract; no hidden behaviour.

Responsibilities
----------------
- Validate ``ctx.request.body`` against a configured ``pydantic.BaseModel``
  before the route handler runs.
- On success, pass the validated model instance on as ``ctx.assigns["payload"]``.
- On failure, do not call the handler: return the context with
  ``error_code=422`` and ``errors`` set to ``ValidationError.errors()``
  (without documentation URLs). Nothing is raised; the encoder consumes the
  error fields like any provider-reported failure.

Configuration
-------------
``configure(model=None, disabled=False, actions=None)``

- ``model``: the model class; without one the plugin is a passthrough.
- ``actions``: route names to validate; default ``["create", "update"]``.
  Feature names may be listed too.
- ``disabled``: checked at call time, router-level or per route
  (``_target="update"``).

The model describes the payload of the router that plugged the plugin. When a
child resource inherits the plugin its routes are not validated; a child
plugs its own ``pydantic`` entry for that.

Registration
------------
Registers itself globally as ``"pydantic"`` during module import.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional

from pydantic import BaseModel, ValidationError

from restbuilder.core.context import RequestContext
from restbuilder.core.router import Router
from restbuilder.plugins._base_plugin import BasePlugin, RouteEntry

DEFAULT_ACTIONS = ("create", "update")
VALIDATION_ERROR_CODE = 422


class PydanticPlugin(BasePlugin):
    """Validate request payloads with a Pydantic model."""

    plugin_code = "pydantic"
    plugin_description = "Validates request payloads using a Pydantic model"

    def configure(
        self,
        model: Optional[Any] = None,
        disabled: bool = False,
        actions: Optional[List[str]] = None,
    ):
        """Configure pydantic plugin options.

        The wrapper added by __init_subclass__ handles writing to store.
        """
        if model is not None and not (isinstance(model, type) and issubclass(model, BaseModel)):
            raise TypeError(f"model must be a pydantic BaseModel subclass, got {model!r}")

    def get_model(self, entry: RouteEntry) -> Optional[type]:
        """Return the model validating ``entry``, or None when it is not validated."""
        if entry.router is not self._router:
            return None
        cfg = self.configuration(entry.name)
        if cfg.get("disabled"):
            return None
        actions = cfg.get("actions") or DEFAULT_ACTIONS
        if entry.name not in actions:
            return None
        return cfg.get("model")

    def wrap_handler(self, route: "Router", entry: RouteEntry, call_next: Callable):
        """Validate the request body before calling the route handler."""

        def wrapper(ctx: RequestContext, *args, **kwargs):
            model = self.get_model(entry)
            if model is None:
                return call_next(ctx, *args, **kwargs)
            body = ctx.request.body
            try:
                payload = model.model_validate(body if body is not None else {})
            except ValidationError as exc:
                return ctx.assign(
                    error_code=VALIDATION_ERROR_CODE,
                    errors=exc.errors(include_url=False),
                )
            return call_next(ctx.assign(payload=payload), *args, **kwargs)

        return wrapper

    def entry_metadata(self, router: Any, entry: RouteEntry) -> Dict[str, Any]:
        """Return pydantic metadata for introspection."""
        model = self.get_model(entry)
        if model is None:
            return {}
        return {"model": model.__name__}


Router.register_plugin(PydanticPlugin)
