"""restbuilder public API surface (source of truth).

Recreate the module with these rules:
- Public exports: ``compose``, ``RouteTree``, ``ResourceDescriptor``,
  ``FeatureSpec``, ``EventSubscription``, ``ResourceClass``, the ``feature`` /
  ``group_feature`` / ``on_event`` markers, ``Provider``, ``Request``,
  ``RequestContext``, ``LinkRegistry``, ``EventAnnouncer``, ``Router`` and
  ``CompositionError``.
- Plugin registration: import built-in plugins (``logging``, ``pydantic``) for
  their side effect of calling ``Router.register_plugin(<class>)``.
  Imports are done lazily via ``import_module`` to avoid cycles.

Constraints
-----------
- Import must stay lightweight: no composition beyond plugin registration.
- Version string lives here as ``__version__``.
"""

from importlib import import_module

__version__ = "0.3.0"

from .core import (
    CompositionError,
    EventAnnouncer,
    EventSubscription,
    FeatureSpec,
    LinkRegistry,
    Provider,
    Request,
    RequestContext,
    ResourceClass,
    ResourceDescriptor,
    RouteTree,
    Router,
    compose,
    feature,
    group_feature,
    on_event,
)

# Import plugins to trigger auto-registration (lazy to avoid cycles)
for _plugin in ("logging", "pydantic"):
    import_module(f"{__name__}.plugins.{_plugin}")
del _plugin

__all__ = [
    "CompositionError",
    "EventAnnouncer",
    "EventSubscription",
    "FeatureSpec",
    "LinkRegistry",
    "Provider",
    "Request",
    "RequestContext",
    "ResourceClass",
    "ResourceDescriptor",
    "RouteTree",
    "Router",
    "compose",
    "feature",
    "group_feature",
    "on_event",
]
