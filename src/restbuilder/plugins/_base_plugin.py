"""Plugin contract definitions used by the Router runtime.

Source of truth
---------------
If this module were wiped except for this docstring, the implementation must be
reconstructed exactly as described below.

Objects
~~~~~~~
``RouteEntry``
    Dataclass capturing one registered route. Fields:

    - ``name`` – logical route name (action or feature name; ``update`` is
      shared by its PUT and PATCH routes, a feature by all of its methods)
    - ``func`` – callable invoked by the Router, ``func(context) -> context``
    - ``router`` – Router instance that owns the route
    - ``plugins`` – list of plugin names applied to the route (order matters)
    - ``metadata`` – mutable dict used by plugins to store annotations
      (``action``, ``feature``, ``forward`` ... set by the composer)
    - ``method`` – HTTP method, ``None`` for forwards (any method)
    - ``path`` – route pattern, ``:name`` segments bind path parameters

``BasePlugin``
    Base class every plugin *must* subclass. Responsibilities:

    - offer config helpers that delegate to the owning router's ``plugin_info``
      store (no hidden per-plugin globals)
    - provide the ``wrap_handler(router, entry, call_next)`` hook used by the
      Router pipeline

    Required class attributes:

    - ``plugin_code`` – unique identifier used for registration (e.g. "logging")
    - ``plugin_description`` – human-readable description of the plugin

    Constructor signature: ``BasePlugin(router, **config)``; ``**config`` goes
    through ``configure()``.

    ``configure(**config)``
        Subclasses declare accepted parameters in the method signature.
        ``__init_subclass__`` wraps it so that:
        - ``flags`` (e.g. "enabled,before:off") is parsed into booleans
        - ``_target`` picks the bucket: ``"--base--"`` (router level), a route
          name, or ``"a,b"`` for several routes
        - parameters are validated with Pydantic's ``validate_call``
        - validated values are written to the store

    ``configuration(route_name=None)``
        merged configuration (router level + optional per-route override).

    ``entry_configuration(entry)``
        configuration for one route. Per-route buckets only apply to routes
        of the owning router; a plugin inherited by a child router gives the
        child's routes its router-level configuration only.

    ``wrap_handler`` (default identity)
        returns the middleware layer for one route; same signature as the
        wrapped callable.

Design constraints
~~~~~~~~~~~~~~~~~~
* The Router only imports this module (not the concrete plugins).
* Configuration storage stays internal to BasePlugin so all plugins behave
  the same way.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from pydantic import validate_call

__all__ = ["BasePlugin", "RouteEntry"]


@dataclass
class RouteEntry:
    """Metadata for a registered route."""

    name: str
    func: Callable
    router: Any
    plugins: List[str]
    metadata: Dict[str, Any] = field(default_factory=dict)
    method: Optional[str] = None
    path: str = "/"

    @property
    def key(self) -> str:
        return f"{self.method or '*'} {self.path}"

    @property
    def is_forward(self) -> bool:
        return self.method is None


def _wrap_configure(original_configure: Callable) -> Callable:
    """Wrap a plugin's configure() method to handle flags, _target, validation, and storage."""
    validated = validate_call(original_configure, config={"arbitrary_types_allowed": True})

    def wrapper(self: "BasePlugin", *, _target: str = "--base--", flags: Optional[str] = None, **kwargs: Any) -> None:
        if flags:
            kwargs.update(self._parse_flags(flags))

        if "," in _target:
            targets = [t.strip() for t in _target.split(",") if t.strip()]
            for t in targets:
                wrapper(self, _target=t, **kwargs)
            return

        validated(self, **kwargs)
        self._write_config(_target, kwargs)

    return wrapper


class BasePlugin:
    """Hook interface + configuration helpers for router plugins."""

    __slots__ = ("name", "_router")

    plugin_code: str = ""
    plugin_description: str = ""

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        if "configure" in cls.__dict__:
            cls.configure = _wrap_configure(cls.__dict__["configure"])

    def __init__(self, router: Any, **config: Any):
        self.name = self.plugin_code
        self._router = router
        self._init_store()
        self.configure(**config)

    def _init_store(self) -> None:
        store = self._get_store()
        store.setdefault(self.name, {}).setdefault(
            "--base--", {"config": {"enabled": True}, "locals": {}}
        )

    def configure(self, *, _target: str = "--base--", flags: Optional[str] = None) -> None:
        """Base implementation accepts only ``_target`` and ``flags``."""
        if flags:
            self._write_config(_target, self._parse_flags(flags))

    def _write_config(self, target: str, config: Dict[str, Any]) -> None:
        if not config:
            return
        store = self._get_store()
        plugin_bucket = store.setdefault(self.name, {})
        bucket = plugin_bucket.setdefault(target, {"config": {}, "locals": {}})
        bucket["config"].update(config)

    def configuration(self, route_name: Optional[str] = None) -> Dict[str, Any]:
        """Read merged configuration (base + optional per-route override)."""
        store = self._get_store()
        plugin_bucket = store.get(self.name)
        if not plugin_bucket:
            return {}
        merged = dict(plugin_bucket.get("--base--", {}).get("config", {}))
        if route_name:
            merged.update(plugin_bucket.get(route_name, {}).get("config", {}))
        return merged

    def entry_configuration(self, entry: RouteEntry) -> Dict[str, Any]:
        if entry.router is self._router:
            return self.configuration(entry.name)
        return self.configuration()

    def _parse_flags(self, flags: str) -> Dict[str, bool]:
        mapping: Dict[str, bool] = {}
        for chunk in flags.split(","):
            chunk = chunk.strip()
            if not chunk:
                continue
            if ":" in chunk:
                name, value = chunk.split(":", 1)
                mapping[name.strip()] = value.strip().lower() != "off"
            else:
                mapping[chunk] = True
        return mapping

    def wrap_handler(
        self,
        router: Any,
        entry: RouteEntry,
        call_next: Callable,
    ) -> Callable:
        """Wrap handler invocation; default passthrough."""
        return call_next

    def entry_metadata(self, router: Any, entry: RouteEntry) -> Dict[str, Any]:
        return {}

    def _get_store(self) -> Dict[str, Any]:
        return getattr(self._router, "_plugin_info")
