"""Plugin-free path router (source of truth).

The module exposes :class:`BaseRouter`, the path/method matcher a
:class:`~restbuilder.core.tree.RouteTree` is backed by, and
:class:`RouteMatch`, the result of a successful lookup. Subclasses add
middleware but must preserve these semantics.

Constructor and slots
---------------------
Constructor signature::

    BaseRouter(owner, name=None, *, get_default_handler=None,
               get_use_smartasync=None, parent_router=None)

- ``owner`` is required; ``None`` raises ``ValueError``. For a composed
  resource the owner is its ``RouteTree``.
- Slots: ``instance``, ``name``, ``_entries`` (route key → RouteEntry,
  registration order), ``_handlers`` (route key → wrapped callable),
  ``_patterns`` (route key → compiled segments), ``_children``
  (alias → child router), ``_get_defaults`` (SmartOptions defaults),
  ``_frozen``.
- ``get_default_handler`` / ``get_use_smartasync`` become defaults merged via ``SmartOptions`` in ``get()``.
- ``parent_router``: attach this router to a parent under ``name``; a missing
  name or an alias collision raises ``ValueError``.

Registration
------------
``add_route(method, path, handler, *, name=None, metadata=None, replace=False, **options)``

- ``method`` is upper-cased; ``path`` is split into segments, ``:x`` segments
  bind the ``x`` path parameter.
- The route key is ``"<METHOD> <path>"``; registering an existing key raises
  ``ValueError`` unless ``replace=True``. ``name`` defaults to the handler's
  ``__name__``; several routes may share one logical name.
- ``options`` of the form ``<plugin>_<key>`` for a registered plugin are
  stored as per-route plugin config; the rest is merged into metadata.

``forward(path, handler, *, child=None, name=None, metadata=None, **options)``

- Registers a prefix route that matches any method and any path starting
  with ``path``; the unconsumed segments are reported in ``RouteMatch.remaining``.
- ``child`` (a router) is attached under ``name`` so dotted selectors reach it
  and plugins are inherited (``_on_attached_to_parent``).

``freeze()`` closes the table: once frozen, registering a route, forwarding
or attaching a child raises ``RuntimeError``. ``RouteTree`` freezes its router
at the end of composition.
Matching
--------
``match(method, path_info)`` collects every route whose pattern fits:
exact-length routes with the same method, and forwards whose prefix fits.
The winner has the most literal segments, then the longest consumed prefix,
then the earliest registration. Returns ``None`` when nothing fits.
``allowed_methods(path_info)`` lists the methods of exact-length routes whose
pattern fits, for 405 answers.

Lookup by name
--------------
- ``get(selector, **options)`` resolves dotted selectors through
  ``_children`` (missing child → ``KeyError``), then looks the last part up as
  a route key or as a logical name (first registered wins). Missing handlers
  fall back to ``default_handler`` or raise ``NotImplementedError``. When
  ``use_smartasync`` is truthy the handler is wrapped with
  ``smartasync.smartasync``.
- ``call`` fetches then invokes.
- ``entries()`` returns the logical names in registration order (unique).

Introspection
-------------
``routes()`` lists ``(method, path, name)`` tuples, forwards reported with
method ``"*"``. ``members()`` returns a nested dict of routes and child
routers; empty routers return ``{}``.

Hooks for subclasses
--------------------
``_wrap_handler``, ``_after_entry_registered``, ``_on_attached_to_parent``,
``_describe_entry_extra``; default implementations are no-ops/passthrough.
"""

from __future__ import annotations

import inspect
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from smartseeds import SmartOptions

from restbuilder.core.context import split_path
from restbuilder.plugins._base_plugin import RouteEntry

__all__ = ["BaseRouter", "RouteMatch"]


@dataclass(frozen=True)
class RouteMatch:
    """A route selected for ``path_info``."""

    entry: RouteEntry
    handler: Callable
    params: Mapping[str, str] = field(default_factory=dict)
    consumed: Tuple[str, ...] = ()
    remaining: Tuple[str, ...] = ()

    @property
    def is_forward(self) -> bool:
        return self.entry.is_forward

    @property
    def name(self) -> str:
        return self.entry.name


def _compile(path: str) -> Tuple[Tuple[bool, str], ...]:
    """``(is_param, text)`` per segment."""
    compiled = []
    for segment in split_path(path):
        if segment.startswith(":"):
            param = segment[1:]
            if not param:
                raise ValueError(f"Empty parameter name in path {path!r}")
            compiled.append((True, param))
        else:
            compiled.append((False, segment))
    return tuple(compiled)


def _normalize_path(path: str) -> str:
    return "/" + "/".join(split_path(path))


class BaseRouter:
    """Plugin-free router bound to an owner object.

    Responsibilities:
    - register routes and forwards with logical names
    - match method + path segments to a single route
    - resolve dotted selectors across child routers
    - provide hooks for subclasses to wrap handlers
    """

    __slots__ = (
        "instance",
        "name",
        "_entries",
        "_handlers",
        "_patterns",
        "_children",
        "_get_defaults",
        "_frozen",
    )

    def __init__(
        self,
        owner: Any,
        name: Optional[str] = None,
        *,
        get_default_handler: Optional[Callable] = None,
        get_use_smartasync: Optional[bool] = None,
        parent_router: Optional["BaseRouter"] = None,
    ) -> None:
        if owner is None:
            raise ValueError("Router requires an owner instance")
        self.instance = owner
        self.name = name
        self._entries: Dict[str, RouteEntry] = {}
        self._handlers: Dict[str, Callable] = {}
        self._patterns: Dict[str, Tuple[Tuple[bool, str], ...]] = {}
        self._children: Dict[str, BaseRouter] = {}
        self._frozen = False
        defaults: Dict[str, Any] = {}
        if get_default_handler is not None:
            defaults.setdefault("default_handler", get_default_handler)
        if get_use_smartasync is not None:
            defaults.setdefault("use_smartasync", get_use_smartasync)
        self._get_defaults: Dict[str, Any] = defaults

        if parent_router is not None:
            if not name:
                raise ValueError("Child router must have a name when using parent_router")
            parent_router._attach_child(name, self)

    def _is_known_plugin(self, prefix: str) -> bool:
        try:
            from restbuilder.core.router import Router  # type: ignore
        except Exception:  # pragma: no cover - import safety
            return False
        return prefix in Router.available_plugins()

    # ------------------------------------------------------------------
    # Registration helpers
    # ------------------------------------------------------------------
    def add_route(
        self,
        method: str,
        path: str,
        handler: Callable,
        *,
        name: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        replace: bool = False,
        **options: Any,
    ) -> "BaseRouter":
        """Register ``handler`` for ``method`` on ``path``.

        Returns:
            self (to allow chaining).

        Raises:
            ValueError: on route collision when replace is False.
            TypeError: when ``handler`` is not callable.
        """
        if not isinstance(method, str) or not method.strip():
            raise ValueError(f"Invalid HTTP method: {method!r}")
        return self._register(method.strip().upper(), path, handler, name, metadata, replace, options)

    def forward(
        self,
        path: str,
        handler: Callable,
        *,
        child: Optional["BaseRouter"] = None,
        name: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        **options: Any,
    ) -> "BaseRouter":
        """Forward every request below ``path`` to ``handler``."""
        alias = name or (child.name if child is not None else None)
        meta = dict(metadata or {})
        meta["forward"] = True
        self._register(None, path, handler, alias, meta, False, options)
        if child is not None:
            if not alias:
                raise ValueError("Forwarding to a child router requires a name")
            self._attach_child(alias, child)
        return self

    def _register(
        self,
        method: Optional[str],
        path: str,
        handler: Callable,
        name: Optional[str],
        metadata: Optional[Dict[str, Any]],
        replace: bool,
        options: Dict[str, Any],
    ) -> "BaseRouter":
        self._check_open()
        if not callable(handler):
            raise TypeError(f"Route handler must be callable, got {handler!r}")
        plugin_options: Dict[str, Dict[str, Any]] = {}
        core_options: Dict[str, Any] = {}
        for key, value in options.items():
            if "_" in key:
                plugin_name, plug_key = key.split("_", 1)
                if plugin_name and plug_key and self._is_known_plugin(plugin_name):
                    plugin_options.setdefault(plugin_name, {})[plug_key] = value
                    continue
            core_options[key] = value

        normalized = _normalize_path(path)
        entry_meta = dict(metadata or {})
        entry_meta.update(core_options)
        entry = RouteEntry(
            name=name or getattr(handler, "__name__", normalized),
            func=handler,
            router=self,
            plugins=[],
            metadata=entry_meta,
            method=method,
            path=normalized,
        )
        if entry.key in self._entries and not replace:
            raise ValueError(f"Route collision: {entry.key}")
        if plugin_options:
            entry.metadata["plugin_config"] = plugin_options
        self._patterns[entry.key] = _compile(normalized)
        self._entries[entry.key] = entry
        self._after_entry_registered(entry)
        self._rebuild_handlers()
        return self

    def _attach_child(self, alias: str, child: "BaseRouter") -> None:
        self._check_open()
        if alias in self._children and self._children[alias] is not child:
            raise ValueError(f"Child name collision: {alias!r}")
        self._children[alias] = child
        child._on_attached_to_parent(self)

    def freeze(self) -> "BaseRouter":
        self._frozen = True
        return self

    @property
    def frozen(self) -> bool:
        return self._frozen

    def _check_open(self) -> None:
        if self._frozen:
            raise RuntimeError(f"Router {self.name!r} is frozen")

    def _wrap_handler(
        self, entry: RouteEntry, call_next: Callable
    ) -> Callable:  # pragma: no cover - overridden by plugin routers
        return call_next

    def _rebuild_handlers(self) -> None:
        handlers: Dict[str, Callable] = {}
        for key, entry in self._entries.items():
            handlers[key] = self._wrap_handler(entry, entry.func)
        self._handlers = handlers

    # ------------------------------------------------------------------
    # Matching
    # ------------------------------------------------------------------
    def match(self, method: str, path_info: Sequence[str]) -> Optional[RouteMatch]:
        method = str(method).upper()
        segments = tuple(path_info)
        best: Optional[Tuple[Tuple[int, int, int], str, Dict[str, str], int]] = None
        for order, (key, entry) in enumerate(self._entries.items()):
            if entry.method is not None and entry.method != method:
                continue
            found = self._fit(key, entry, segments)
            if found is None:
                continue
            params, size = found
            literals = sum(1 for is_param, _ in self._patterns[key] if not is_param)
            rank = (literals, size, -order)
            if best is None or rank > best[0]:
                best = (rank, key, params, size)
        if best is None:
            return None
        _, key, params, size = best
        return RouteMatch(
            entry=self._entries[key],
            handler=self._handlers[key],
            params=params,
            consumed=segments[:size],
            remaining=segments[size:],
        )

    def allowed_methods(self, path_info: Sequence[str]) -> Tuple[str, ...]:
        segments = tuple(path_info)
        methods: List[str] = []
        for key, entry in self._entries.items():
            if entry.method is None or entry.method in methods:
                continue
            if self._fit(key, entry, segments) is not None:
                methods.append(entry.method)
        return tuple(methods)

    def _fit(
        self, key: str, entry: RouteEntry, segments: Tuple[str, ...]
    ) -> Optional[Tuple[Dict[str, str], int]]:
        pattern = self._patterns[key]
        if entry.is_forward:
            if len(segments) < len(pattern):
                return None
        elif len(segments) != len(pattern):
            return None
        params: Dict[str, str] = {}
        for (is_param, text), segment in zip(pattern, segments):
            if is_param:
                params[text] = segment
            elif text != segment:
                return None
        return params, len(pattern)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def get(self, selector: str, **options: Any) -> Callable:
        """Resolve and return a handler callable for the given selector.

        Dotted selectors traverse attached children. Falls back to
        ``default_handler`` if provided, otherwise raises NotImplementedError.
        When ``use_smartasync`` is true, the handler is wrapped accordingly.
        """
        opts = SmartOptions(options, defaults=self._get_defaults)
        default = getattr(opts, "default_handler", None)
        use_smartasync = getattr(opts, "use_smartasync", False)

        node, route_name = self._resolve_path(selector)
        handler = node._lookup(route_name)
        if handler is None:
            handler = default
        if handler is None:
            raise NotImplementedError(
                f"Handler '{route_name}' not found for selector '{selector}'"
            )

        if use_smartasync:
            from smartasync import smartasync  # type: ignore

            handler = smartasync(handler)

        return handler

    def call(self, selector: str, *args, **kwargs):
        """Fetch and invoke a handler in one step."""
        handler = self.get(selector)
        return handler(*args, **kwargs)

    def entries(self) -> Tuple[str, ...]:
        """Return the logical route names registered on this router."""
        names: List[str] = []
        for entry in self._entries.values():
            if entry.name not in names:
                names.append(entry.name)
        return tuple(names)

    def routes(self) -> Tuple[Tuple[str, str, str], ...]:
        return tuple(
            (entry.method or "*", entry.path, entry.name) for entry in self._entries.values()
        )

    def _lookup(self, route_name: str) -> Optional[Callable]:
        handler = self._handlers.get(route_name)
        if handler is not None:
            return handler
        for key, entry in self._entries.items():
            if entry.name == route_name and not entry.is_forward:
                return self._handlers[key]
        return None

    def _resolve_path(self, selector: str) -> Tuple["BaseRouter", str]:
        if "." not in selector:
            return self, selector
        node: BaseRouter = self
        parts = selector.split(".")
        for segment in parts[:-1]:
            node = node._children[segment]
        return node, parts[-1]

    # ------------------------------------------------------------------
    # Introspection helpers
    # ------------------------------------------------------------------
    def members(self) -> Dict[str, Any]:
        """Return a tree of routers/routes/metadata."""
        routes = {
            key: self._entry_member_info(entry)
            for key, entry in self._entries.items()
            if not entry.is_forward
        }
        routers = {name: child.members() for name, child in self._children.items()}
        routers = {k: v for k, v in routers.items() if v}
        if not routes and not routers:
            return {}
        result: Dict[str, Any] = {
            "name": self.name,
            "router": self,
            "instance": self.instance,
            "plugin_info": self._get_plugin_info(),
        }
        if routes:
            result["routes"] = routes
        if routers:
            result["routers"] = routers
        return result

    def _entry_member_info(self, entry: RouteEntry) -> Dict[str, Any]:
        info: Dict[str, Any] = {
            "name": entry.name,
            "method": entry.method,
            "path": entry.path,
            "callable": entry.func,
            "metadata": entry.metadata,
            "doc": inspect.getdoc(entry.func) or "",
        }
        extra = self._describe_entry_extra(entry, info)
        if extra:
            info.update(extra)
        return info

    def _get_plugin_info(self) -> Dict[str, Any]:
        info_source = getattr(self, "_plugin_info", {}) or {}
        return {
            pname: {
                key: {
                    "config": dict(slot.get("config", {})),
                    "locals": dict(slot.get("locals", {})),
                }
                for key, slot in pdata.items()
            }
            for pname, pdata in info_source.items()
        }

    # ------------------------------------------------------------------
    # Plugin hooks (no-op for BaseRouter)
    # ------------------------------------------------------------------
    def iter_plugins(self) -> List[Any]:  # pragma: no cover - base router has no plugins
        return []

    def _on_attached_to_parent(
        self, parent: "BaseRouter"
    ) -> None:  # pragma: no cover - hook for subclasses
        return None

    def _after_entry_registered(
        self, entry: RouteEntry
    ) -> None:  # pragma: no cover - hook for subclasses
        return None

    def _describe_entry_extra(
        self, entry: RouteEntry, base_description: Dict[str, Any]
    ) -> Dict[str, Any]:  # pragma: no cover - overridden when plugins present
        return {}
