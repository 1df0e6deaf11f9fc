"""Static resource declarations (source of truth).

A :class:`ResourceDescriptor` is the immutable description of one REST
resource. ``compose()`` (see ``restbuilder.core.tree``) turns it into a
dispatchable :class:`~restbuilder.core.tree.RouteTree`; nothing here touches
routing or requests.

Fields
------
- ``name``: singular resource name (``"widget"``); non-empty.
- ``plural_name``: path segment and collection name (``"widgets"``); non-empty.
- ``activate``: which CRUD actions get routes. Accepts ``"all"``, a single
  action name, or an iterable of names; normalized to a ``frozenset`` of
  :data:`ACTIONS`. Unknown names raise :class:`CompositionError`.
- ``provider``: optional :class:`~restbuilder.core.provider.Provider`. When
  ``None`` the tree binds the default provider, so an activated action is
  never unroutable.
- ``provider_options``: opaque value handed to every provider call untouched.
- ``children``: descriptors forwarded at ``/:id/<plural>``.
- ``includes``: descriptors forwarded at ``/<plural>``.
- ``features``: :class:`FeatureSpec` tuple (custom non-CRUD routes).
- ``subscriptions``: :class:`EventSubscription` tuple bound to this
  resource's singular name as event category.
- ``access``: optional ``access(ctx) -> ctx`` callable run first in the
  pipeline.
- ``plugins``: ``(plugin_code, config)`` pairs plugged into the route set.

``children``/``includes`` may also hold ``ResourceClass`` instances; they are
turned into descriptors on demand by ``compose()``.

Invariants
----------
- Sequences are stored as tuples; the descriptor is never mutated after
  ``__post_init__``.
- Action order never matters: ``activate`` is a set, and routes are always
  registered in the canonical :data:`ACTIONS` order.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Optional, Tuple, Union

from .errors import CompositionError
from .events import normalize_event

__all__ = [
    "ACTIONS",
    "HTTP_METHODS",
    "EventSubscription",
    "FeatureSpec",
    "ResourceDescriptor",
    "normalize_actions",
    "normalize_methods",
]

ACTIONS: Tuple[str, ...] = ("index", "show", "create", "update", "delete")
HTTP_METHODS: Tuple[str, ...] = ("GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS")
DEFAULT_FEATURE_METHODS: Tuple[str, ...] = ("GET", "POST")

ActionSpec = Union[str, Iterable[str], None]


def normalize_actions(value: ActionSpec) -> frozenset:
    """Return the activated action set for ``value``.

    ``"all"`` expands to every action; a string may also be comma-separated.
    """
    if value is None:
        return frozenset()
    if isinstance(value, str):
        items = [chunk.strip() for chunk in value.split(",")]
    else:
        try:
            items = [str(chunk).strip() for chunk in value]
        except TypeError:
            raise TypeError(f"activate expects a string or iterable, got {value!r}") from None
    actions = set()
    for item in items:
        if not item:
            continue
        item = item.lower().lstrip(":")
        if item == "all":
            actions.update(ACTIONS)
        elif item in ACTIONS:
            actions.add(item)
        else:
            raise CompositionError(
                f"Unknown action {item!r}; expected one of {', '.join(ACTIONS)} or 'all'"
            )
    return frozenset(actions)


def normalize_methods(methods: Optional[Iterable[str]]) -> Tuple[str, ...]:
    if methods is None:
        return DEFAULT_FEATURE_METHODS
    if isinstance(methods, str):
        methods = methods.split(",")
    result = []
    for method in methods:
        code = str(method).strip().lstrip(":").upper()
        if not code:
            continue
        if code not in HTTP_METHODS:
            raise CompositionError(f"Unsupported HTTP method {method!r}")
        if code not in result:
            result.append(code)
    if not result:
        raise CompositionError("A feature needs at least one HTTP method")
    return tuple(result)


def _require_name(value: Any, what: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise CompositionError(f"{what} must be a non-empty string, got {value!r}")
    return value.strip()


@dataclass(frozen=True)
class FeatureSpec:
    """Custom route attached to a resource (``/:id/<name>``) or its group (``/<name>``)."""

    name: str
    handler: Callable
    methods: Tuple[str, ...] = DEFAULT_FEATURE_METHODS
    group: bool = False

    def __post_init__(self) -> None:
        name = _require_name(self.name, "Feature name").strip("/")
        if not name:
            raise CompositionError("Feature name cannot be only slashes")
        if not callable(self.handler):
            raise CompositionError(f"Feature {name!r} handler is not callable")
        object.__setattr__(self, "name", name)
        object.__setattr__(self, "methods", normalize_methods(self.methods))

    @property
    def path(self) -> str:
        return f"/{self.name}" if self.group else f"/:id/{self.name}"


@dataclass(frozen=True)
class EventSubscription:
    event: str
    handler: Callable

    def __post_init__(self) -> None:
        event = normalize_event(self.event)
        if not callable(self.handler):
            raise CompositionError(f"Subscriber for {event!r} is not callable")
        object.__setattr__(self, "event", event)


@dataclass(frozen=True)
class ResourceDescriptor:
    """Immutable declaration of one resource."""

    name: str
    plural_name: str
    activate: Any = frozenset()
    provider: Any = None
    provider_options: Any = None
    children: Tuple[Any, ...] = ()
    includes: Tuple[Any, ...] = ()
    features: Tuple[FeatureSpec, ...] = ()
    subscriptions: Tuple[EventSubscription, ...] = ()
    access: Optional[Callable] = None
    plugins: Tuple[Tuple[str, dict], ...] = field(default=())

    def __post_init__(self) -> None:
        set_ = object.__setattr__
        set_(self, "name", _require_name(self.name, "Resource name"))
        set_(self, "plural_name", _require_name(self.plural_name, "Plural name").strip("/"))
        set_(self, "activate", normalize_actions(self.activate))
        set_(self, "children", tuple(self.children or ()))
        set_(self, "includes", tuple(self.includes or ()))
        set_(self, "features", tuple(self._coerce_feature(f) for f in self.features or ()))
        set_(
            self,
            "subscriptions",
            tuple(self._coerce_subscription(s) for s in self.subscriptions or ()),
        )
        set_(self, "plugins", tuple(self._coerce_plugin(p) for p in self.plugins or ()))
        if self.access is not None and not callable(self.access):
            raise CompositionError("access must be callable")
        if self.provider is not None and isinstance(self.provider, type):
            raise CompositionError(
                f"provider must be an instance, got the class {self.provider.__name__}"
            )

    @property
    def singular_name(self) -> str:
        return self.name

    def activated(self) -> Tuple[str, ...]:
        """Activated actions in canonical order."""
        return tuple(action for action in ACTIONS if action in self.activate)

    @staticmethod
    def _coerce_feature(value: Any) -> FeatureSpec:
        if isinstance(value, FeatureSpec):
            return value
        if isinstance(value, dict):
            data = dict(value)
            if "only" in data:
                data["methods"] = data.pop("only")
            return FeatureSpec(**data)
        raise TypeError(f"Unsupported feature declaration: {value!r}")

    @staticmethod
    def _coerce_subscription(value: Any) -> EventSubscription:
        if isinstance(value, EventSubscription):
            return value
        if isinstance(value, (tuple, list)) and len(value) == 2:
            return EventSubscription(*value)
        raise TypeError(f"Unsupported subscription: {value!r}")

    @staticmethod
    def _coerce_plugin(value: Any) -> Tuple[str, dict]:
        if isinstance(value, str):
            return (value, {})
        if isinstance(value, (tuple, list)) and len(value) == 2 and isinstance(value[0], str):
            return (value[0], dict(value[1] or {}))
        raise TypeError(f"Unsupported plugin declaration: {value!r}")
