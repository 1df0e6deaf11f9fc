"""Class-based resource declarations (source of truth).

``ResourceClass`` is a base class whose subclasses declare a resource with
class attributes and marked methods; an instance produces the equivalent
:class:`~restbuilder.core.descriptor.ResourceDescriptor`.

Class attributes
----------------
``singular_name``, ``plural_name`` (required), ``activate``, ``provider``,
``provider_options``, ``children``, ``includes``, ``plugins``, ``access``.
Instance attributes of the same name take precedence, so ``__init__`` can
bind a provider built from constructor arguments.

Marker discovery
----------------
``_iter_marked_methods`` walks the reversed MRO of ``type(self)``, scans each
``__dict__`` for plain functions carrying ``TARGET_ATTR_NAME`` markers and
skips functions already seen (by identity). Methods are bound to the instance
before being stored as feature handlers or subscribers, so handlers receive
``(self, ctx)``.

``descriptor()`` caches the built descriptor on the instance; the instance is
not expected to change after its first use.
"""

from __future__ import annotations

import inspect
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

from .decorators import TARGET_ATTR_NAME
from .descriptor import EventSubscription, FeatureSpec, ResourceDescriptor

__all__ = ["ResourceClass", "is_resource_class"]

_DESCRIPTOR_CACHE = "__restbuilder_descriptor__"


class ResourceClass:
    """Base class for declaratively defined resources."""

    singular_name: Optional[str] = None
    plural_name: Optional[str] = None
    activate: Any = None
    provider: Any = None
    provider_options: Any = None
    children: Tuple[Any, ...] = ()
    includes: Tuple[Any, ...] = ()
    plugins: Tuple[Any, ...] = ()
    access: Optional[Callable] = None

    def descriptor(self) -> ResourceDescriptor:
        cached = self.__dict__.get(_DESCRIPTOR_CACHE)
        if cached is not None:
            return cached
        features: List[FeatureSpec] = []
        subscriptions: List[EventSubscription] = []
        for func, marker in self._iter_marked_methods():
            bound = func.__get__(self, type(self))
            kind = marker.get("kind")
            if kind in ("feature", "group_feature"):
                features.append(
                    FeatureSpec(
                        name=marker["name"],
                        handler=bound,
                        methods=marker.get("only"),
                        group=kind == "group_feature",
                    )
                )
            elif kind == "event":
                subscriptions.append(EventSubscription(marker["event"], bound))
        descriptor = ResourceDescriptor(
            name=self.singular_name,
            plural_name=self.plural_name,
            activate=self.activate,
            provider=self.provider,
            provider_options=self.provider_options,
            children=self.children,
            includes=self.includes,
            features=features,
            subscriptions=subscriptions,
            access=self.access,
            plugins=self.plugins,
        )
        self.__dict__[_DESCRIPTOR_CACHE] = descriptor
        return descriptor

    def _iter_marked_methods(self) -> Iterator[Tuple[Callable, Dict[str, Any]]]:
        cls = type(self)
        seen: set[int] = set()
        for base in reversed(cls.__mro__):
            for value in vars(base).values():
                if not inspect.isfunction(value):
                    continue
                if id(value) in seen:
                    continue
                seen.add(id(value))
                for marker in getattr(value, TARGET_ATTR_NAME, None) or ():
                    yield value, dict(marker)


def is_resource_class(obj: Any) -> bool:
    """Return True when ``obj`` is a ResourceClass instance."""
    return isinstance(obj, ResourceClass)
