"""Navigational link registry (source of truth).

One :class:`LinkRegistry` belongs to one composed resource. It is filled while
the resource is composed and frozen afterwards; from then on it is only read.

Storage
-------
Entries are :class:`LinkEntry` values ``(kind, name, href)`` kept in
registration order. ``kind`` is ``"group"`` (links about the collection the
resource lives in: children, includes, group features) or ``"resource"``
(links about one instance: features). The store behaves like a multiset:
registering the same triple twice produces two entries in every resolved
document. Nothing is deduplicated.

Resolution
----------
``resolve_group_links(target)`` / ``resolve_resource_links(target)`` accept
either a base URL string or a :class:`~restbuilder.core.context.RequestContext`.

- String form: each entry becomes ``{"name": name, "href": href}`` where
  ``href`` is ``base + href`` unless the registered href already carries a URI
  scheme (``http://...``), in which case it is kept verbatim. Group documents
  end with ``{"name": "index", "href": base}``; resource documents end with
  ``{"name": "self", "href": base}``.
- Context form: the base is the request's current location
  (``<scheme>://<host>/<script_name...>/<first path segment>``). Group
  documents additionally list ``context.references`` (resources appended by
  earlier handlers) whose name differs from the registry owner's singular
  name; they go after the registered entries and before the ``index``
  trailer, so the trailer is always last.

Invariants
----------
- Resolution never mutates the registry.
- ``register_*`` after ``freeze()`` raises ``RuntimeError``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from smartseeds.typeutils import safe_is_instance

__all__ = ["GROUP", "RESOURCE", "LinkEntry", "LinkRegistry", "is_absolute"]

GROUP = "group"
RESOURCE = "resource"

_SCHEME_RE = re.compile(r"^[A-Za-z][A-Za-z0-9+.\-]*://")


def is_absolute(href: str) -> bool:
    return bool(_SCHEME_RE.match(href))


@dataclass(frozen=True)
class LinkEntry:
    kind: str
    name: str
    href: str

    def resolve(self, base_url: str) -> Dict[str, str]:
        href = self.href if is_absolute(self.href) else f"{base_url}{self.href}"
        return {"name": self.name, "href": href}


class LinkRegistry:
    """Append-only (until frozen) store of group and resource links."""

    __slots__ = ("owner_name", "_entries", "_frozen")

    def __init__(self, owner_name: Optional[str] = None) -> None:
        self.owner_name = owner_name
        self._entries: Union[List[LinkEntry], Tuple[LinkEntry, ...]] = []
        self._frozen = False

    # ------------------------------------------------------------------
    # Composition phase
    # ------------------------------------------------------------------
    def register_group_link(self, name: str, href: str) -> "LinkRegistry":
        return self._register(GROUP, name, href)

    def register_resource_link(self, name: str, href: str) -> "LinkRegistry":
        return self._register(RESOURCE, name, href)

    def _register(self, kind: str, name: str, href: str) -> "LinkRegistry":
        if self._frozen:
            raise RuntimeError(f"Link registry for {self.owner_name!r} is frozen")
        if not isinstance(name, str) or not isinstance(href, str):
            raise TypeError("Link name and href must be strings")
        self._entries.append(LinkEntry(kind, name, href))
        return self

    def freeze(self) -> "LinkRegistry":
        self._entries = tuple(self._entries)
        self._frozen = True
        return self

    @property
    def frozen(self) -> bool:
        return self._frozen

    def entries(self, kind: Optional[str] = None) -> Tuple[LinkEntry, ...]:
        return tuple(entry for entry in self._entries if kind is None or entry.kind == kind)

    def __len__(self) -> int:
        return len(self._entries)

    # ------------------------------------------------------------------
    # Serving phase
    # ------------------------------------------------------------------
    def resolve_group_links(self, target: Any = "") -> List[Dict[str, str]]:
        if self._is_context(target):
            base_url = target.current_location()
            extra = self._reference_links(target.references or ())
        else:
            base_url = str(target or "")
            extra = []
        links = [entry.resolve(base_url) for entry in self.entries(GROUP)]
        links.extend(extra)
        links.append({"name": "index", "href": base_url})
        return links

    def resolve_resource_links(self, target: Any = "") -> List[Dict[str, str]]:
        if self._is_context(target):
            base_url = target.current_location()
        else:
            base_url = str(target or "")
        links = [entry.resolve(base_url) for entry in self.entries(RESOURCE)]
        links.append({"name": "self", "href": base_url})
        return links

    def _reference_links(self, references: Sequence[Dict[str, Any]]) -> List[Dict[str, str]]:
        return [
            {"name": ref.get("name"), "href": ref.get("href")}
            for ref in references
            if ref.get("name") != self.owner_name
        ]

    @staticmethod
    def _is_context(target: Any) -> bool:
        return safe_is_instance(target, "restbuilder.core.context.RequestContext")
