"""Per-request values threaded through the pipeline.

``Request`` is what the external router hands over: method, the path
segments still to route (``path_info``) and those already consumed
(``script_name``), plus scheme/host/headers/query/body. ``RequestContext``
wraps a request together with everything the stages and the provider add.

Both are frozen dataclasses. Stages never mutate a context: they call
:meth:`RequestContext.assign` (or one of the helpers built on it) and return
the new value.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple

__all__ = ["Request", "RequestContext", "split_path"]


def split_path(path: str) -> Tuple[str, ...]:
    return tuple(segment for segment in (path or "").split("/") if segment)


@dataclass(frozen=True)
class Request:
    method: str
    path_info: Tuple[str, ...] = ()
    script_name: Tuple[str, ...] = ()
    scheme: str = "http"
    host: str = "localhost"
    headers: Mapping[str, str] = field(default_factory=dict)
    query: Mapping[str, Any] = field(default_factory=dict)
    body: Any = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "method", str(self.method).upper())
        object.__setattr__(self, "path_info", tuple(self.path_info))
        object.__setattr__(self, "script_name", tuple(self.script_name))

    @classmethod
    def build(
        cls,
        method: str,
        path: str = "/",
        *,
        mount: str = "",
        **kwargs: Any,
    ) -> "Request":
        """Build a request for ``path`` relative to a tree mounted at ``mount``."""
        return cls(method, split_path(path), split_path(mount), **kwargs)

    @property
    def path(self) -> str:
        return "/" + "/".join(self.path_info)

    def forward(self, consumed: Tuple[str, ...], remaining: Tuple[str, ...]) -> "Request":
        return replace(
            self,
            script_name=self.script_name + tuple(consumed),
            path_info=tuple(remaining),
        )

    def current_location(self) -> str:
        """``<scheme>://<host>/<script_name...>/<first path segment>``."""
        segments = list(self.script_name)
        if self.path_info:
            segments.append(self.path_info[0])
        return f"{self.scheme}://{self.host}/" + "/".join(segments)


@dataclass(frozen=True)
class RequestContext:
    """Immutable per-request state; see the module docstring."""

    request: Request
    api_module: Any = None
    params: Mapping[str, Any] = field(default_factory=dict)
    resource: Any = None
    resources: Optional[Tuple[Any, ...]] = None
    current: Any = None
    error_code: Optional[int] = None
    errors: Any = None
    references: Optional[Tuple[Dict[str, Any], ...]] = None
    status: Optional[int] = None
    body: Any = None
    content_type: Optional[str] = None
    halted: bool = False
    match: Any = None
    assigns: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "params", MappingProxyType(dict(self.params)))
        object.__setattr__(self, "assigns", MappingProxyType(dict(self.assigns)))
        if self.resources is not None:
            object.__setattr__(self, "resources", tuple(self.resources))
        if self.references is not None:
            object.__setattr__(self, "references", tuple(self.references))

    @classmethod
    def for_request(cls, request: Request, **kwargs: Any) -> "RequestContext":
        params = dict(request.query)
        params.update(kwargs.pop("params", {}) or {})
        return cls(request=request, params=params, **kwargs)

    def assign(self, **changes: Any) -> "RequestContext":
        """Return a copy with ``changes`` applied.

        Known field names replace the field; any other key lands in
        ``assigns``.
        """
        known = _FIELD_NAMES
        updates = {key: value for key, value in changes.items() if key in known}
        extra = {key: value for key, value in changes.items() if key not in known}
        if extra:
            merged = dict(updates.get("assigns", self.assigns))
            merged.update(extra)
            updates["assigns"] = merged
        return replace(self, **updates)

    def get(self, key: str, default: Any = None) -> Any:
        if key in _FIELD_NAMES:
            value = getattr(self, key)
            return default if value is None else value
        return self.assigns.get(key, default)

    def merge_params(self, params: Mapping[str, Any]) -> "RequestContext":
        if not params:
            return self
        merged = dict(self.params)
        merged.update(params)
        return replace(self, params=merged)

    def halt(
        self,
        status: int,
        body: Any = None,
        content_type: Optional[str] = "text/plain",
        **changes: Any,
    ) -> "RequestContext":
        """Produce a final response; later pipeline stages are skipped."""
        return self.assign(
            status=status, body=body, content_type=content_type, halted=True, **changes
        )

    def put_status(self, status: int) -> "RequestContext":
        return replace(self, status=status)

    @property
    def failed(self) -> bool:
        return self.error_code is not None

    def current_location(self) -> str:
        return self.request.current_location()


_FIELD_NAMES = frozenset(f.name for f in fields(RequestContext))
