"""Resource composition (source of truth).

``compose(target, *, announcer=None, encoder=None, use_smartasync=None)``
turns a :class:`~restbuilder.core.descriptor.ResourceDescriptor` (or a
``ResourceClass`` instance) into a :class:`RouteTree`. Composition is the only
phase that writes: once ``compose`` returns, the tree's router, link registry
and (when ``compose`` created it) event announcer are frozen and the tree is
safe to serve from many threads.

Route set
---------
Per activated action, in canonical order:

===========  ==============  ========  ============================
action       method(s)       path      provider capability
===========  ==============  ========  ============================
index        GET             ``/``     ``handle_index``
show         GET             ``/:id``  ``handle_show``
create       POST            ``/``     ``handle_create``
update       PUT, PATCH      ``/:id``  ``handle_update``
delete       DELETE          ``/:id``  ``handle_delete``
===========  ==============  ========  ============================

After ``create``/``update`` the tree publishes the same-named event when the
returned context carries a ``resource`` and the event has subscribers. After
``delete`` it publishes ``delete`` with ``context.current`` as data, only when
the status is exactly 204 and ``current`` is set. The payload is
``{"category": <singular>, "name": <event>, "data": <value>}``.

Nested resources
----------------
- children: composed recursively, forwarded at ``/:id/<child plural>``,
  group link ``(<child plural>, "/<child plural>")``.
- includes: composed recursively, forwarded at ``/<include plural>``,
  group link ``(<include plural>, "/<include plural>")``.
- features: one route per method at ``/:id/<name>`` plus resource link
  ``(<name>, "/<name>")``; group features at ``/<name>`` plus group link.

Children share the parent's announcer and encoder and inherit the parent's
router plugins.

A provider only needs the capabilities it serves. A missing
``handle_<action>`` (or ``on_compose``) falls back to the default
:class:`~restbuilder.core.provider.Provider`: CRUD answers 501 and preload
passes the context through.

Serving
-------
``handle(request)`` runs the :class:`~restbuilder.core.pipeline.RequestPipeline`
then, for contexts that did not halt, the injected ``encoder(ctx) -> ctx``.
``call(selector, ...)`` invokes a named handler directly, skipping access,
matching and preload; dotted selectors (``"widgets.show"``) reach children.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, FrozenSet, List, Optional, Tuple

from smartseeds.typeutils import safe_is_instance

from .context import Request, RequestContext
from .descriptor import FeatureSpec, ResourceDescriptor
from .events import EventAnnouncer
from .links import LinkRegistry
from .pipeline import RequestPipeline
from .provider import Provider
from .router import Router

__all__ = ["RouteTree", "as_descriptor", "compose"]

_CAPABILITIES = ("index", "show", "create", "update", "delete", "preload")
_DEFAULT_PROVIDER = Provider()


def as_descriptor(target: Any) -> ResourceDescriptor:
    if isinstance(target, ResourceDescriptor):
        return target
    if safe_is_instance(target, "restbuilder.core.declared.ResourceClass"):
        return target.descriptor()
    raise TypeError(
        f"Expected a ResourceDescriptor or ResourceClass instance, got {type(target).__name__}"
    )


def compose(
    target: Any,
    *,
    announcer: Optional[EventAnnouncer] = None,
    encoder: Optional[Callable[[RequestContext], RequestContext]] = None,
    use_smartasync: Optional[bool] = None,
) -> "RouteTree":
    """Build the route tree for ``target``.

    An announcer passed in by the caller may be shared by several trees and is
    left unfrozen; one created here is frozen with the tree.
    """
    own_announcer = announcer is None
    if own_announcer:
        announcer = EventAnnouncer()
    tree = RouteTree(
        as_descriptor(target),
        announcer=announcer,
        encoder=encoder,
        use_smartasync=use_smartasync,
    )
    if own_announcer:
        announcer.freeze()
    return tree


class RouteTree:
    """A composed resource: router, links, provider binding and pipeline."""

    __slots__ = (
        "descriptor",
        "provider",
        "links",
        "announcer",
        "encoder",
        "router",
        "pipeline",
        "children",
        "_capabilities",
    )

    def __init__(
        self,
        descriptor: ResourceDescriptor,
        *,
        announcer: EventAnnouncer,
        encoder: Optional[Callable[[RequestContext], RequestContext]] = None,
        use_smartasync: Optional[bool] = None,
    ) -> None:
        self.descriptor = descriptor
        self.provider = descriptor.provider if descriptor.provider is not None else Provider()
        self.links = LinkRegistry(descriptor.name)
        self.announcer = announcer
        self.encoder = encoder
        self.router = Router(
            self, name=descriptor.plural_name, get_use_smartasync=use_smartasync
        )
        self.pipeline = RequestPipeline(self)
        self.children: Dict[str, RouteTree] = {}
        self._capabilities = self._bind_capabilities(use_smartasync)

        for code, config in descriptor.plugins:
            self.router.plug(code, **config)
        for action in descriptor.activated():
            self._activate(action)
        for child in descriptor.children:
            self._mount(child, use_smartasync, nested=True)
        for included in descriptor.includes:
            self._mount(included, use_smartasync, nested=False)
        for feature in descriptor.features:
            self._add_feature(feature)
        for subscription in descriptor.subscriptions:
            announcer.subscribe(descriptor.name, subscription.event, subscription.handler)
        self._provider_hook("on_compose")(self, descriptor.provider_options)
        self.links.freeze()
        self.router.freeze()

    # ------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------
    @property
    def singular_name(self) -> str:
        return self.descriptor.name

    @property
    def plural_name(self) -> str:
        return self.descriptor.plural_name

    @property
    def provider_options(self) -> Any:
        return self.descriptor.provider_options

    def __repr__(self) -> str:
        return f"<RouteTree {self.plural_name!r}>"

    # ------------------------------------------------------------------
    # Composition
    # ------------------------------------------------------------------
    def _provider_hook(self, name: str) -> Callable:
        """``name`` on the provider, or the default ``Provider`` behaviour when it is missing."""
        hook = getattr(self.provider, name, None)
        if hook is None:
            hook = getattr(_DEFAULT_PROVIDER, name)
        return hook

    def _bind_capabilities(self, use_smartasync: Optional[bool]) -> Dict[str, Callable]:
        capabilities = {}
        for name in _CAPABILITIES:
            call = self._provider_hook(f"handle_{name}")
            if use_smartasync:
                from smartasync import smartasync  # type: ignore

                call = smartasync(call)
            capabilities[name] = call
        return capabilities

    def _activate(self, action: str) -> None:
        handler = getattr(self, f"_build_{action}")()
        meta = {"action": action}
        if action == "index":
            self.router.add_route("GET", "/", handler, name=action, metadata=meta)
        elif action == "show":
            self.router.add_route("GET", "/:id", handler, name=action, metadata=meta)
        elif action == "create":
            self.router.add_route("POST", "/", handler, name=action, metadata=meta)
        elif action == "update":
            self.router.add_route("PUT", "/:id", handler, name=action, metadata=meta)
            self.router.add_route("PATCH", "/:id", handler, name=action, metadata=meta)
        elif action == "delete":
            self.router.add_route("DELETE", "/:id", handler, name=action, metadata=meta)

    def _build_index(self) -> Callable:
        def index(ctx: RequestContext) -> RequestContext:
            return self.provider_call("index", ctx)

        return index

    def _build_show(self) -> Callable:
        def show(ctx: RequestContext) -> RequestContext:
            return self.provider_call("show", ctx)

        return show

    def _build_create(self) -> Callable:
        def create(ctx: RequestContext) -> RequestContext:
            ctx = self.provider_call("create", ctx)
            if ctx.resource is not None and self.has_subscribers("create"):
                self.announce("create", ctx.resource)
            return ctx

        return create

    def _build_update(self) -> Callable:
        def update(ctx: RequestContext) -> RequestContext:
            ctx = self.provider_call("update", ctx)
            if ctx.resource is not None and self.has_subscribers("update"):
                self.announce("update", ctx.resource)
            return ctx

        return update

    def _build_delete(self) -> Callable:
        def delete(ctx: RequestContext) -> RequestContext:
            ctx = self.provider_call("delete", ctx)
            if ctx.status == 204 and ctx.current is not None and self.has_subscribers("delete"):
                self.announce("delete", ctx.current)
            return ctx

        return delete

    def _mount(self, target: Any, use_smartasync: Optional[bool], *, nested: bool) -> None:
        child = RouteTree(
            as_descriptor(target),
            announcer=self.announcer,
            encoder=self.encoder,
            use_smartasync=use_smartasync,
        )
        plural = child.plural_name
        path = f"/:id/{plural}" if nested else f"/{plural}"
        meta = {"child" if nested else "include": plural}
        self.router.forward(path, child._forwarded, child=child.router, name=plural, metadata=meta)
        self.links.register_group_link(plural, f"/{plural}")
        self.children[plural] = child

    def _add_feature(self, feature: FeatureSpec) -> None:
        meta = {"feature": feature.name, "group": feature.group}
        for method in feature.methods:
            self.router.add_route(
                method, feature.path, feature.handler, name=feature.name, metadata=dict(meta)
            )
        if feature.group:
            self.links.register_group_link(feature.name, f"/{feature.name}")
        else:
            self.links.register_resource_link(feature.name, f"/{feature.name}")

    def _forwarded(self, ctx: RequestContext) -> RequestContext:
        """Run this tree's pipeline for a request forwarded by the parent.

        The answer keeps the forwarded request and ``api_module``; the encoder
        resolves links against the innermost resource.
        """
        match = ctx.match
        request = ctx.request.forward(match.consumed, match.remaining)
        return self.pipeline.run(ctx.assign(request=request, match=None))

    # ------------------------------------------------------------------
    # Provider and events
    # ------------------------------------------------------------------
    def provider_call(self, capability: str, ctx: RequestContext) -> RequestContext:
        return self._capabilities[capability](ctx, self, self.provider_options)

    def has_subscribers(self, event: str) -> bool:
        return self.announcer.has_subscribers(self.singular_name, event)

    def announce(self, event: str, data: Any) -> int:
        payload = {"category": self.singular_name, "name": event, "data": data}
        return self.announcer.publish(self.singular_name, event, payload)

    # ------------------------------------------------------------------
    # Handler helpers
    # ------------------------------------------------------------------
    def append_resource(self, ctx: RequestContext, resource: Any) -> RequestContext:
        """Advertise ``resource`` to later handlers for cross-linking."""
        href = ctx.current_location()
        entry = {"resource": resource, "name": self.singular_name, "href": href}
        references = list(ctx.references or ())
        references.append(entry)
        resources = list(ctx.resources or ())
        resources.append((resource, href))
        return ctx.assign(references=references, resources=resources)

    def send_resource(self, ctx: RequestContext, resource: Any) -> RequestContext:
        return ctx.assign(resource=resource)

    def send_errors(self, ctx: RequestContext, error_code: int, errors: Any) -> RequestContext:
        return ctx.assign(error_code=error_code, errors=errors)

    def group_links(self, target: Any = "") -> List[Dict[str, str]]:
        return self.links.resolve_group_links(target)

    def resource_links(self, target: Any = "") -> List[Dict[str, str]]:
        return self.links.resolve_resource_links(target)

    # ------------------------------------------------------------------
    # Serving
    # ------------------------------------------------------------------
    def handle(self, request: Any) -> RequestContext:
        if isinstance(request, RequestContext):
            ctx = request
        elif isinstance(request, Request):
            ctx = RequestContext.for_request(request)
        else:
            raise TypeError(f"handle() expects a Request or RequestContext, got {request!r}")
        ctx = self.pipeline.run(ctx)
        if self.encoder is not None and not ctx.halted:
            ctx = self.encoder(ctx)
        return ctx

    def call(
        self,
        selector: str,
        ctx: Optional[RequestContext] = None,
        *,
        request: Optional[Request] = None,
        **params: Any,
    ) -> RequestContext:
        """Invoke the handler named ``selector`` directly."""
        handler = self.router.get(selector)
        node, _ = self.router._resolve_path(selector)
        tree = node.instance
        if ctx is None:
            ctx = RequestContext.for_request(
                request or Request("GET", script_name=(tree.plural_name,))
            )
        return handler(ctx.assign(api_module=tree).merge_params(params))

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------
    def routes(self) -> Tuple[Tuple[str, str, str], ...]:
        return self.router.routes()

    def route_set(self) -> FrozenSet[Tuple[str, str]]:
        return frozenset((method, path) for method, path, _ in self.routes())

    def describe(self) -> Dict[str, Any]:
        return {
            "name": self.singular_name,
            "plural_name": self.plural_name,
            "actions": list(self.descriptor.activated()),
            "routes": [
                {"method": method, "path": path, "name": name}
                for method, path, name in self.routes()
            ],
            "group_links": self.group_links(""),
            "resource_links": self.resource_links(""),
            "plugins": [plugin.name for plugin in self.router.iter_plugins()],
            "children": {name: child.describe() for name, child in self.children.items()},
        }
