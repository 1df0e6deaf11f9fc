"""Fixed per-request stage sequence (source of truth).

Every request reaching a composed resource runs, in this order:

1. ``access``   – the descriptor's ``access(ctx) -> ctx`` callable, if any.
2. ``seed``     – binds ``api_module`` to the serving ``RouteTree``.
3. ``match``    – asks the tree's router for a route. No route for the path
   halts with 404; a path served only under other methods halts with 405 and
   ``assigns["allow"]`` listing them. Path parameters are merged into
   ``params`` and the :class:`~restbuilder.core.base_router.RouteMatch` is
   stored on ``ctx.match``.
4. ``preload``  – when the match binds ``id`` and forwards the rest of the path
   to a nested resource (``/:id/<child plural>...``), calls
   ``provider.handle_preload(ctx, tree, provider_options)``. Leaf routes
   (``/:id``, ``/:id/<feature>``) never preload.
5. ``dispatch`` – calls the matched (plugin-wrapped) handler.

The response encoder is not a stage: ``RouteTree.handle`` applies it after
the pipeline, outside of this module.

Any stage may return a halted context (``ctx.halt(...)``); no later stage runs.
A preload that reports an error (``error_code`` set) also stops the sequence
before dispatch. Stages exchange contexts by value: each returns the context
the next one receives.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable, List, Tuple

from .context import RequestContext

if TYPE_CHECKING:  # pragma: no cover - import for typing only
    from .tree import RouteTree

__all__ = ["RequestPipeline", "STAGES"]

STAGES: Tuple[str, ...] = ("access", "seed", "match", "preload", "dispatch")


class RequestPipeline:
    """Runs :data:`STAGES` for one ``RouteTree``."""

    __slots__ = ("tree",)

    def __init__(self, tree: "RouteTree") -> None:
        self.tree = tree

    def stages(self) -> List[Tuple[str, Callable[[RequestContext], RequestContext]]]:
        return [(name, getattr(self, f"stage_{name}")) for name in STAGES]

    def run(self, ctx: RequestContext) -> RequestContext:
        for name, stage in self.stages():
            ctx = stage(ctx)
            if not isinstance(ctx, RequestContext):
                raise TypeError(
                    f"Stage {name!r} of {self.tree.plural_name!r} returned "
                    f"{type(ctx).__name__}, expected RequestContext"
                )
            if ctx.halted:
                break
            if name == "preload" and ctx.failed:
                break
        return ctx

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------
    def stage_access(self, ctx: RequestContext) -> RequestContext:
        access = self.tree.descriptor.access
        if access is None:
            return ctx
        return access(ctx)

    def stage_seed(self, ctx: RequestContext) -> RequestContext:
        return ctx.assign(api_module=self.tree)

    def stage_match(self, ctx: RequestContext) -> RequestContext:
        request = ctx.request
        router = self.tree.router
        match = router.match(request.method, request.path_info)
        if match is None:
            allowed = router.allowed_methods(request.path_info)
            if allowed:
                return ctx.halt(405, "Method Not Allowed", allow=allowed)
            return ctx.halt(404, "Not Found")
        return ctx.assign(match=match).merge_params(match.params)

    def stage_preload(self, ctx: RequestContext) -> RequestContext:
        match = ctx.match
        if "id" not in match.params or not match.is_forward:
            return ctx
        return self.tree.provider_call("preload", ctx)

    def stage_dispatch(self, ctx: RequestContext) -> RequestContext:
        return ctx.match.handler(ctx)
