"""
Example composing an orders API with nested widgets, a feature and events.
"""

from __future__ import annotations

import logging
from typing import Any, Dict

from restbuilder import (
    Provider,
    Request,
    ResourceClass,
    ResourceDescriptor,
    compose,
    feature,
    group_feature,
    on_event,
)


class MemoryProvider(Provider):
    """Dict-backed storage; ids are strings as they come from the path."""

    def on_compose(self, tree, options):
        self.rows: Dict[str, Dict[str, Any]] = dict((options or {}).get("seed", {}))

    def handle_index(self, context, tree, options):
        rows = list(self.rows.values())
        if context.current is not None:
            parent_id = context.current["id"]
            rows = [row for row in rows if row.get("order") == parent_id]
        return tree.send_resource(context, rows).put_status(200)

    def handle_show(self, context, tree, options):
        row = self.rows.get(context.params["id"])
        if row is None:
            return tree.send_errors(context, 404, [f"{tree.singular_name} not found"])
        return tree.send_resource(context, row).put_status(200)

    def handle_create(self, context, tree, options):
        row = dict(context.request.body or {})
        row["id"] = str(len(self.rows) + 1)
        if context.current is not None:
            row["order"] = context.current["id"]
        self.rows[row["id"]] = row
        return tree.send_resource(context, row).put_status(201)

    def handle_delete(self, context, tree, options):
        row = self.rows.pop(context.params["id"], None)
        if row is None:
            return tree.send_errors(context, 404, [f"{tree.singular_name} not found"])
        return context.assign(current=row, status=204)

    def handle_preload(self, context, tree, options):
        row = self.rows.get(context.params["id"])
        if row is None:
            return tree.send_errors(context, 404, [f"{tree.singular_name} not found"])
        return tree.append_resource(context.assign(current=row), row)


class OrdersAPI(ResourceClass):
    singular_name = "order"
    plural_name = "orders"
    activate = "all"
    plugins = ("logging",)

    def __init__(self):
        self.provider = MemoryProvider()
        self.provider_options = {"seed": {"1": {"id": "1", "status": "open"}}}
        self.children = (
            ResourceDescriptor(
                "widget",
                "widgets",
                activate=["index", "create", "delete"],
                provider=MemoryProvider(),
            ),
        )
        self.deleted = []

    @feature("close", only=["post"])
    def close(self, ctx):
        order = self.provider.rows.get(ctx.params["id"])
        if order is None:
            return ctx.assign(error_code=404, errors=["order not found"])
        order["status"] = "closed"
        return ctx.assign(resource=order, status=200)

    @group_feature("open", only=["get"])
    def open_orders(self, ctx):
        rows = [row for row in self.provider.rows.values() if row["status"] == "open"]
        return ctx.assign(resource=rows, status=200)

    @on_event("delete")
    def forget(self, payload):
        self.deleted.append(payload["data"]["id"])


def json_encoder(ctx):
    """Shape every non-halted answer as ``{"data", "links"}`` or ``{"errors"}``."""
    tree = ctx.api_module
    if ctx.failed:
        return ctx.assign(
            status=ctx.error_code,
            body={"errors": ctx.errors},
            content_type="application/json",
        )
    many = isinstance(ctx.resource, list)
    links = tree.group_links(ctx) if many else tree.resource_links(ctx)
    return ctx.assign(
        body={"data": ctx.resource, "links": links},
        content_type="application/json",
    )


def build_api():
    return compose(OrdersAPI(), encoder=json_encoder)


def main():
    api = build_api()
    for method, path, body in (
        ("GET", "/", None),
        ("POST", "/1/close", None),
        ("POST", "/1/widgets", {"name": "bolt"}),
        ("GET", "/1/widgets", None),
        ("GET", "/9/widgets", None),
        ("DELETE", "/1", None),
    ):
        ctx = api.handle(Request.build(method, path, mount="/orders", body=body))
        print(method, path, ctx.status, ctx.body)


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    main()
