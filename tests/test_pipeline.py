"""Tests for the request pipeline stages and nested forwarding."""

import sys

import pytest

from restbuilder import Provider, Request, RequestContext, ResourceDescriptor, compose
from restbuilder.core.pipeline import STAGES


class OrderProvider(Provider):
    """Preloads orders and records every capability call."""

    def __init__(self, orders):
        self.orders = orders
        self.calls = []

    def handle_preload(self, context, tree, options):
        self.calls.append(("preload", context.params["id"]))
        order = self.orders.get(context.params["id"])
        if order is None:
            return tree.send_errors(context, 404, ["order not found"])
        return tree.append_resource(context.assign(current=order), order)

    def handle_show(self, context, tree, options):
        self.calls.append(("show", context.params["id"]))
        return tree.send_resource(context, self.orders[context.params["id"]]).put_status(200)


class WidgetProvider(Provider):
    def __init__(self):
        self.seen = []

    def handle_index(self, context, tree, options):
        self.seen.append(context)
        return tree.send_resource(context, [{"order": context.current["id"]}]).put_status(200)

    def handle_create(self, context, tree, options):
        widget = {"id": 10, "order": context.params["id"]}
        return tree.send_resource(context, widget).put_status(201)


def _orders(access=None, subscriptions=()):
    orders = OrderProvider({"1": {"id": 1}})
    widgets = WidgetProvider()
    child = ResourceDescriptor(
        "widget",
        "widgets",
        activate=["index", "create"],
        provider=widgets,
        subscriptions=subscriptions,
    )
    descriptor = ResourceDescriptor(
        "order",
        "orders",
        activate=["show"],
        provider=orders,
        children=[child],
        access=access,
    )
    return compose(descriptor), orders, widgets


def _get(tree, path, method="GET", **kwargs):
    return tree.handle(Request.build(method, path, mount="/orders", **kwargs))


def test_stage_order_is_fixed():
    tree, _, _ = _orders()
    assert STAGES == ("access", "seed", "match", "preload", "dispatch")
    assert [name for name, _ in tree.pipeline.stages()] == list(STAGES)


def test_nested_request_preloads_before_dispatch():
    tree, orders, widgets = _orders()
    ctx = _get(tree, "/1/widgets")

    assert orders.calls == [("preload", "1")]
    assert ctx.resource == [{"order": 1}]
    assert ctx.status == 200
    (child_ctx,) = widgets.seen
    assert child_ctx.api_module is tree.children["widgets"]
    assert child_ctx.request.script_name == ("orders", "1", "widgets")
    assert child_ctx.request.path_info == ()


def test_forwarded_answer_keeps_innermost_request():
    tree, _, _ = _orders()
    ctx = _get(tree, "/1/widgets")
    assert ctx.request.script_name == ("orders", "1", "widgets")
    assert ctx.request.path_info == ()
    assert ctx.api_module is tree.children["widgets"]
    assert ctx.current_location() == "http://localhost/orders/1/widgets"


def test_leaf_routes_do_not_preload():
    tree, orders, _ = _orders()
    ctx = _get(tree, "/1")
    assert orders.calls == [("show", "1")]
    assert ctx.resource == {"id": 1}


def test_preload_error_stops_before_dispatch():
    tree, orders, widgets = _orders()
    ctx = _get(tree, "/2/widgets")
    assert orders.calls == [("preload", "2")]
    assert widgets.seen == []
    assert ctx.error_code == 404
    assert ctx.errors == ["order not found"]
    assert not ctx.halted


def test_preloaded_resource_is_advertised_to_child_links():
    tree, _, widgets = _orders()
    _get(tree, "/1/widgets")
    (child_ctx,) = widgets.seen

    assert child_ctx.references == (
        {"resource": {"id": 1}, "name": "order", "href": "http://localhost/orders/1"},
    )
    assert child_ctx.resources == (({"id": 1}, "http://localhost/orders/1"),)
    assert tree.children["widgets"].group_links(child_ctx) == [
        {"name": "order", "href": "http://localhost/orders/1"},
        {"name": "index", "href": "http://localhost/orders/1/widgets"},
    ]


def test_nested_create_publishes_on_shared_announcer():
    events = []
    tree, _, _ = _orders(subscriptions=[("create", events.append)])
    ctx = _get(tree, "/1/widgets", method="POST", body={})
    assert ctx.status == 201
    assert events == [{"category": "widget", "name": "create", "data": {"id": 10, "order": "1"}}]


def test_access_rejection_skips_every_later_stage():
    tree, orders, _ = _orders(access=lambda ctx: ctx.halt(401, "Unauthorized"))
    ctx = _get(tree, "/1")
    assert ctx.status == 401
    assert ctx.body == "Unauthorized"
    assert ctx.api_module is None
    assert ctx.match is None
    assert orders.calls == []


def test_access_can_enrich_the_context():
    tree, _, widgets = _orders(access=lambda ctx: ctx.assign(user="ana"))
    _get(tree, "/1/widgets")
    assert widgets.seen[0].assigns["user"] == "ana"


def test_unknown_path_and_wrong_method():
    tree, orders, _ = _orders()
    missing = _get(tree, "/1/gadgets")
    assert missing.status == 404
    assert missing.halted

    wrong = _get(tree, "/1", method="DELETE")
    assert wrong.status == 405
    assert wrong.assigns["allow"] == ("GET",)
    assert orders.calls == []


def test_nested_unknown_path_is_reported_by_child():
    tree, _, _ = _orders()
    ctx = _get(tree, "/1/widgets/5")
    assert ctx.status == 404
    assert ctx.halted


def test_params_merge_query_and_path():
    tree, _, widgets = _orders()
    _get(tree, "/1/widgets", query={"page": "2", "id": "query"})
    params = widgets.seen[0].params
    assert params["page"] == "2"
    assert params["id"] == "1"


def test_stage_must_return_a_context():
    tree = compose(
        ResourceDescriptor("widget", "widgets", activate=["index"], access=lambda ctx: None)
    )
    with pytest.raises(TypeError):
        tree.handle(Request.build("GET", "/"))


def test_handle_accepts_a_prepared_context():
    tree, _, _ = _orders()
    ctx = RequestContext.for_request(Request.build("GET", "/1", mount="/orders"), params={"x": 1})
    result = tree.handle(ctx)
    assert result.params["x"] == 1
    assert result.resource == {"id": 1}
    with pytest.raises(TypeError):
        tree.handle("/orders/1")


def test_smartasync_wraps_provider_capabilities(monkeypatch):
    wrapped = []

    def fake_smartasync(fn):
        def wrapper(*args, **kwargs):
            wrapped.append(fn.__name__)
            return fn(*args, **kwargs)

        return wrapper

    fake_module = type(sys)("smartasync")
    fake_module.smartasync = fake_smartasync
    monkeypatch.setitem(sys.modules, "smartasync", fake_module)

    tree = compose(
        ResourceDescriptor("widget", "widgets", activate=["index"]), use_smartasync=True
    )
    ctx = tree.handle(Request.build("GET", "/", mount="/widgets"))
    assert ctx.status == 501
    assert wrapped == ["handle_index"]
