"""Tests for compose(): route sets, links, events and direct calls."""

import pytest

from restbuilder import (
    EventAnnouncer,
    FeatureSpec,
    Provider,
    Request,
    ResourceDescriptor,
    compose,
)

ALL_ROUTES = {
    ("GET", "/"),
    ("GET", "/:id"),
    ("POST", "/"),
    ("PUT", "/:id"),
    ("PATCH", "/:id"),
    ("DELETE", "/:id"),
}


class MemoryProvider(Provider):
    """Keeps rows in a dict keyed by string id."""

    def __init__(self, rows=None):
        self.rows = dict(rows or {})

    def handle_index(self, context, tree, options):
        return tree.send_resource(context, list(self.rows.values())).put_status(200)

    def handle_show(self, context, tree, options):
        row = self.rows.get(context.params["id"])
        if row is None:
            return tree.send_errors(context, 404, [f"{tree.singular_name} not found"])
        return tree.send_resource(context, row).put_status(200)

    def handle_create(self, context, tree, options):
        row = dict(context.request.body or {})
        row["id"] = len(self.rows) + 1
        self.rows[str(row["id"])] = row
        return tree.send_resource(context, row).put_status(201)

    def handle_update(self, context, tree, options):
        row = self.rows.get(context.params["id"])
        if row is None:
            return tree.send_errors(context, 404, ["not found"])
        row.update(context.request.body or {})
        return tree.send_resource(context, row).put_status(200)

    def handle_delete(self, context, tree, options):
        row = self.rows.pop(context.params["id"], None)
        if row is None:
            return tree.send_errors(context, 404, ["not found"])
        return context.assign(current=row, status=204)


class DeleteStub(Provider):
    def __init__(self, status, current):
        self.status = status
        self.current = current

    def handle_delete(self, context, tree, options):
        return context.assign(status=self.status, current=self.current)


def _widgets(**kwargs):
    kwargs.setdefault("activate", "all")
    return ResourceDescriptor("widget", "widgets", **kwargs)


def _request(method, path, body=None, mount="/widgets"):
    return Request.build(method, path, mount=mount, body=body)


def test_activate_all_registers_full_route_set():
    assert compose(_widgets()).route_set() == ALL_ROUTES


def test_activation_is_order_independent():
    shuffled = ["delete", "show", "update", "index", "create"]
    assert compose(_widgets(activate=shuffled)).route_set() == compose(_widgets()).route_set()
    assert compose(_widgets(activate=["create", "index"])).route_set() == {
        ("GET", "/"),
        ("POST", "/"),
    }


def test_nothing_activated_registers_nothing():
    assert compose(_widgets(activate=None)).route_set() == frozenset()


def test_compose_rejects_other_targets():
    with pytest.raises(TypeError):
        compose({"name": "widget"})


def test_default_provider_answers_not_implemented():
    tree = compose(_widgets())
    for method, path in (("GET", "/"), ("GET", "/3"), ("POST", "/"), ("PUT", "/3"), ("DELETE", "/3")):
        ctx = tree.handle(_request(method, path))
        assert ctx.status == 501
        assert ctx.body == "Not yet implemented."
        assert ctx.content_type == "text/plain"
        assert ctx.halted


def test_create_publishes_event_with_resource():
    events = []

    class CreateOnly(Provider):
        def handle_create(self, context, tree, options):
            return tree.send_resource(context, {"id": 1, "name": "x"})

    tree = compose(_widgets(provider=CreateOnly(), subscriptions=[("create", events.append)]))
    ctx = tree.handle(_request("POST", "/", body={"name": "x"}))

    assert ctx.resource == {"id": 1, "name": "x"}
    assert events == [{"category": "widget", "name": "create", "data": {"id": 1, "name": "x"}}]


def test_create_without_resource_publishes_nothing():
    events = []
    tree = compose(_widgets(subscriptions=[("create", events.append)]))
    tree.handle(_request("POST", "/"))
    assert events == []


def test_update_publishes_update_event_for_put_and_patch():
    events = []
    provider = MemoryProvider({"1": {"id": 1, "name": "a"}})
    tree = compose(_widgets(provider=provider, subscriptions=[("update", events.append)]))

    tree.handle(_request("PUT", "/1", body={"name": "b"}))
    tree.handle(_request("PATCH", "/1", body={"name": "c"}))
    tree.handle(_request("PATCH", "/9", body={"name": "d"}))

    assert [event["name"] for event in events] == ["update", "update"]
    assert events[-1]["data"]["name"] == "c"


@pytest.mark.parametrize(
    "status, current, published",
    [
        (203, {"id": 1}, False),
        (204, None, False),
        (200, {"id": 1}, False),
        (204, {"id": 1}, True),
    ],
)
def test_delete_event_requires_204_and_current(status, current, published):
    events = []
    tree = compose(
        _widgets(provider=DeleteStub(status, current), subscriptions=[("delete", events.append)])
    )
    ctx = tree.handle(_request("DELETE", "/1"))
    assert ctx.status == status
    if published:
        assert events == [{"category": "widget", "name": "delete", "data": current}]
    else:
        assert events == []


def test_subscriber_failure_propagates_from_handle():
    def boom(payload):
        raise RuntimeError("listener down")

    tree = compose(_widgets(provider=MemoryProvider(), subscriptions=[("create", boom)]))
    with pytest.raises(RuntimeError):
        tree.handle(_request("POST", "/", body={"name": "x"}))


def test_compose_freezes_its_own_announcer_only():
    tree = compose(_widgets())
    assert tree.announcer.frozen
    assert tree.links.frozen

    shared = EventAnnouncer()
    first = compose(_widgets(), announcer=shared)
    compose(ResourceDescriptor("gadget", "gadgets"), announcer=shared)
    assert first.announcer is shared
    assert not shared.frozen


def test_compose_freezes_the_route_table():
    tree = compose(_widgets())
    assert tree.router.frozen
    with pytest.raises(RuntimeError):
        tree.router.add_route("GET", "/late", lambda ctx: ctx.put_status(299))
    with pytest.raises(RuntimeError):
        tree.router.plug("logging")
    assert tree.handle(_request("GET", "/late")).status == 501


class IndexOnly:
    def handle_index(self, context, tree, options):
        return tree.send_resource(context, ["a"]).put_status(200)


def test_partial_provider_falls_back_per_capability():
    gadgets = ResourceDescriptor("gadget", "gadgets", activate="all", provider=IndexOnly())
    tree = compose(
        ResourceDescriptor(
            "widget", "widgets", activate=["index"], provider=IndexOnly(), children=[gadgets]
        )
    )

    assert tree.handle(_request("GET", "/")).resource == ["a"]
    nested = tree.handle(_request("GET", "/1/gadgets"))
    assert nested.status == 200
    assert nested.resource == ["a"]
    missing = tree.children["gadgets"].handle(_request("GET", "/3", mount="/gadgets"))
    assert missing.status == 501
    assert missing.body == "Not yet implemented."


def test_children_are_forwarded_and_linked():
    widgets = _widgets(provider=MemoryProvider({"1": {"id": 1}}))
    orders = ResourceDescriptor("order", "orders", activate="all", children=[widgets])
    tree = compose(orders)

    assert ("*", "/:id/widgets") in tree.route_set()
    assert {"name": "widgets", "href": "/widgets"} in tree.group_links("")
    assert tree.group_links("")[-1] == {"name": "index", "href": ""}
    assert set(tree.children) == {"widgets"}
    assert tree.children["widgets"].announcer is tree.announcer


def test_includes_are_forwarded_at_plural_path():
    notes = ResourceDescriptor("note", "notes", activate=["index"], provider=MemoryProvider())
    tree = compose(ResourceDescriptor("order", "orders", activate=["index"], includes=[notes]))

    assert ("*", "/notes") in tree.route_set()
    assert tree.group_links("http://api/orders")[0] == {
        "name": "notes",
        "href": "http://api/orders/notes",
    }
    ctx = tree.handle(Request.build("GET", "/notes", mount="/orders"))
    assert ctx.resource == []
    assert ctx.status == 200


def test_resource_feature_registers_route_and_link():
    calls = []

    def activate(ctx):
        calls.append(dict(ctx.params))
        return ctx.put_status(204)

    accounts = ResourceDescriptor(
        "account",
        "accounts",
        features=[FeatureSpec("activate", activate, methods=[":post"])],
    )
    tree = compose(accounts)

    assert tree.route_set() == {("POST", "/:id/activate")}
    assert tree.resource_links("") == [
        {"name": "activate", "href": "/activate"},
        {"name": "self", "href": ""},
    ]
    ctx = tree.handle(Request.build("POST", "/5/activate", mount="/accounts"))
    assert ctx.status == 204
    assert calls == [{"id": "5"}]


def test_group_feature_registers_route_and_group_link():
    def search(ctx):
        return ctx.assign(resource=["hit"], status=200)

    tree = compose(
        _widgets(
            provider=MemoryProvider(),
            features=[FeatureSpec("search", search, methods=["GET"], group=True)],
        )
    )
    assert ("GET", "/search") in tree.route_set()
    assert tree.group_links("http://h/widgets")[0] == {
        "name": "search",
        "href": "http://h/widgets/search",
    }
    assert tree.handle(_request("GET", "/search")).resource == ["hit"]
    assert tree.handle(_request("GET", "/7")).error_code == 404


def test_feature_methods_default_to_get_and_post():
    tree = compose(
        ResourceDescriptor("report", "reports", features=[FeatureSpec("pdf", lambda ctx: ctx)])
    )
    assert tree.route_set() == {("GET", "/:id/pdf"), ("POST", "/:id/pdf")}


def test_provider_on_compose_receives_options():
    seen = []

    class Recording(Provider):
        def on_compose(self, tree, options):
            seen.append((tree.plural_name, options))

    compose(_widgets(provider=Recording(), provider_options={"table": "w"}))
    assert seen == [("widgets", {"table": "w"})]


def test_provider_receives_options_untouched():
    options = object()
    received = []

    class Capture(Provider):
        def handle_index(self, context, tree, opts):
            received.append(opts)
            return context.put_status(200)

    compose(_widgets(provider=Capture(), provider_options=options)).handle(_request("GET", "/"))
    assert received == [options]


def test_encoder_runs_after_pipeline():
    def encoder(ctx):
        tree = ctx.api_module
        if ctx.failed:
            return ctx.assign(body={"errors": ctx.errors}, status=ctx.error_code)
        return ctx.assign(
            body={"data": ctx.resource, "links": tree.resource_links(ctx)},
            content_type="application/json",
        )

    provider = MemoryProvider({"1": {"id": 1, "name": "a"}})
    tree = compose(_widgets(provider=provider), encoder=encoder)

    ctx = tree.handle(_request("GET", "/1"))
    assert ctx.content_type == "application/json"
    assert ctx.body == {
        "data": {"id": 1, "name": "a"},
        "links": [{"name": "self", "href": "http://localhost/widgets/1"}],
    }

    missing = tree.handle(_request("GET", "/2"))
    assert missing.status == 404
    assert missing.body == {"errors": ["widget not found"]}

    unrouted = tree.handle(_request("GET", "/1/2/3"))
    assert unrouted.status == 404
    assert unrouted.body == "Not Found"


def test_direct_call_skips_routing():
    provider = MemoryProvider({"1": {"id": 1}})
    tree = compose(_widgets(provider=provider))
    ctx = tree.call("show", id="1")
    assert ctx.resource == {"id": 1}
    assert ctx.api_module is tree
    assert ctx.current_location() == "http://localhost/widgets"


def test_direct_call_reaches_children():
    widgets = _widgets(provider=MemoryProvider({"1": {"id": 1}}))
    tree = compose(ResourceDescriptor("order", "orders", children=[widgets]))
    ctx = tree.call("widgets.index", id="9")
    assert ctx.api_module is tree.children["widgets"]
    assert ctx.params["id"] == "9"
    assert ctx.resource == [{"id": 1}]
    with pytest.raises(NotImplementedError):
        tree.call("widgets.archive")


def test_describe_lists_routes_links_and_children():
    widgets = _widgets(activate=["index"])
    tree = compose(ResourceDescriptor("order", "orders", activate=["show"], children=[widgets]))
    info = tree.describe()
    assert info["name"] == "order"
    assert info["actions"] == ["show"]
    assert {"method": "GET", "path": "/:id", "name": "show"} in info["routes"]
    assert info["children"]["widgets"]["actions"] == ["index"]
    assert info["group_links"][0] == {"name": "widgets", "href": "/widgets"}
