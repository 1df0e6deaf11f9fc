"""Tests for resource descriptors and their normalization rules."""

import pytest

from restbuilder import CompositionError, FeatureSpec, ResourceDescriptor
from restbuilder.core.descriptor import ACTIONS, EventSubscription, normalize_actions


def _noop(ctx):
    return ctx


def test_activate_all_expands_to_every_action():
    assert normalize_actions("all") == frozenset(ACTIONS)
    assert normalize_actions(":all") == frozenset(ACTIONS)


def test_activate_accepts_lists_and_comma_strings():
    assert normalize_actions(["show", "index"]) == {"index", "show"}
    assert normalize_actions("create, delete") == {"create", "delete"}
    assert normalize_actions(None) == frozenset()


def test_activate_rejects_unknown_action():
    with pytest.raises(CompositionError):
        ResourceDescriptor("widget", "widgets", activate=["index", "archive"])


def test_activate_rejects_non_iterable():
    with pytest.raises(TypeError):
        normalize_actions(42)


def test_activated_order_is_canonical():
    descriptor = ResourceDescriptor("widget", "widgets", activate=["delete", "index", "update"])
    assert descriptor.activated() == ("index", "update", "delete")


def test_names_are_required():
    with pytest.raises(CompositionError):
        ResourceDescriptor("", "widgets")
    with pytest.raises(CompositionError):
        ResourceDescriptor("widget", "   ")
    with pytest.raises(CompositionError):
        ResourceDescriptor(None, "widgets")  # type: ignore[arg-type]


def test_plural_name_is_stripped_of_slashes():
    descriptor = ResourceDescriptor("widget", "/widgets/")
    assert descriptor.plural_name == "widgets"
    assert descriptor.singular_name == "widget"


def test_provider_must_be_an_instance():
    class SomeProvider:
        pass

    with pytest.raises(CompositionError):
        ResourceDescriptor("widget", "widgets", provider=SomeProvider)


def test_feature_defaults_to_get_and_post():
    spec = FeatureSpec("stats", _noop)
    assert spec.methods == ("GET", "POST")
    assert spec.path == "/:id/stats"
    group = FeatureSpec("/search", _noop, methods=["get"], group=True)
    assert group.name == "search"
    assert group.path == "/search"
    assert group.methods == ("GET",)


def test_feature_rejects_bad_declarations():
    with pytest.raises(CompositionError):
        FeatureSpec("stats", "not callable")  # type: ignore[arg-type]
    with pytest.raises(CompositionError):
        FeatureSpec("stats", _noop, methods=["fetch"])
    with pytest.raises(CompositionError):
        FeatureSpec("stats", _noop, methods=[])
    with pytest.raises(CompositionError):
        FeatureSpec("/", _noop)


def test_features_accept_dict_declarations():
    descriptor = ResourceDescriptor(
        "account",
        "accounts",
        features=[{"name": "activate", "handler": _noop, "only": [":post"]}],
    )
    (spec,) = descriptor.features
    assert spec.name == "activate"
    assert spec.methods == ("POST",)
    assert spec.group is False


def test_subscriptions_normalize_event_names():
    descriptor = ResourceDescriptor(
        "widget",
        "widgets",
        subscriptions=[("after_create", _noop), EventSubscription(":delete", _noop)],
    )
    assert [s.event for s in descriptor.subscriptions] == ["create", "delete"]


def test_subscriptions_reject_unknown_events():
    with pytest.raises(CompositionError):
        EventSubscription("archive", _noop)


def test_plugins_are_normalized_to_pairs():
    descriptor = ResourceDescriptor(
        "widget", "widgets", plugins=["logging", ("pydantic", {"disabled": True})]
    )
    assert descriptor.plugins == (("logging", {}), ("pydantic", {"disabled": True}))
    with pytest.raises(TypeError):
        ResourceDescriptor("widget", "widgets", plugins=[42])


def test_descriptor_is_frozen():
    descriptor = ResourceDescriptor("widget", "widgets", activate="all")
    with pytest.raises(Exception):
        descriptor.name = "gadget"  # type: ignore[misc]
