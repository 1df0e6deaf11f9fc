"""Core runtime aggregator (source of truth).

Purpose: expose the composition building blocks from a single module. No
extra logic beyond imports/exports.

Guarantees
----------
- Importing this module performs only imports; it does not register plugins or
  compose resources.
- Public API mirrors underlying modules 1:1:
  * ``descriptor`` → ``ResourceDescriptor``, ``FeatureSpec``, ``EventSubscription``
  * ``tree`` → ``RouteTree``, ``compose``
  * ``links`` → ``LinkRegistry``; ``events`` → ``EventAnnouncer``
  * ``provider`` → ``Provider``; ``context`` → ``Request``, ``RequestContext``
  * ``base_router`` / ``router`` → ``BaseRouter`` / ``Router``
  * ``decorators`` → markers; ``declared`` → ``ResourceClass``
"""

from .base_router import BaseRouter, RouteMatch
from .context import Request, RequestContext
from .declared import ResourceClass
from .decorators import feature, group_feature, on_event
from .descriptor import ACTIONS, EventSubscription, FeatureSpec, ResourceDescriptor
from .errors import CompositionError
from .events import EVENTS, EventAnnouncer
from .links import LinkRegistry
from .pipeline import RequestPipeline
from .provider import Provider
from .router import Router
from .tree import RouteTree, compose

__all__ = [
    "ACTIONS",
    "EVENTS",
    "BaseRouter",
    "CompositionError",
    "EventAnnouncer",
    "EventSubscription",
    "FeatureSpec",
    "LinkRegistry",
    "Provider",
    "Request",
    "RequestContext",
    "RequestPipeline",
    "ResourceClass",
    "ResourceDescriptor",
    "RouteMatch",
    "RouteTree",
    "Router",
    "compose",
    "feature",
    "group_feature",
    "on_event",
]
