"""
Source resources: parsing, registration into the index and status upkeep.
"""

from __future__ import annotations

import logging
from typing import Any, List, Mapping, Optional, Tuple

import attr
from kubernetes.client.rest import ApiException

from bond import config
from bond.errors import ApiCallFailed, MissingObjectKey
from bond.index import DesiredMappingIndex, SecretRef
from bond.kube import Context, object_key
from bond.lifecycle import LifecycleAction, determine_action


@attr.s(frozen=True)
class DestinationItem:
    namespace: str = attr.ib()
    name: Optional[str] = attr.ib(default=None)


@attr.s(frozen=True)
class SourceItem:
    name: str = attr.ib()
    destinations: Tuple[DestinationItem, ...] = attr.ib(default=())

    def destination_refs(self) -> List[SecretRef]:
        """Destinations without a name keep the source secret's name."""
        return [SecretRef(d.namespace, d.name or self.name) for d in self.destinations]

    @classmethod
    def from_spec(cls, raw: Mapping[str, Any], path: str) -> "SourceItem":
        if not raw.get("name"):
            raise MissingObjectKey(f"{path}.name")
        destinations = []
        for i, dest in enumerate(raw.get("destinations") or []):
            if not dest.get("namespace"):
                raise MissingObjectKey(f"{path}.destinations[{i}].namespace")
            destinations.append(DestinationItem(dest["namespace"], dest.get("name")))
        return cls(raw["name"], tuple(destinations))


def parse_items(body: Mapping[str, Any]) -> List[SourceItem]:
    spec = body.get("spec") or {}
    return [
        SourceItem.from_spec(raw, f"spec.secrets[{i}]")
        for i, raw in enumerate(spec.get("secrets") or [])
    ]


def register_source(index: DesiredMappingIndex, body: Mapping[str, Any]) -> int:
    """
    Add every item of a Source that the index does not know yet.

    Returns how many items were newly registered.
    """
    namespace, name = object_key(body)
    registered = 0
    for item in parse_items(body):
        src = SecretRef(namespace, item.name)
        destinations = item.destination_refs()
        if index.register(src, destinations):
            registered += 1
            logging.info(
                f"Registered {src} from source {namespace}/{name}: "
                f"{', '.join(str(d) for d in destinations) or 'no destinations'}"
            )
        else:
            logging.debug(f"{src} is already registered, skipping")
    return registered


def ready_status(index: DesiredMappingIndex) -> dict:
    # TODO: count the destinations written by the secret handlers instead of 0
    processed = 0
    return {"ready": f"{processed}/{len(index)}"}


def patch_status(ctx: Context, namespace, name, status):
    ctx.custom_api.patch_namespaced_custom_object_status(
        config.API_GROUP,
        config.API_VERSION,
        namespace,
        config.PLURAL_SOURCE,
        name,
        {"status": status},
    )


def add_finalizer(ctx: Context, namespace, name):
    # Merge patch, safe to repeat
    ctx.custom_api.patch_namespaced_custom_object(
        config.API_GROUP,
        config.API_VERSION,
        namespace,
        config.PLURAL_SOURCE,
        name,
        {"metadata": {"finalizers": [config.FINALIZER]}},
    )


def reconcile_source(body: Mapping[str, Any], ctx: Context) -> float:
    """
    Drive a Source through its lifecycle. Returns the delay before the next
    reconciliation.
    """
    namespace, name = object_key(body)
    action = determine_action(body["metadata"])

    if action is LifecycleAction.DELETE:
        logging.info(f"Source {namespace}/{name} is being deleted, nothing to clean up")
        return config.REQUEUE_INTERVAL

    if action is LifecycleAction.NOOP:
        logging.debug(f"Source {namespace}/{name} already claimed")
        return config.REQUEUE_INTERVAL

    register_source(ctx.index, body)

    status = ready_status(ctx.index)
    try:
        patch_status(ctx, namespace, name, status)
    except ApiException as e:
        logging.error(f"Failed to patch status of source {namespace}/{name}: {e}")

    try:
        add_finalizer(ctx, namespace, name)
    except ApiException as e:
        logging.error(f"Failed to add finalizer to source {namespace}/{name}: {e}")

    logging.info(f"Source {namespace}/{name} reconciled, ready {status['ready']}")
    return config.REQUEUE_INTERVAL


def warm_up(ctx: Context):
    """
    Register every live Source, then open the index to the secret handlers.

    Claimed Sources are registered too: after a restart they classify as
    no-op and would otherwise never reach the index again.
    """
    try:
        listing = ctx.custom_api.list_cluster_custom_object(
            config.API_GROUP, config.API_VERSION, config.PLURAL_SOURCE
        )
    except ApiException as e:
        raise ApiCallFailed("list sources", e) from e

    sources = listing.get("items") or []
    logging.info(f"Found {len(sources)} existing sources")

    for body in sources:
        if determine_action(body.get("metadata") or {}) is LifecycleAction.DELETE:
            continue
        try:
            register_source(ctx.index, body)
        except MissingObjectKey as e:
            logging.error(f"Skipping malformed source: {e}")

    ctx.index.mark_ready()
    logging.info(f"Source index ready with {len(ctx.index)} secrets")
