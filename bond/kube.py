"""Cluster API access shared by the handlers."""

import logging
from typing import Any, Mapping, Tuple

import attr
import kubernetes.client
import kubernetes.config
from kubernetes.config.config_exception import ConfigException

from bond.errors import MissingObjectKey
from bond.index import DesiredMappingIndex
from bond.requeue import RequeueQueue


@attr.s
class Context:
    """
    Everything a reconciliation needs besides the object itself.
    """

    core_api = attr.ib()
    custom_api = attr.ib()
    index: DesiredMappingIndex = attr.ib(factory=DesiredMappingIndex)
    requeue: RequeueQueue = attr.ib(factory=RequeueQueue)


def load_config():
    """Use the service account when running in a pod, the kubeconfig otherwise."""
    try:
        kubernetes.config.load_incluster_config()
        logging.info("Loaded in-cluster configuration")
    except ConfigException:
        kubernetes.config.load_kube_config()
        logging.info("Loaded kubeconfig configuration")


def make_context() -> Context:
    return Context(
        core_api=kubernetes.client.CoreV1Api(),
        custom_api=kubernetes.client.CustomObjectsApi(),
    )


def object_key(body: Mapping[str, Any]) -> Tuple[str, str]:
    """
    Return ``(namespace, name)`` of an object, refusing objects without them.
    """
    meta = body.get("metadata") or {}
    namespace = meta.get("namespace")
    if not namespace:
        raise MissingObjectKey("metadata.namespace")
    name = meta.get("name")
    if not name:
        raise MissingObjectKey("metadata.name")
    return namespace, name
