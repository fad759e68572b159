import logging

import kubernetes.client
from kubernetes.client.rest import ApiException

from bond import config
from bond.errors import IndexNotReady
from bond.index import SecretRef
from bond.kube import Context, object_key


def replicate_secret(api, src: SecretRef, dst: SecretRef, data) -> bool:
    """
    Create ``dst`` carrying ``data``. Existing destinations are left alone, so
    a conflict is reported like any other failure.
    """
    new_secret = kubernetes.client.V1Secret(
        metadata=kubernetes.client.V1ObjectMeta(
            name=dst.name,
            namespace=dst.namespace,
        ),
        data=data,
    )
    try:
        api.create_namespaced_secret(namespace=dst.namespace, body=new_secret)
    except ApiException as e:
        logging.error(f"Failed to replicate secret {src} to {dst}: {e.status} {e.reason}")
        return False

    logging.info(f"Secret {src} replicated to {dst}")
    return True


def reconcile_secret(body, ctx: Context) -> float:
    namespace, name = object_key(body)
    if not ctx.index.is_ready():
        raise IndexNotReady()

    src = SecretRef(namespace, name)
    data = body.get("data")
    if data is not None:
        data = dict(data)
    destinations = ctx.index.get(src)
    if destinations is None:
        logging.debug(f"Secret {src} is not tracked by any source")
        return config.REQUEUE_INTERVAL

    logging.info(f"Secret {src} created/updated, replicating to {len(destinations)} destinations")

    success_count = 0
    fail_count = 0
    for dst in destinations:
        if replicate_secret(ctx.core_api, src, dst, data):
            success_count += 1
        else:
            fail_count += 1

    logging.info(f"Replication completed for {src}: {success_count} succeeded, {fail_count} failed")
    return config.REQUEUE_INTERVAL
