import logging
import threading

import kopf
from kubernetes.client.rest import ApiException

from bond import config, kube
from bond.errors import BondError, MissingObjectKey, error_policy
from bond.secret import reconcile_secret
from bond.source import reconcile_source, warm_up

SOURCE = (config.API_GROUP, config.API_VERSION, config.PLURAL_SOURCE)

RECONCILERS = {
    config.KIND_SOURCE: reconcile_source,
    config.KIND_SECRET: reconcile_secret,
}

# Seconds between two scans of the requeue queue
REQUEUE_TICK = 1.0


def requeue(ctx, kind, body, delay):
    try:
        namespace, name = kube.object_key(body)
    except MissingObjectKey:
        # Nothing to fetch it back by
        return
    ctx.requeue.schedule(kind, namespace, name, delay)


def run_reconcile(kind, body, memo):
    """
    Run one reconciliation and requeue the object after the delay it asks
    for. Failures become a delayed retry.
    """
    try:
        requeue_after = RECONCILERS[kind](body, memo.context)
    except Exception as e:
        delay = error_policy(e)
        logging.warning(f"reconcile failed: {e}, retrying in {delay:.0f}s")
        raise kopf.TemporaryError(str(e), delay=delay) from e
    requeue(memo.context, kind, body, requeue_after)
    logging.debug(f"next reconciliation in {requeue_after:.0f}s")


def fetch(ctx, kind, namespace, name):
    if kind == config.KIND_SOURCE:
        return ctx.custom_api.get_namespaced_custom_object(
            config.API_GROUP, config.API_VERSION, namespace, config.PLURAL_SOURCE, name
        )
    secret = ctx.core_api.read_namespaced_secret(name, namespace)
    return {"metadata": {"namespace": namespace, "name": name}, "data": secret.data}


def requeue_due(ctx):
    """
    Reconcile every object whose requeue delay has elapsed.
    """
    for kind, namespace, name in ctx.requeue.pop_due():
        try:
            body = fetch(ctx, kind, namespace, name)
        except ApiException as e:
            if e.status == 404:
                logging.debug(f"{kind} {namespace}/{name} no longer exists, dropping requeue")
                continue
            delay = error_policy(e)
            logging.error(f"Failed to read {kind} {namespace}/{name}: {e.status} {e.reason}")
            ctx.requeue.schedule(kind, namespace, name, delay)
            continue

        try:
            delay = RECONCILERS[kind](body, ctx)
        except Exception as e:
            delay = error_policy(e)
            logging.warning(f"reconcile of {kind} {namespace}/{name} failed: {e}, retrying in {delay:.0f}s")
        ctx.requeue.schedule(kind, namespace, name, delay)


def requeue_loop(ctx, stop: threading.Event):
    while not stop.wait(REQUEUE_TICK):
        requeue_due(ctx)


def start_requeue_loop(ctx):
    stop = threading.Event()
    thread = threading.Thread(target=requeue_loop, args=(ctx, stop), name="bond-requeue", daemon=True)
    thread.start()
    return thread, stop


@kopf.on.startup()
def configure(settings: kopf.OperatorSettings, memo: kopf.Memo, **_):
    logging.getLogger().setLevel(config.LOG_LEVEL)
    logging.getLogger("kubernetes").setLevel(logging.WARNING)
    settings.posting.level = logging.WARNING

    kube.load_config()
    memo.context = kube.make_context()

    # Secret events are only handled once startup is over, so the index is
    # complete before the first of them arrives.
    try:
        warm_up(memo.context)
    except BondError as e:
        raise kopf.TemporaryError(str(e), delay=error_policy(e)) from e

    memo.requeue_thread, memo.requeue_stop = start_requeue_loop(memo.context)


@kopf.on.cleanup()
def shutdown(memo: kopf.Memo, **_):
    logging.info("Stopping bond operator")
    stop = memo.get("requeue_stop")
    if stop is not None:
        stop.set()
        memo.requeue_thread.join(REQUEUE_TICK * 5)


# No kopf timers and an optional delete handler: any of them would make kopf
# put its own finalizer on Sources, and a Source with a finalizer is never
# registered.
@kopf.on.resume(*SOURCE, backoff=config.ERROR_DELAY)
@kopf.on.create(*SOURCE, backoff=config.ERROR_DELAY)
@kopf.on.update(*SOURCE, backoff=config.ERROR_DELAY)
def source_changed(body, memo, **_):
    run_reconcile(config.KIND_SOURCE, body, memo)


@kopf.on.delete(*SOURCE, optional=True, backoff=config.ERROR_DELAY)
def source_deleted(body, memo, **_):
    run_reconcile(config.KIND_SOURCE, body, memo)


@kopf.on.event("v1", "Secret")
def secret_event(event, body, memo, **_):
    ctx = memo.context
    if event["type"] == "DELETED":
        # Existing copies are left in place when their source goes away
        namespace, name = kube.object_key(body)
        ctx.requeue.discard(config.KIND_SECRET, namespace, name)
        return
    try:
        run_reconcile(config.KIND_SECRET, body, memo)
    except kopf.TemporaryError as e:
        # kopf never retries event handlers
        requeue(ctx, config.KIND_SECRET, body, e.delay)


def main():
    logging.info("Starting bond operator")
    kopf.run(clusterwide=True)


if __name__ == "__main__":
    main()
