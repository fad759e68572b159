import pytest
from kubernetes.client.rest import ApiException

from bond import config
from bond.errors import IndexNotReady, MissingObjectKey
from bond.index import DesiredMappingIndex, SecretRef
from bond.secret import reconcile_secret
from bond.source import register_source
from tests.factories import make_secret, make_source


def created(ctx):
    """(namespace, name, data) of every secret the reconciler tried to create."""
    result = []
    for call in ctx.core_api.create_namespaced_secret.call_args_list:
        body = call.kwargs["body"]
        result.append((call.kwargs["namespace"], body.metadata.name, body.data))
    return result


class TestReconcileSecret:
    def test_registered_source_is_copied_to_destination(self, ctx):
        register_source(
            ctx.index,
            make_source(namespace="a", secrets=[{"name": "s", "destinations": [{"namespace": "b"}]}]),
        )
        data = {"token": "c2VjcmV0"}

        assert reconcile_secret(make_secret("a", "s", data), ctx) == config.REQUEUE_INTERVAL

        assert created(ctx) == [("b", "s", data)]

    def test_only_data_is_copied(self, ctx):
        ctx.index.register(SecretRef("a", "s"), [SecretRef("b", "renamed")])
        secret = make_secret("a", "s")
        secret["metadata"]["labels"] = {"team": "a"}
        secret["type"] = "kubernetes.io/dockerconfigjson"

        reconcile_secret(secret, ctx)

        body = ctx.core_api.create_namespaced_secret.call_args.kwargs["body"]
        assert body.metadata.namespace == "b"
        assert body.metadata.name == "renamed"
        assert body.metadata.labels is None
        assert body.type is None
        assert body.data == secret["data"]

    def test_untracked_secret_creates_nothing(self, ctx):
        ctx.index.register(SecretRef("a", "s"), [SecretRef("b", "s")])

        assert reconcile_secret(make_secret("a", "other"), ctx) == config.REQUEUE_INTERVAL

        ctx.core_api.create_namespaced_secret.assert_not_called()

    def test_only_destinations_of_this_secret_are_written(self, ctx):
        ctx.index.register(SecretRef("a", "s"), [SecretRef("b", "s")])
        ctx.index.register(SecretRef("a", "t"), [SecretRef("c", "t")])

        reconcile_secret(make_secret("a", "s"), ctx)

        assert [(ns, name) for ns, name, _ in created(ctx)] == [("b", "s")]

    def test_failed_destination_does_not_stop_the_rest(self, ctx):
        ctx.index.register(
            SecretRef("a", "s"),
            [SecretRef("b", "s"), SecretRef("c", "s"), SecretRef("d", "s")],
        )
        ctx.core_api.create_namespaced_secret.side_effect = [
            None,
            ApiException(status=409, reason="AlreadyExists"),
            None,
        ]

        assert reconcile_secret(make_secret("a", "s"), ctx) == config.REQUEUE_INTERVAL

        assert [ns for ns, _, _ in created(ctx)] == ["b", "c", "d"]

    def test_existing_destination_is_not_updated(self, ctx):
        ctx.index.register(SecretRef("a", "s"), [SecretRef("b", "s")])
        ctx.core_api.create_namespaced_secret.side_effect = ApiException(status=409, reason="AlreadyExists")

        reconcile_secret(make_secret("a", "s"), ctx)
        reconcile_secret(make_secret("a", "s"), ctx)

        assert ctx.core_api.create_namespaced_secret.call_count == 2
        ctx.core_api.replace_namespaced_secret.assert_not_called()
        ctx.core_api.patch_namespaced_secret.assert_not_called()

    def test_waits_for_index(self, ctx):
        ctx.index = DesiredMappingIndex()

        with pytest.raises(IndexNotReady):
            reconcile_secret(make_secret("a", "s"), ctx)

    def test_missing_name_is_rejected(self, ctx):
        secret = make_secret("a", "s")
        del secret["metadata"]["name"]

        with pytest.raises(MissingObjectKey, match="metadata.name"):
            reconcile_secret(secret, ctx)
