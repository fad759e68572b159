import pytest

from bond.lifecycle import LifecycleAction, determine_action


class TestDetermineAction:
    def test_unclaimed_source_is_created(self):
        assert determine_action({"name": "src"}) is LifecycleAction.CREATE

    def test_empty_finalizers_count_as_unclaimed(self):
        assert determine_action({"finalizers": []}) is LifecycleAction.CREATE

    def test_claimed_source_is_noop(self):
        assert determine_action({"finalizers": ["bind.ectobit.com"]}) is LifecycleAction.NOOP

    @pytest.mark.parametrize("finalizers", [None, [], ["bind.ectobit.com"], ["other"]])
    def test_deletion_wins_over_finalizers(self, finalizers):
        meta = {"deletionTimestamp": "2024-01-01T00:00:00Z"}
        if finalizers is not None:
            meta["finalizers"] = finalizers
        assert determine_action(meta) is LifecycleAction.DELETE
