import enum
from typing import Any, Mapping


class LifecycleAction(enum.Enum):
    CREATE = "create"
    DELETE = "delete"
    NOOP = "noop"


def determine_action(meta: Mapping[str, Any]) -> LifecycleAction:
    """Decide what a Source reconciliation should do from its metadata.

    A deletion request always wins. Otherwise a Source is only processed
    while it carries no finalizer, so updates to a claimed Source are not
    registered again.
    """
    if meta.get("deletionTimestamp"):
        return LifecycleAction.DELETE
    if not meta.get("finalizers"):
        return LifecycleAction.CREATE
    return LifecycleAction.NOOP
