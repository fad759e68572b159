from bond import config


class BondError(Exception):
    """Base class for reconciliation failures."""


class ApiCallFailed(BondError):
    """A call to the cluster API failed."""

    def __init__(self, action, cause):
        super().__init__(f"Failed to {action}: {cause}")
        self.action = action
        self.cause = cause


class MissingObjectKey(BondError):
    """A field required to identify or interpret an object is absent."""

    def __init__(self, key):
        super().__init__(f"MissingObjectKey: {key}")
        self.key = key


class IndexNotReady(BondError):
    def __init__(self):
        super().__init__("Source index has not finished its initial listing")


def error_policy(error: Exception) -> float:
    """Delay before a failed reconciliation is retried.

    Every kind of failure is retried after the same delay.
    """
    return config.ERROR_DELAY
