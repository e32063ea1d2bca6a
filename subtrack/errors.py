"""Error kinds raised by the repository and the cost aggregator."""
from __future__ import annotations


class SubtrackError(Exception):
    """Base class for subtrack errors."""


class NotFound(SubtrackError):
    """The targeted subscription id does not exist."""

    def __init__(self, subscription_id: int | None = None):
        self.subscription_id = subscription_id
        msg = "subscription not found" if subscription_id is None else f"subscription {subscription_id} not found"
        super().__init__(msg)


class PersistenceError(SubtrackError):
    """Any failure of the underlying store. The driver error is chained as __cause__."""

    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(f"storage failure during {operation}")


class InvalidFilter(SubtrackError):
    """A filter value failed structural validation (e.g. a malformed user id)."""

    def __init__(self, field: str, value):
        self.field = field
        self.value = value
        super().__init__(f"invalid {field} filter: {value!r}")
