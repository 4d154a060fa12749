class ReconciliationError(Exception):
    """Base class for errors raised while resolving an identity."""


class InvalidRequest(ReconciliationError):
    """The caller supplied neither an email nor a phone number."""


class StorageFailure(ReconciliationError):
    """The contact store failed; the unit of work was rolled back."""
