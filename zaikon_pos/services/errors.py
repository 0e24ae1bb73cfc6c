"""Error types shared by the order core services."""


class OrderCoreError(Exception):
    """Base class for order core failures."""


class NotFoundError(OrderCoreError, LookupError):
    """Order, delivery or rider does not exist."""


class InvalidInputError(OrderCoreError, ValueError):
    """Bad status, source, event name, token format or negative distance."""


class StorageFailure(OrderCoreError):
    """The database write or transaction failed; the session was rolled back."""


class VerificationFailure(StorageFailure):
    """A value read back after a write does not match what was written."""


# result error codes
NOT_FOUND = "not_found"
INVALID_INPUT = "invalid_input"
