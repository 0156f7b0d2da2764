"""Typed errors raised by the fulfillment engine.

Business-rule errors (``NotFoundError``, ``ValidationError``, ``ForbiddenError``)
are returned to callers as-is and never retried. ``WriteConflict`` is internal:
the coordinator retries it and surfaces ``ConflictError`` once the retry budget
is spent.
"""


class FulfillmentError(Exception):
    """Base class for fulfillment errors.

    ``data`` carries machine-readable context (bounds, statuses) for callers.
    """

    code = "fulfillment_error"
    default_message = "Fulfillment operation failed."

    def __init__(self, message: str | None = None, data: dict | None = None):
        self.message = message or self.default_message
        self.data = data or {}
        super().__init__(self.message)


class NotFoundError(FulfillmentError):
    code = "not_found"
    default_message = "Not found."


class ValidationError(FulfillmentError):
    """Invalid input or a reconciliation rejection."""

    code = "validation_error"
    default_message = "Validation error."


class ForbiddenError(FulfillmentError):
    """Mutation attempted outside the statuses that permit it."""

    code = "forbidden"
    default_message = "Operation not permitted in the current status."

    def __init__(self, message: str | None = None, *, status: str = "", allowed=()):
        self.status = status
        self.allowed = sorted(str(s) for s in allowed)
        super().__init__(message, data={"status": str(status), "allowed": self.allowed})


class ConflictError(FulfillmentError):
    code = "conflict"
    default_message = "Concurrent modification; retry budget exhausted."


class ServerError(FulfillmentError):
    code = "server_error"
    default_message = "Unexpected storage error."


class OperationTimeoutError(FulfillmentError):
    code = "timeout"
    default_message = "Operation timed out before commit."


class WriteConflict(Exception):
    """Retryable storage conflict detected inside a unit of work."""
