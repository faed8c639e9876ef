"""Error taxonomy shared by the catalogue, search, propagation and gateway layers.

Caller-facing errors carry an HTTP status so the gateway can map them without a
lookup table. Infrastructure errors (`TransientInfraError`,
`ConsistencyExhaustedError`) never reach a caller; they stay inside the
propagation pipeline.
"""

from __future__ import annotations


class CatalogError(Exception):
    """Base class for all storefront catalog errors."""

    status_code = 500
    error = "Internal Server Error"

    def __init__(self, message: str | None = None):
        self.message = message or self.error
        super().__init__(self.message)


class ValidationError(CatalogError):
    """Malformed or out-of-range input. Always caller-fixable, never retried.

    Carries a field → messages mapping, e.g. ``{"price_minor": ["Price must be greater than zero"]}``.
    """

    status_code = 400
    error = "Bad Request"

    def __init__(self, messages: dict[str, list[str]] | str):
        if isinstance(messages, str):
            messages = {"_entity": [messages]}
        self.messages = messages
        flat = "; ".join(f"{field}: {', '.join(errors)}" for field, errors in messages.items())
        super().__init__(flat)


class UnauthenticatedError(CatalogError):
    status_code = 401
    error = "Unauthorized"

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message)


class ForbiddenError(CatalogError):
    status_code = 403
    error = "Forbidden"

    def __init__(self, message: str = "You can only modify your own products"):
        super().__init__(message)


class NotFoundError(CatalogError):
    status_code = 404
    error = "Not Found"

    def __init__(self, message: str = "Product not found"):
        super().__init__(message)


class VersionConflictError(CatalogError):
    """The caller's expected version no longer matches the stored version."""

    status_code = 409
    error = "Conflict"

    def __init__(self, product_id: str, expected: int, actual: int):
        self.product_id = product_id
        self.expected = expected
        self.actual = actual
        super().__init__(f"Product {product_id} is at version {actual}, expected {expected}")


class RequestCancelledError(CatalogError):
    """The caller went away before the write committed; nothing was persisted."""

    status_code = 499
    error = "Client Closed Request"

    def __init__(self, message: str = "Request cancelled before commit"):
        super().__init__(message)


class TransientInfraError(CatalogError):
    """Search index or queue temporarily unavailable. Retried inside the pipeline."""

    status_code = 503
    error = "Service Unavailable"


class ConsistencyExhaustedError(CatalogError):
    """A change event ran out of delivery attempts and was dead-lettered."""

    def __init__(self, event_id: str, product_id: str, attempts: int, last_error: str):
        self.event_id = event_id
        self.product_id = product_id
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"Event {event_id} for product {product_id} dead-lettered after {attempts} attempts: {last_error}"
        )
