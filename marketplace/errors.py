"""Error types raised by the listing, fulfillment and deletion operations.

Every error carries a machine-readable ``code`` and the HTTP status the API
layer maps it to, so callers can branch on the type and surface ``message``.
"""


class MarketplaceError(Exception):
    """Base exception for the marketplace core."""

    code = "marketplace_error"
    http_status = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(MarketplaceError):
    """Malformed or out-of-range input."""

    code = "validation_error"
    http_status = 400


class AuthorizationError(MarketplaceError):
    """Actor does not own the resource being mutated."""

    code = "authorization_error"
    http_status = 403


class NotFoundError(MarketplaceError):
    """Referenced id does not exist."""

    code = "not_found"
    http_status = 404


class InvalidStateError(MarketplaceError):
    """Listing is not in the state the operation requires."""

    code = "invalid_state"
    http_status = 409


class ConflictError(MarketplaceError):
    """Concurrent modification detected at commit time."""

    code = "conflict"
    http_status = 409
