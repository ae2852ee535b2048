"""Exceptions raised by the marketplace core.

Every error carries a stable ``category`` string so calling layers (the
console, a future web front end) can branch on the kind of failure rather
than on message text.
"""


class MarketplaceError(Exception):
    """Base exception for all marketplace errors."""

    category = "error"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(MarketplaceError):
    """Raised when input is malformed or missing."""

    category = "validation"


class NotFoundError(MarketplaceError):
    """Raised when a user, product, cart entry or order does not exist."""

    category = "not_found"

    def __init__(self, kind: str, ident: object, message: str | None = None):
        self.kind = kind
        self.ident = ident
        super().__init__(message or f"{kind.capitalize()} not found: {ident}")


class AuthorizationError(MarketplaceError):
    """Raised on a role or ownership mismatch."""

    category = "authorization"


class ConflictError(MarketplaceError):
    """Raised when live state forbids the operation (stock, balance, status)."""

    category = "conflict"


class StorageError(MarketplaceError):
    """Raised when the database fails. The transaction has been rolled back."""

    category = "storage"
