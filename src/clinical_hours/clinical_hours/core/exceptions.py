class DomainError(Exception):
    """Base exception for business rule violations.

    ``kind`` is a stable tag the web boundary uses to pick a status code.
    """

    kind = "domain"


class ValidationError(DomainError):
    """Raised when input data is malformed or out of range."""

    kind = "validation"


class ConflictError(DomainError):
    """Raised when an operation would break a business rule on existing state."""

    kind = "conflict"


class NotFoundError(DomainError):
    """Raised when a referenced entity does not exist."""

    kind = "not_found"


class AuthorizationError(DomainError):
    """Raised when the actor's role or ownership does not permit an action."""

    kind = "forbidden"


class PersistenceError(DomainError):
    """Raised when the store fails to apply a change."""

    kind = "persistence"


class AuthenticationError(DomainError):
    """Raised when a request carries no authenticated actor."""

    kind = "unauthenticated"
