class DomainError(Exception):
    """Base exception for business rule violations.

    ``kind`` is the stable error string callers receive in error payloads.
    """

    kind = "DOMAIN_ERROR"


class ValidationError(DomainError):
    """Raised when input data is invalid or violates domain rules."""

    kind = "VALIDATION_ERROR"


class ConflictError(ValidationError):
    """Raised when mutually exclusive fields are both set or a record already exists."""

    kind = "CONFLICT"


class NotFoundError(DomainError):
    """Raised when a referenced schedule, event, student or semester is absent."""

    kind = "NOT_FOUND"


class AuthorizationError(DomainError):
    """Raised when the actor's role lacks permission for an action."""

    kind = "AUTHORIZATION_ERROR"


class PersistenceError(DomainError):
    """Raised when the underlying store fails; the enclosing transaction is rolled back."""

    kind = "PERSISTENCE_ERROR"
