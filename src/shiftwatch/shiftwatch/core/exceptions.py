class DomainError(Exception):
    """Base exception for business rule violations."""


class ValidationError(DomainError):
    """Raised when input data is invalid or violates domain rules."""


class AuthorizationError(DomainError):
    """Raised when an actor lacks permission for an action."""


class NotFoundError(DomainError):
    """Raised when a worker, payer or payment does not exist."""


class IllegalTransitionError(DomainError):
    """Raised when an action is not valid from the payment's current status."""

    def __init__(self, message: str, *, current_status=None):
        super().__init__(message)
        self.current_status = current_status


class InsufficientFundsError(DomainError):
    """Raised when the payer's available balance does not cover the amount."""

    def __init__(self, message: str, *, current_status=None):
        super().__init__(message)
        self.current_status = current_status


class CollaboratorError(DomainError):
    """Raised when the capture device or transfer network call fails."""


class ConcurrencyConflict(DomainError):
    """Raised when a transition could not obtain its record lock in time.

    The caller should retry the whole operation.
    """
