"""Domain Errors

Every business-rule failure carries a stable ``code`` and a human readable
``message``. The API layer turns them into ``{"code", "message"}`` bodies.
"""


class DomainError(ValueError):
    """Base class for all business-rule failures"""

    code = "DOMAIN_ERROR"

    def __init__(self, message: str, code: str = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message}


class ValidationError(DomainError):
    code = "VALIDATION_ERROR"


class RangeInvalid(ValidationError):
    code = "RANGE_INVALID"


class ConflictError(DomainError):
    code = "CONFLICT"


class BookingConflict(ConflictError):
    code = "BOOKING_CONFLICT"


class InvalidTransition(ConflictError):
    code = "INVALID_TRANSITION"


class GuardViolation(ConflictError):
    code = "GUARD_VIOLATION"


class SerializationFailure(ConflictError):
    """Raised when a transaction could not be serialized (lock wait timed out)"""

    code = "SERIALIZATION_FAILURE"


class AlreadyInState(DomainError):
    """Benign signal: the requested transition has already happened"""

    code = "ALREADY_IN_STATE"


class NotFoundError(DomainError):
    code = "NOT_FOUND"


class ForbiddenError(DomainError):
    code = "FORBIDDEN"


class OverRefundError(DomainError):
    code = "OVER_REFUND"
