# Overview: Domain error taxonomy shared by services and routes.

"""
Fine Ledger Errors

Every error carries an HTTP status and a stable machine code so routes can
surface it without inspecting the message.

- 4xx errors are caller problems: never retried, never coerced.
- TransientError subclasses are raised only after the ledger has exhausted
  its own bounded retries.
"""


class FineLedgerError(Exception):
    """Base class for all domain errors."""
    status_code = 400
    code = "LEDGER_ERROR"


class ValidationError(FineLedgerError):
    """400-level input problem."""
    code = "VALIDATION_ERROR"


class PasswordValidationError(ValidationError):
    """Raised when password doesn't meet strength requirements."""
    code = "WEAK_PASSWORD"


class NotFoundError(FineLedgerError):
    """Missing identity, provision or fine."""
    status_code = 404
    code = "NOT_FOUND"


class UnknownProvisionError(NotFoundError):
    code = "UNKNOWN_PROVISION"


class DuplicateIdentityError(FineLedgerError):
    status_code = 409
    code = "DUPLICATE_IDENTITY"


class InvalidActorError(FineLedgerError):
    """Actor has the wrong role or no relationship to the fine."""
    status_code = 403
    code = "INVALID_ACTOR"


class InactiveIdentityError(InvalidActorError):
    """Actor was soft-deactivated."""
    code = "INACTIVE"


class BusinessRuleError(FineLedgerError):
    """409-level lifecycle rule violation. State is left unchanged."""
    status_code = 409
    code = "BUSINESS_RULE"


class AlreadySettledError(BusinessRuleError):
    code = "ALREADY_SETTLED"


class AlreadyDisputedError(BusinessRuleError):
    code = "ALREADY_DISPUTED"


class InvalidTransitionError(BusinessRuleError):
    code = "INVALID_TRANSITION"


class ConfirmationConflictError(BusinessRuleError):
    """Confirmation id already settled a different fine."""
    code = "CONFIRMATION_CONFLICT"


class AmountMismatchError(BusinessRuleError):
    status_code = 422
    code = "AMOUNT_MISMATCH"


class TransientError(FineLedgerError):
    status_code = 503
    code = "TRANSIENT"


class ReferenceCollisionError(TransientError):
    code = "REFERENCE_COLLISION"


class ConcurrentModificationError(TransientError):
    status_code = 409
    code = "CONCURRENT_MODIFICATION"


class GatewayError(FineLedgerError):
    """Payment gateway declined or failed."""
    status_code = 502
    code = "GATEWAY_ERROR"
