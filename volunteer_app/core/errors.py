"""Domain error taxonomy shared by the service layer.

Every error carries a stable ``code`` so callers (and the HTTP layer) can tell
exactly which rule was violated without parsing messages.
"""


class ServiceError(Exception):
    """Base class for errors raised by volunteer ledger services."""

    code: str = "service_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidInputError(ServiceError):
    """Raised for missing, oversized or malformed input. Nothing was written."""

    code = "invalid_input"


class NotFoundError(ServiceError):
    """Raised when a referenced row does not exist."""

    code = "not_found"


class PermissionDeniedError(ServiceError):
    """Raised when the acting account may not perform the operation."""

    code = "permission_denied"


class StateConflictError(ServiceError):
    """Raised when the current state does not allow the requested transition."""

    code = "state_conflict"


class DuplicateSignupError(StateConflictError):
    """Raised when a volunteer already holds an active or pending signup."""

    code = "duplicate_signup"


class ChainBrokenError(ServiceError):
    """Raised when the work-hour chain or an audit snapshot fails an integrity check.

    Never repaired automatically: the broken link is reported as found.
    """

    code = "chain_broken"


class IdempotencyConflictError(ServiceError):
    """Raised when an idempotency key is reused for a different operation."""

    code = "idempotency_conflict"
