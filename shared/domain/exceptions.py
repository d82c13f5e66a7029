"""
shared/domain/exceptions.py
Business-rule errors raised by the reconciler and policy checks.
Rendered to JSON by the app-level exception handler in main.py.
"""


class DomainError(Exception):
    """Base class. Carries the HTTP status and a machine-readable code."""
    status_code: int = 400
    code: str = "domain_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidRequestError(DomainError):
    """Malformed or disallowed input, detected before any write."""
    status_code = 400
    code = "invalid_request"


class PermissionDeniedError(DomainError):
    """Wrong role or not the owner of the resource."""
    status_code = 403
    code = "forbidden"


class ConflictError(DomainError):
    """Transition not permitted in the current state. Reported as 400."""
    status_code = 400
    code = "conflict"


class CapacityError(ConflictError):
    """Ride does not have enough available seats."""
    code = "insufficient_seats"
