"""
Custom exceptions for Ledenbeheer business logic.

Services raise these; the app factory turns them into JSON error responses
with the HTTP status in their status_code attribute.
"""
from .errors import ErrorCode


class LedenbeheerError(Exception):
    """Base exception for all Ledenbeheer business logic errors."""

    status_code = 400

    def __init__(self, message: str, code: str = "LEDENBEHEER_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)


class UnauthenticatedError(LedenbeheerError):
    """No caller identity was supplied."""

    status_code = 401

    def __init__(self, message: str = "Not authenticated"):
        super().__init__(message, ErrorCode.AUTH_REQUIRED.value)


class AuthorizationError(LedenbeheerError):
    """User not authorized for this operation."""

    status_code = 403

    def __init__(self, message: str = "Not authorized for this operation"):
        super().__init__(message, ErrorCode.PERMISSION_DENIED.value)


class NotFoundError(LedenbeheerError):
    """Resource not found."""

    status_code = 404

    def __init__(self, resource: str, identifier=None, code: ErrorCode = ErrorCode.NOT_FOUND):
        self.resource = resource
        self.identifier = identifier
        message = f"{resource} not found"
        if identifier is not None:
            message = f"{resource} with ID {identifier} not found"
        super().__init__(message, code.value)


class MemberNotFoundError(NotFoundError):
    """Member not found."""

    def __init__(self, identifier=None):
        super().__init__("Member", identifier, ErrorCode.MEMBER_NOT_FOUND)


class GroupNotFoundError(NotFoundError):
    """Member group not found."""

    def __init__(self, identifier=None):
        super().__init__("Group", identifier, ErrorCode.GROUP_NOT_FOUND)


class ActivityNotFoundError(NotFoundError):
    """Activity not found."""

    def __init__(self, identifier=None):
        super().__init__("Activity", identifier, ErrorCode.ACTIVITY_NOT_FOUND)


class ValidationError(LedenbeheerError):
    """Invalid input data."""

    def __init__(self, message: str, field: str = None):
        self.field = field
        code = f"INVALID_{field.upper()}" if field else ErrorCode.VALIDATION_ERROR.value
        super().__init__(message, code)


class InvalidStateError(LedenbeheerError):
    """Operation does not apply to the record in its current state."""

    status_code = 422

    def __init__(self, message: str):
        super().__init__(message, ErrorCode.INVALID_STATE.value)


class ConflictError(LedenbeheerError):
    """Record changed since the caller last read it."""

    status_code = 409

    def __init__(self, resource: str, expected_version=None, current_version=None):
        self.expected_version = expected_version
        self.current_version = current_version
        message = f"{resource} was modified by someone else"
        if expected_version is not None:
            message = (
                f"{resource} was modified by someone else "
                f"(expected version {expected_version}, found {current_version})"
            )
        super().__init__(message, ErrorCode.STATE_CONFLICT.value)
