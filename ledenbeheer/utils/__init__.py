"""
Utility modules for Ledenbeheer.
"""
from .logging_config import setup_logging
from .errors import (
    ErrorCode,
    error_response,
    bad_request,
    unauthorized,
    not_found,
    conflict,
    internal_error
)
from .exceptions import (
    LedenbeheerError,
    UnauthenticatedError,
    AuthorizationError,
    NotFoundError,
    MemberNotFoundError,
    GroupNotFoundError,
    ActivityNotFoundError,
    ValidationError,
    InvalidStateError,
    ConflictError
)
from .recurrence import expand_occurrences, advance, RECURRENCE_RULES
from .dates import parse_date, parse_time
