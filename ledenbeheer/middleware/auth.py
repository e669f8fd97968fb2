"""
Identity middleware.

Authentication itself happens upstream (identity provider / gateway), which
forwards the caller's identity in request headers:

    X-User-Id:    stable user id (required)
    X-User-Email: user email (optional, used for the admin allowlist)

require_auth rejects requests without an identity; require_admin
additionally checks the email against ADMIN_EMAILS and raises
AuthorizationError (403) for anyone else.
"""
from functools import wraps
from flask import request, g, current_app

from ..utils.errors import unauthorized
from ..utils.exceptions import AuthorizationError


def get_identity_from_request():
    """
    Read the caller identity from the forwarded headers.

    Returns:
        (user_id, email) - either may be None
    """
    user_id = (request.headers.get('X-User-Id') or '').strip() or None
    email = (request.headers.get('X-User-Email') or '').strip().lower() or None
    return user_id, email


def require_auth(f):
    """
    Decorator to require a caller identity.

    Sets g.user_id and g.user_email.

    Usage:
        @require_auth
        def my_endpoint():
            service = MembershipService(actor=g.user_id)
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        user_id, email = get_identity_from_request()
        if not user_id:
            return unauthorized('Missing user identity')

        g.user_id = user_id
        g.user_email = email
        return f(*args, **kwargs)

    return decorated_function


def require_admin(f):
    """
    Decorator to restrict an endpoint to the ADMIN_EMAILS allowlist.

    Must be used after @require_auth.

    Raises:
        AuthorizationError: Caller email is missing or not on the allowlist
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        email = getattr(g, 'user_email', None)
        if not email:
            raise AuthorizationError('Admin access required')

        allowlist = current_app.config.get('ADMIN_EMAILS', [])
        if email not in allowlist:
            current_app.logger.warning(f"Admin access denied for {email}")
            raise AuthorizationError('Admin access required')

        return f(*args, **kwargs)

    return decorated_function
