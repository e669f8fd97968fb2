"""
Middleware package for Ledenbeheer.
"""
from .auth import require_auth, require_admin, get_identity_from_request
