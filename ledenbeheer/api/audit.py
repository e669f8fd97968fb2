"""
Audit log endpoints (admin only).
"""
from flask import Blueprint, jsonify, current_app

from ..middleware.auth import require_auth, require_admin
from ..services.audit_service import audit_service
from .params import arg_int

audit_bp = Blueprint('audit', __name__)


@audit_bp.route('', methods=['GET'])
@require_auth
@require_admin
def get_audit_logs():
    """
    Recent audit entries, newest first.

    Query params:
        limit: Max entries (default AUDIT_LOG_DEFAULT_LIMIT)
    """
    limit = arg_int('limit', current_app.config.get('AUDIT_LOG_DEFAULT_LIMIT', 50))
    logs = audit_service.get_audit_logs(limit=max(1, min(limit, 500)))
    return jsonify({
        'logs': [entry.to_dict() for entry in logs],
        'stats': audit_service.get_audit_stats(),
    })
