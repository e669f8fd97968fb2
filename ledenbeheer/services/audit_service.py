"""
Audit sink.

Append-only log of (actor, action, target, details, timestamp). Services
call log() after their own transaction has committed. Audit writes are
best-effort: a failure is logged and never propagates to the caller.
"""
import logging
from typing import Optional, Dict, Any, List

from flask import current_app

from ..extensions import db
from ..models import AuditLog

logger = logging.getLogger(__name__)


class AuditService:
    """Service for writing and reading the audit log."""

    def log(
        self,
        actor: str,
        action: str,
        target: str,
        details: Optional[Dict[str, Any]] = None,
        resource: str = 'general'
    ) -> Optional[AuditLog]:
        """
        Append an audit entry.

        Returns:
            The stored AuditLog, or None when auditing is disabled or failed
        """
        if not current_app.config.get('AUDIT_ENABLED', True):
            return None

        try:
            entry = AuditLog(
                actor=str(actor),
                action=action,
                resource=resource,
                target=str(target),
                details=details,
            )
            db.session.add(entry)
            db.session.commit()
            return entry
        except Exception as e:
            # Audit is non-critical - log and continue
            db.session.rollback()
            logger.warning(f"Audit log write failed for {action} on {target} (non-blocking): {e}")
            return None

    def get_audit_logs(self, limit: int = 50) -> List[AuditLog]:
        """Most recent audit entries, newest first."""
        return (
            AuditLog.query
            .order_by(AuditLog.timestamp.desc(), AuditLog.id.desc())
            .limit(limit)
            .all()
        )

    def get_audit_stats(self) -> Dict[str, Any]:
        """Total number of audited actions, broken down by resource."""
        rows = (
            db.session.query(AuditLog.resource, db.func.count(AuditLog.id))
            .group_by(AuditLog.resource)
            .all()
        )
        by_resource = {resource or 'general': count for resource, count in rows}
        return {
            'total_actions': sum(by_resource.values()),
            'by_resource': by_resource,
        }


# Singleton instance
audit_service = AuditService()
