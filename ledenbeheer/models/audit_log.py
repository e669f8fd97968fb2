"""
Audit log model - append-only record of mutations.
"""
from datetime import datetime
from ..extensions import db


class AuditLog(db.Model):
    __tablename__ = 'audit_logs'

    id = db.Column(db.Integer, primary_key=True)
    actor = db.Column(db.String(100), nullable=False, index=True)
    action = db.Column(db.String(100), nullable=False)
    resource = db.Column(db.String(50), default='general', index=True)
    target = db.Column(db.String(255))
    details = db.Column(db.JSON)
    timestamp = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    def __repr__(self):
        return f'<AuditLog {self.action} {self.target}>'

    def to_dict(self):
        return {
            'id': self.id,
            'actor': self.actor,
            'action': self.action,
            'resource': self.resource,
            'target': self.target,
            'details': self.details,
            'timestamp': self.timestamp.isoformat() if self.timestamp else None,
        }
