"""
Attendance model - one row per (activity, member).
"""
from datetime import datetime
from ..extensions import db


class Attendance(db.Model):
    """Attendance mark for a member at one activity occurrence."""
    __tablename__ = 'attendance'

    STATUS_PRESENT = 'present'
    STATUS_ABSENT = 'absent'
    STATUSES = (STATUS_PRESENT, STATUS_ABSENT)

    id = db.Column(db.Integer, primary_key=True)
    activity_id = db.Column(db.Integer, db.ForeignKey('activities.id'), nullable=False, index=True)
    member_id = db.Column(db.Integer, db.ForeignKey('members.id'), nullable=False, index=True)

    status = db.Column(db.String(20), nullable=False)
    note = db.Column(db.Text)

    marked_by = db.Column(db.String(100))
    marked_at = db.Column(db.DateTime, default=datetime.utcnow)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Read-only navigation; deletes are cascaded explicitly by ActivityService
    activity = db.relationship('Activity', viewonly=True)
    member = db.relationship('Member', viewonly=True)

    __table_args__ = (
        db.UniqueConstraint('activity_id', 'member_id', name='uq_attendance_activity_member'),
    )

    def __repr__(self):
        return f'<Attendance activity={self.activity_id} member={self.member_id} {self.status}>'

    def to_dict(self, include_member=False, include_activity=False):
        data = {
            'id': self.id,
            'activity_id': self.activity_id,
            'member_id': self.member_id,
            'status': self.status,
            'note': self.note,
            'marked_by': self.marked_by,
            'marked_at': self.marked_at.isoformat() if self.marked_at else None,
        }

        if include_member and self.member:
            data['member'] = self.member.to_dict()
        if include_activity and self.activity:
            data['activity'] = self.activity.to_dict()

        return data
