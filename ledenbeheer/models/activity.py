"""
Activity model.

A row is either a standalone single activity, the head of a recurring
series, or a generated instance of a series. Only heads carry
recurrence_rule / recurrence_end; instances are always 'single' and point
at their head through parent_activity_id.
"""
from datetime import datetime
from ..extensions import db


class Activity(db.Model):
    """Scheduled activity (training, meeting, event...)."""
    __tablename__ = 'activities'

    TYPE_SINGLE = 'single'
    TYPE_RECURRING = 'recurring'
    TYPES = (TYPE_SINGLE, TYPE_RECURRING)

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text)
    date = db.Column(db.Date, nullable=False, index=True)
    start_time = db.Column(db.String(5), nullable=False)  # 'HH:MM'
    end_time = db.Column(db.String(5), nullable=False)
    location = db.Column(db.String(255))
    color = db.Column(db.String(20))

    type = db.Column(db.String(20), nullable=False, default=TYPE_SINGLE)
    recurrence_rule = db.Column(db.String(20))  # weekly, biweekly, monthly
    recurrence_end = db.Column(db.Date)

    parent_activity_id = db.Column(db.Integer, db.ForeignKey('activities.id'), index=True)

    # Audience, copied verbatim onto generated instances
    target_group_ids = db.Column(db.JSON, default=list)
    target_member_ids = db.Column(db.JSON, default=list)

    created_by = db.Column(db.String(100))
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f'<Activity {self.id} {self.name} {self.date}>'

    @property
    def is_head(self) -> bool:
        return self.type == self.TYPE_RECURRING

    @property
    def is_instance(self) -> bool:
        return self.parent_activity_id is not None

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'date': self.date.isoformat(),
            'start_time': self.start_time,
            'end_time': self.end_time,
            'location': self.location,
            'color': self.color,
            'type': self.type,
            'recurrence_rule': self.recurrence_rule,
            'recurrence_end': self.recurrence_end.isoformat() if self.recurrence_end else None,
            'parent_activity_id': self.parent_activity_id,
            'target_group_ids': list(self.target_group_ids or []),
            'target_member_ids': list(self.target_member_ids or []),
            'created_by': self.created_by,
        }
