"""
Member and MemberGroup models.

Group membership is stored once, in the group_memberships table. Both
Member.group_ids and MemberGroup.member_ids are read from it, so the two
sides cannot disagree.
"""
from datetime import datetime
from ..extensions import db


group_memberships = db.Table(
    'group_memberships',
    db.Column('group_id', db.Integer, db.ForeignKey('member_groups.id'), primary_key=True),
    db.Column('member_id', db.Integer, db.ForeignKey('members.id'), primary_key=True),
    db.Column('created_at', db.DateTime, default=datetime.utcnow),
)


class Member(db.Model):
    """
    Member of the organization.
    Never hard-deleted: deactivation flips is_active.
    """
    __tablename__ = 'members'

    id = db.Column(db.Integer, primary_key=True)

    first_name = db.Column(db.String(100), nullable=False)
    last_name = db.Column(db.String(100), nullable=False)
    phone = db.Column(db.String(50))
    email = db.Column(db.String(255))

    # Guardian contact (for underage members)
    guardian_name = db.Column(db.String(255))
    guardian_email = db.Column(db.String(255))
    guardian_phone = db.Column(db.String(50))

    address = db.Column(db.String(500))
    national_register_number = db.Column(db.String(20))
    notes = db.Column(db.Text)

    is_active = db.Column(db.Boolean, default=True, nullable=False, index=True)

    # Metadata
    created_by = db.Column(db.String(100))
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Optimistic concurrency token, bumped on every UPDATE
    version = db.Column(db.Integer, nullable=False, default=1)

    # Relationships
    groups = db.relationship(
        'MemberGroup',
        secondary=group_memberships,
        back_populates='members',
        order_by='MemberGroup.name',
    )

    __mapper_args__ = {'version_id_col': version}

    def __repr__(self):
        return f'<Member {self.id} {self.full_name}>'

    @property
    def full_name(self) -> str:
        return f'{self.first_name} {self.last_name}'

    @property
    def group_ids(self) -> list:
        return sorted(group.id for group in self.groups)

    def to_dict(self, include_groups=False):
        data = {
            'id': self.id,
            'first_name': self.first_name,
            'last_name': self.last_name,
            'full_name': self.full_name,
            'phone': self.phone,
            'email': self.email,
            'guardian_name': self.guardian_name,
            'guardian_email': self.guardian_email,
            'guardian_phone': self.guardian_phone,
            'address': self.address,
            'national_register_number': self.national_register_number,
            'notes': self.notes,
            'group_ids': self.group_ids,
            'is_active': self.is_active,
            'version': self.version,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }

        if include_groups:
            data['groups'] = [
                {'id': g.id, 'name': g.name, 'color': g.color} for g in self.groups
            ]

        return data


class MemberGroup(db.Model):
    """
    Named group of members (e.g. an age bracket or a team).
    Deleting a group removes its memberships, never its members.
    """
    __tablename__ = 'member_groups'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text)
    color = db.Column(db.String(20), nullable=False)  # '#3b82f6'

    is_active = db.Column(db.Boolean, default=True, nullable=False)

    created_by = db.Column(db.String(100))
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    version = db.Column(db.Integer, nullable=False, default=1)

    members = db.relationship(
        'Member',
        secondary=group_memberships,
        back_populates='groups',
        order_by=[Member.last_name, Member.first_name],
    )

    __mapper_args__ = {'version_id_col': version}

    def __repr__(self):
        return f'<MemberGroup {self.name}>'

    @property
    def member_ids(self) -> list:
        return sorted(member.id for member in self.members)

    def to_dict(self, include_members=False):
        data = {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'color': self.color,
            'member_ids': self.member_ids,
            'member_count': len(self.members),
            'is_active': self.is_active,
            'version': self.version,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }

        if include_members:
            data['members'] = [m.to_dict() for m in self.members]

        return data
