"""
Database models for Ledenbeheer.
Members, groups, activities, attendance and the audit log.
"""
from .member import Member, MemberGroup, group_memberships
from .activity import Activity
from .attendance import Attendance
from .audit_log import AuditLog

__all__ = [
    'Member',
    'MemberGroup',
    'group_memberships',
    'Activity',
    'Attendance',
    'AuditLog',
]
