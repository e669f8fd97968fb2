"""
Business logic services for Ledenbeheer.
"""
from .membership_service import MembershipService
from .activity_service import ActivityService
from .attendance_service import AttendanceService
from .report_service import ReportService
from .audit_service import AuditService, audit_service

__all__ = [
    'MembershipService',
    'ActivityService',
    'AttendanceService',
    'ReportService',
    'AuditService',
    'audit_service',
]
