"""
Read-only reports joining activities, attendance and members.
"""
from datetime import date
from typing import Optional, Dict, Any, List

from ..models import Activity, Attendance, Member
from ..utils.exceptions import ValidationError
from .membership_service import MembershipService

NO_GROUP = 'No Group'


def percentage(part: int, whole: int) -> float:
    """part/whole as a percentage; 0.0 when whole is 0."""
    if whole <= 0:
        return 0.0
    return part / whole * 100


class ReportService:
    """Service for attendance, activity and member reports."""

    def __init__(self):
        self.directory = MembershipService()

    @staticmethod
    def _check_range(start_date: date, end_date: date) -> None:
        if not start_date or not end_date:
            raise ValidationError('start_date and end_date are required', 'start_date')
        if end_date < start_date:
            raise ValidationError('end_date cannot be before start_date', 'end_date')

    def _activities_in_range(self, start_date: date, end_date: date) -> List[Activity]:
        return (
            Activity.query
            .filter(Activity.date >= start_date, Activity.date <= end_date)
            .order_by(Activity.date, Activity.start_time, Activity.id)
            .all()
        )

    def _members(self, group_id: Optional[int]) -> List[Member]:
        if group_id is None:
            return Member.query.order_by(Member.last_name, Member.first_name).all()
        return list(self.directory.get_group(group_id).members)

    @staticmethod
    def _group_name(member: Member) -> str:
        # Groups are ordered by name; the first one is the display group
        return member.groups[0].name if member.groups else NO_GROUP

    def attendance_report(
        self,
        start_date: date,
        end_date: date,
        group_id: Optional[int] = None
    ) -> Dict[str, Any]:
        """
        Per-member present/absent counts over activities in the date range.
        """
        self._check_range(start_date, end_date)

        activities = self._activities_in_range(start_date, end_date)
        activity_ids = [a.id for a in activities]
        records = (
            Attendance.query.filter(Attendance.activity_id.in_(activity_ids)).all()
            if activity_ids else []
        )

        counts = {}
        for record in records:
            present, absent = counts.get(record.member_id, (0, 0))
            if record.status == Attendance.STATUS_PRESENT:
                present += 1
            elif record.status == Attendance.STATUS_ABSENT:
                absent += 1
            counts[record.member_id] = (present, absent)

        members = self._members(group_id)
        details = []
        for member in members:
            present, absent = counts.get(member.id, (0, 0))
            details.append({
                'member_id': member.id,
                'member_name': member.full_name,
                'member_email': member.email or '',
                'group_name': self._group_name(member),
                'present': present,
                'absent': absent,
                'attendance_percentage': percentage(present, present + absent),
            })

        total_present = sum(1 for r in records if r.status == Attendance.STATUS_PRESENT)
        return {
            'summary': {
                'total_activities': len(activities),
                'average_attendance': percentage(total_present, len(records)),
                'active_members': sum(1 for m in members if m.is_active),
                'total_attendances': total_present,
            },
            'details': details,
        }

    def activities_report(
        self,
        start_date: date,
        end_date: date,
        group_id: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        """Per-activity present/absent counts and attendance rate."""
        self._check_range(start_date, end_date)

        activities = self._activities_in_range(start_date, end_date)
        if group_id is not None:
            activities = [a for a in activities if group_id in (a.target_group_ids or [])]

        rows = []
        for activity in activities:
            records = Attendance.query.filter_by(activity_id=activity.id).all()
            present = sum(1 for r in records if r.status == Attendance.STATUS_PRESENT)
            absent = sum(1 for r in records if r.status == Attendance.STATUS_ABSENT)
            rows.append({
                'activity_id': activity.id,
                'activity_name': activity.name,
                'date': activity.date.isoformat(),
                'start_time': activity.start_time,
                'end_time': activity.end_time,
                'location': activity.location,
                'present_count': present,
                'absent_count': absent,
                'attendance_rate': percentage(present, present + absent),
            })
        return rows

    def members_report(self, group_id: Optional[int] = None) -> List[Dict[str, Any]]:
        """Member listing with their display group and every group name."""
        rows = []
        for member in self._members(group_id):
            rows.append({
                'member_id': member.id,
                'first_name': member.first_name,
                'last_name': member.last_name,
                'email': member.email or '',
                'phone': member.phone,
                'group_name': self._group_name(member),
                'group_names': [g.name for g in member.groups],
                'member_since': member.created_at.date().isoformat() if member.created_at else None,
                'is_active': member.is_active,
            })
        return rows
