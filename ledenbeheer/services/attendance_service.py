"""
Attendance ledger.

One Attendance row per (activity, member): marking a pair again updates the
existing row. Bulk marking is all-or-nothing: every entry is validated
before anything is written, and the batch commits as one transaction.
"""
import logging
from datetime import date, datetime
from typing import Optional, Dict, Any, List

from ..extensions import db
from ..models import Activity, Attendance, Member, MemberGroup
from ..utils.exceptions import (
    UnauthenticatedError,
    ActivityNotFoundError,
    MemberNotFoundError,
    ValidationError,
)
from .audit_service import audit_service

logger = logging.getLogger(__name__)


class AttendanceService:
    """Service for attendance marking and lookups."""

    def __init__(self, actor: Optional[str] = None):
        self.actor = actor

    def _require_actor(self) -> str:
        if not self.actor:
            raise UnauthenticatedError()
        return self.actor

    @staticmethod
    def _check_status(status: str) -> str:
        if status not in Attendance.STATUSES:
            raise ValidationError(
                f"Status must be one of {', '.join(Attendance.STATUSES)}", 'status'
            )
        return status

    def _get_activity(self, activity_id: int) -> Activity:
        activity = db.session.get(Activity, activity_id)
        if not activity:
            raise ActivityNotFoundError(activity_id)
        return activity

    def _get_member(self, member_id: int) -> Member:
        member = db.session.get(Member, member_id)
        if not member:
            raise MemberNotFoundError(member_id)
        return member

    def _upsert(self, activity_id: int, member_id: int, status: str, note: Optional[str], actor: str) -> Attendance:
        now = datetime.utcnow()
        record = Attendance.query.filter_by(activity_id=activity_id, member_id=member_id).first()

        if record:
            record.status = status
            record.note = note
            record.marked_by = actor
            record.marked_at = now
        else:
            record = Attendance(
                activity_id=activity_id,
                member_id=member_id,
                status=status,
                note=note,
                marked_by=actor,
                marked_at=now,
            )
            db.session.add(record)

        db.session.flush()
        return record

    # ==================== Marking ====================

    def mark_attendance(
        self,
        activity_id: int,
        member_id: int,
        status: str,
        note: Optional[str] = None
    ) -> int:
        """
        Mark one member present or absent for an activity.

        Returns:
            The attendance record id (same id when re-marking)
        """
        actor = self._require_actor()
        self._check_status(status)

        try:
            self._get_activity(activity_id)
            self._get_member(member_id)
            record = self._upsert(activity_id, member_id, status, note, actor)
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

        logger.info(f"Attendance {record.id}: member {member_id} {status} at activity {activity_id} (by {actor})")
        audit_service.log(
            actor, 'attendance.mark', activity_id,
            {'member_id': member_id, 'status': status},
            resource='attendance'
        )
        return record.id

    def bulk_mark_attendance(self, activity_id: int, entries: List[Dict[str, Any]]) -> List[int]:
        """
        Mark many members for one activity in a single transaction.

        Args:
            entries: [{'member_id': ..., 'status': ..., 'note': ...}, ...]
                     A member listed twice keeps the last entry.

        Returns:
            Attendance record ids, in entry order

        Raises:
            ActivityNotFoundError, MemberNotFoundError, ValidationError:
                nothing is written when any entry is invalid
        """
        actor = self._require_actor()

        if not isinstance(entries, list):
            raise ValidationError('Attendance data must be a list', 'attendance')

        cleaned = []
        for entry in entries:
            if not isinstance(entry, dict) or 'member_id' not in entry:
                raise ValidationError('Each attendance entry needs a member_id', 'member_id')
            try:
                member_id = int(entry['member_id'])
            except (TypeError, ValueError):
                raise ValidationError(f"Invalid member_id '{entry['member_id']}'", 'member_id')
            cleaned.append((member_id, self._check_status(entry.get('status')), entry.get('note')))

        try:
            self._get_activity(activity_id)
            for member_id, _, _ in cleaned:
                self._get_member(member_id)

            ids = [
                self._upsert(activity_id, member_id, status, note, actor).id
                for member_id, status, note in cleaned
            ]
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

        logger.info(f"Bulk attendance for activity {activity_id}: {len(ids)} record(s) by {actor}")
        audit_service.log(
            actor, 'attendance.bulk_mark', activity_id,
            {'count': len(ids)},
            resource='attendance'
        )
        return ids

    # ==================== Lookups ====================

    def get_attendance_for_activity(self, activity_id: int) -> List[Attendance]:
        self._get_activity(activity_id)
        return (
            Attendance.query
            .filter_by(activity_id=activity_id)
            .join(Member, Attendance.member_id == Member.id)
            .order_by(Member.last_name, Member.first_name)
            .all()
        )

    def get_attendance_for_member(
        self,
        member_id: int,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None
    ) -> List[Attendance]:
        """A member's attendance, newest activity first, optionally within a date range."""
        self._get_member(member_id)

        query = (
            Attendance.query
            .filter_by(member_id=member_id)
            .join(Activity, Attendance.activity_id == Activity.id)
        )
        if start_date:
            query = query.filter(Activity.date >= start_date)
        if end_date:
            query = query.filter(Activity.date <= end_date)

        return query.order_by(Activity.date.desc(), Activity.start_time.desc()).all()

    def get_attendance_stats(
        self,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        group_id: Optional[int] = None,
        member_id: Optional[int] = None
    ) -> Dict[str, Any]:
        """
        Totals across the activities in range (optionally only those
        targeting a group or member). attendance_rate is a whole percentage.
        """
        query = Activity.query
        if start_date:
            query = query.filter(Activity.date >= start_date)
        if end_date:
            query = query.filter(Activity.date <= end_date)

        activities = query.all()
        if group_id is not None:
            activities = [a for a in activities if group_id in (a.target_group_ids or [])]
        if member_id is not None:
            activities = [a for a in activities if member_id in (a.target_member_ids or [])]

        stats = {
            'total_activities': len(activities),
            'total_attendance_records': 0,
            'present': 0,
            'absent': 0,
            'attendance_rate': 0,
        }

        activity_ids = [a.id for a in activities]
        if activity_ids:
            records = Attendance.query.filter(Attendance.activity_id.in_(activity_ids)).all()
            stats['total_attendance_records'] = len(records)
            stats['present'] = sum(1 for r in records if r.status == Attendance.STATUS_PRESENT)
            stats['absent'] = sum(1 for r in records if r.status == Attendance.STATUS_ABSENT)

        if stats['total_attendance_records'] > 0:
            stats['attendance_rate'] = round(stats['present'] / stats['total_attendance_records'] * 100)

        return stats

    # ==================== Audience ====================

    def resolve_audience(self, activity: Activity) -> List[Member]:
        """
        Active members an activity applies to.

        Union of the members of every target group and the directly
        targeted members, deduplicated. Unknown ids are ignored.
        """
        audience = {}

        for group_id in activity.target_group_ids or []:
            group = db.session.get(MemberGroup, group_id)
            if not group:
                continue
            for member in group.members:
                if member.is_active:
                    audience[member.id] = member

        for member_id in activity.target_member_ids or []:
            member = db.session.get(Member, member_id)
            if member and member.is_active:
                audience[member.id] = member

        return sorted(audience.values(), key=lambda m: (m.last_name, m.first_name, m.id))
