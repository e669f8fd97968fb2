"""
Recurring activity scheduler.

Series are expanded eagerly: creating a recurring head inserts one 'single'
instance per later occurrence, each pointing back at the head. Edits and
deletes can target one record or "this and all future occurrences".

Each public mutation runs as a single transaction. Attendance rows of a
deleted activity are removed in the same transaction, before the activity.
"""
import logging
from datetime import date, timedelta
from typing import Optional, Dict, Any, List

from ..extensions import db
from ..models import Activity, Attendance, Member, MemberGroup
from ..utils.dates import parse_date, parse_time
from ..utils.exceptions import (
    UnauthenticatedError,
    ActivityNotFoundError,
    GroupNotFoundError,
    MemberNotFoundError,
    ValidationError,
    InvalidStateError,
)
from ..utils.recurrence import expand_occurrences, RECURRENCE_RULES
from .attendance_service import AttendanceService
from .audit_service import audit_service

logger = logging.getLogger(__name__)

# Fields accepted by update_activity
ACTIVITY_FIELDS = (
    'name',
    'description',
    'date',
    'start_time',
    'end_time',
    'location',
    'color',
    'target_group_ids',
    'target_member_ids',
)

# Fields copied from a head onto each generated instance
INSTANCE_FIELDS = (
    'name',
    'description',
    'start_time',
    'end_time',
    'location',
    'color',
)


class ActivityService:
    """Service for activity scheduling operations."""

    def __init__(self, actor: Optional[str] = None):
        self.actor = actor

    def _require_actor(self) -> str:
        if not self.actor:
            raise UnauthenticatedError()
        return self.actor

    # ==================== Lookups ====================

    def get_activity(self, activity_id: int) -> Activity:
        activity = db.session.get(Activity, activity_id)
        if not activity:
            raise ActivityNotFoundError(activity_id)
        return activity

    def get_instances(self, head_id: int) -> List[Activity]:
        """All generated instances of a series, in date order."""
        return (
            Activity.query
            .filter_by(parent_activity_id=head_id)
            .order_by(Activity.date, Activity.id)
            .all()
        )

    def list_activities(
        self,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        group_id: Optional[int] = None,
        member_id: Optional[int] = None
    ) -> List[Activity]:
        """
        List activities in an (inclusive) date range.

        Args:
            group_id: Only activities targeting this group
            member_id: Only activities targeting this member directly
        """
        query = Activity.query
        if start_date:
            query = query.filter(Activity.date >= start_date)
        if end_date:
            query = query.filter(Activity.date <= end_date)

        activities = query.order_by(Activity.date, Activity.start_time, Activity.id).all()

        # Audience lists are JSON, so filter in Python
        if group_id is not None:
            activities = [a for a in activities if group_id in (a.target_group_ids or [])]
        if member_id is not None:
            activities = [a for a in activities if member_id in (a.target_member_ids or [])]

        return activities

    def get_activity_with_attendance(self, activity_id: int) -> Dict[str, Any]:
        """
        Activity with its resolved audience and attendance.

        Each audience member carries its attendance record (or None).
        `total` in the counts is the audience size, not the number of marks.
        """
        activity = self.get_activity(activity_id)
        ledger = AttendanceService()

        records = Attendance.query.filter_by(activity_id=activity_id).all()
        by_member = {record.member_id: record for record in records}
        audience = ledger.resolve_audience(activity)

        data = activity.to_dict()
        data['members'] = [
            {
                **member.to_dict(),
                'attendance': by_member[member.id].to_dict() if member.id in by_member else None,
            }
            for member in audience
        ]
        data['attendance'] = [record.to_dict() for record in records]
        data['attendance_count'] = {
            'present': sum(1 for r in records if r.status == Attendance.STATUS_PRESENT),
            'absent': sum(1 for r in records if r.status == Attendance.STATUS_ABSENT),
            'total': len(audience),
        }
        return data

    # ==================== Validation helpers ====================

    def _clean_targets(self, field: str, ids) -> List[int]:
        if ids is None:
            return []
        if not isinstance(ids, (list, tuple, set)):
            raise ValidationError(f'{field} must be a list of ids', field)

        cleaned = []
        for raw in ids:
            try:
                target_id = int(raw)
            except (TypeError, ValueError):
                raise ValidationError(f"Invalid id '{raw}' in {field}", field)
            if target_id not in cleaned:
                cleaned.append(target_id)

        model, error = (
            (MemberGroup, GroupNotFoundError) if field == 'target_group_ids'
            else (Member, MemberNotFoundError)
        )
        for target_id in cleaned:
            if not db.session.get(model, target_id):
                raise error(target_id)
        return cleaned

    def _clean_patch(self, patch: Dict[str, Any]) -> Dict[str, Any]:
        unknown = set(patch) - set(ACTIVITY_FIELDS)
        if unknown:
            raise ValidationError(
                f"Field(s) cannot be updated: {', '.join(sorted(unknown))}"
            )

        cleaned = dict(patch)
        if 'name' in cleaned and not (cleaned['name'] or '').strip():
            raise ValidationError('Activity name cannot be empty', 'name')
        if 'date' in cleaned:
            cleaned['date'] = parse_date(cleaned['date'], 'date')
            if cleaned['date'] is None:
                raise ValidationError('Activity date cannot be empty', 'date')
        for field in ('start_time', 'end_time'):
            if field in cleaned:
                cleaned[field] = parse_time(cleaned[field], field)
                if cleaned[field] is None:
                    raise ValidationError(f'{field} cannot be empty', field)
        for field in ('target_group_ids', 'target_member_ids'):
            if field in cleaned:
                cleaned[field] = self._clean_targets(field, cleaned[field])
        return cleaned

    # ==================== Expansion ====================

    def _expand_instances(self, head: Activity) -> List[Activity]:
        """
        Insert one instance per occurrence after the head's own date.

        Raises:
            InvalidStateError: head is not a recurring activity with a rule and end date
        """
        if not head.is_head:
            raise InvalidStateError(f'Activity {head.id} is not a recurring activity')
        if not head.recurrence_rule or not head.recurrence_end:
            raise InvalidStateError(f'Recurring activity {head.id} has no recurrence rule or end date')

        instances = []
        for occurrence in expand_occurrences(head.date, head.recurrence_rule, head.recurrence_end):
            instance = Activity(
                date=occurrence,
                type=Activity.TYPE_SINGLE,
                parent_activity_id=head.id,
                target_group_ids=list(head.target_group_ids or []),
                target_member_ids=list(head.target_member_ids or []),
                created_by=head.created_by,
                **{field: getattr(head, field) for field in INSTANCE_FIELDS}
            )
            db.session.add(instance)
            instances.append(instance)

        db.session.flush()
        return instances

    # ==================== Mutations ====================

    def create_activity(
        self,
        name: str,
        date,
        start_time: str,
        end_time: str,
        type: str = Activity.TYPE_SINGLE,
        description: Optional[str] = None,
        location: Optional[str] = None,
        color: Optional[str] = None,
        recurrence_rule: Optional[str] = None,
        recurrence_end=None,
        target_group_ids: Optional[List[int]] = None,
        target_member_ids: Optional[List[int]] = None
    ) -> Activity:
        """
        Create an activity. A recurring activity becomes the head of a
        series and all its later occurrences are inserted immediately.

        Returns:
            The created activity (the head, for a recurring series)
        """
        actor = self._require_actor()

        if not isinstance(name, str) or not name.strip():
            raise ValidationError('Activity name is required', 'name')
        activity_date = parse_date(date, 'date')
        if activity_date is None:
            raise ValidationError('Activity date is required', 'date')
        start_time = parse_time(start_time, 'start_time')
        end_time = parse_time(end_time, 'end_time')
        if not start_time or not end_time:
            raise ValidationError('Start and end time are required', 'start_time' if not start_time else 'end_time')

        if type not in Activity.TYPES:
            raise ValidationError(f"Activity type must be one of {', '.join(Activity.TYPES)}", 'type')

        recurrence_end = parse_date(recurrence_end, 'recurrence_end')
        if type == Activity.TYPE_RECURRING:
            if recurrence_rule not in RECURRENCE_RULES:
                raise ValidationError(
                    f"Recurring activities need a recurrence rule ({', '.join(RECURRENCE_RULES)})",
                    'recurrence_rule'
                )
            if recurrence_end is None:
                raise ValidationError('Recurring activities need a recurrence end date', 'recurrence_end')
            if recurrence_end < activity_date:
                raise ValidationError('Recurrence end cannot be before the activity date', 'recurrence_end')
        elif recurrence_rule or recurrence_end:
            raise ValidationError('Only recurring activities can have a recurrence rule', 'recurrence_rule')

        try:
            head = Activity(
                name=name.strip(),
                description=description,
                date=activity_date,
                start_time=start_time,
                end_time=end_time,
                location=location,
                color=color,
                type=type,
                recurrence_rule=recurrence_rule,
                recurrence_end=recurrence_end,
                target_group_ids=self._clean_targets('target_group_ids', target_group_ids),
                target_member_ids=self._clean_targets('target_member_ids', target_member_ids),
                created_by=actor,
            )
            db.session.add(head)
            db.session.flush()

            instances = []
            if head.is_head:
                instances = self._expand_instances(head)

            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

        logger.info(f"Activity {head.id} '{head.name}' created by {actor} with {len(instances)} instance(s)")
        audit_service.log(
            actor, 'activity.create', head.id,
            {'type': head.type, 'instances': len(instances)},
            resource='activities'
        )
        return head

    def _future_series(self, activity: Activity, boundary: date) -> List[Activity]:
        """
        Other records of `activity`'s series on or after `boundary`.

        For a head that is every instance. For an instance it is the head
        (when dated on/after the boundary) and every later sibling.
        """
        if activity.is_head:
            return self.get_instances(activity.id)

        if not activity.parent_activity_id:
            return []

        series = []
        head = db.session.get(Activity, activity.parent_activity_id)
        if head and head.date >= boundary:
            series.append(head)
        series.extend(
            sibling for sibling in self.get_instances(activity.parent_activity_id)
            if sibling.date >= boundary and sibling.id != activity.id
        )
        return series

    def update_activity(
        self,
        activity_id: int,
        patch: Dict[str, Any],
        update_all_future: bool = False
    ) -> Activity:
        """
        Patch an activity, optionally together with the rest of its series.

        With update_all_future the same patch, minus `date`, is applied to
        every record _future_series() returns. The boundary is the edited
        record's date before this patch.
        """
        actor = self._require_actor()

        try:
            activity = self.get_activity(activity_id)
            boundary = activity.date
            cleaned = self._clean_patch(patch or {})

            for field, value in cleaned.items():
                setattr(activity, field, value)

            propagated = []
            if update_all_future:
                series_patch = {k: v for k, v in cleaned.items() if k != 'date'}
                for other in self._future_series(activity, boundary):
                    for field, value in series_patch.items():
                        setattr(other, field, list(value) if isinstance(value, list) else value)
                    propagated.append(other.id)

            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

        logger.info(f"Activity {activity_id} updated by {actor}, propagated to {len(propagated)} record(s)")
        audit_service.log(
            actor, 'activity.update', activity_id,
            {'fields': sorted(cleaned), 'propagated_to': propagated},
            resource='activities'
        )
        return activity

    def _delete_attendance(self, activity_id: int) -> int:
        return Attendance.query.filter_by(activity_id=activity_id).delete(synchronize_session='fetch')

    def _promote_survivor(self, head: Activity, survivors: List[Activity], recurrence_end: date) -> Activity:
        """
        Make the earliest surviving instance the head of what is left of the series.
        """
        survivors = sorted(survivors, key=lambda a: (a.date, a.id))
        new_head = survivors[0]
        new_head.type = Activity.TYPE_RECURRING
        new_head.recurrence_rule = head.recurrence_rule
        new_head.recurrence_end = recurrence_end
        new_head.parent_activity_id = None
        for sibling in survivors[1:]:
            sibling.parent_activity_id = new_head.id

        logger.info(f"Activity {new_head.id} promoted to head of the series of deleted activity {head.id}")
        return new_head

    def delete_activity(self, activity_id: int, delete_recurring: bool = False) -> Dict[str, Any]:
        """
        Delete an activity and its attendance.

        With delete_recurring:
        - a head takes all its instances with it;
        - an instance takes the head (if dated on/after it) and every
          later sibling, i.e. "this and all future occurrences". A kept
          head has its recurrence_end moved to the day before.

        A head deleted while instances survive hands its role to the
        earliest survivor, so a series is never left without a head.

        Returns:
            {'deleted_activity_ids': [...], 'deleted_attendance': n, 'promoted_activity_id': id or None}
        """
        actor = self._require_actor()

        try:
            activity = self.get_activity(activity_id)
            boundary = activity.date
            doomed = [activity]

            if delete_recurring:
                doomed.extend(self._future_series(activity, boundary))

                if activity.is_instance:
                    head = db.session.get(Activity, activity.parent_activity_id)
                    if head and head.date < boundary and head.recurrence_end and head.recurrence_end >= boundary:
                        head.recurrence_end = boundary - timedelta(days=1)

            doomed_ids = {a.id for a in doomed}

            # Hand over orphaned series before the head disappears
            promoted = None
            for head in [a for a in doomed if a.is_head]:
                survivors = [i for i in self.get_instances(head.id) if i.id not in doomed_ids]
                if survivors:
                    end = head.recurrence_end
                    if activity.is_instance and end and end >= boundary:
                        end = boundary - timedelta(days=1)
                    promoted = self._promote_survivor(head, survivors, end)
            db.session.flush()

            # Instances before heads, so no row outlives the one it points at
            doomed.sort(key=lambda a: a.is_head)
            deleted_attendance = 0
            for record in doomed:
                deleted_attendance += self._delete_attendance(record.id)
                db.session.delete(record)
                db.session.flush()

            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

        deleted_ids = sorted(doomed_ids)
        logger.info(
            f"Activity {activity_id} deleted by {actor}: {len(deleted_ids)} activit(ies), "
            f"{deleted_attendance} attendance record(s)"
        )
        audit_service.log(
            actor, 'activity.delete', activity_id,
            {'deleted_activity_ids': deleted_ids, 'deleted_attendance': deleted_attendance},
            resource='activities'
        )
        return {
            'deleted_activity_ids': deleted_ids,
            'deleted_attendance': deleted_attendance,
            'promoted_activity_id': promoted.id if promoted else None,
        }

    def fix_recurring_activities(self) -> Dict[str, int]:
        """
        Expand every recurring head that has no instances yet.

        Safe to run repeatedly: heads that already have instances are
        skipped, as are heads without a rule or end date.
        """
        actor = self._require_actor()

        try:
            heads = (
                Activity.query
                .filter_by(type=Activity.TYPE_RECURRING)
                .order_by(Activity.id)
                .all()
            )

            fixed = 0
            instances_created = 0
            for head in heads:
                if not head.recurrence_rule or not head.recurrence_end:
                    continue
                if Activity.query.filter_by(parent_activity_id=head.id).count() > 0:
                    continue

                created = self._expand_instances(head)
                if created:
                    fixed += 1
                    instances_created += len(created)

            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

        logger.info(f"Recurring repair by {actor}: fixed {fixed} series, {instances_created} instance(s) created")
        if fixed:
            audit_service.log(
                actor, 'activity.fix_recurring', 'activities',
                {'fixed': fixed, 'instances_created': instances_created},
                resource='activities'
            )
        return {'fixed': fixed, 'instances_created': instances_created}

    def series_overview(self) -> List[Dict[str, Any]]:
        """Every recurring head with its instance count and date span."""
        overview = []
        heads = Activity.query.filter_by(type=Activity.TYPE_RECURRING).order_by(Activity.date).all()
        for head in heads:
            instances = self.get_instances(head.id)
            overview.append({
                'id': head.id,
                'name': head.name,
                'recurrence_rule': head.recurrence_rule,
                'first_date': head.date.isoformat(),
                'last_date': (instances[-1].date if instances else head.date).isoformat(),
                'recurrence_end': head.recurrence_end.isoformat() if head.recurrence_end else None,
                'instances': len(instances),
            })
        return overview
