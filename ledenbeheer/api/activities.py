"""
Activity API endpoints.

Creating a recurring activity inserts the whole series. Updates and deletes
can apply to a single occurrence or to that occurrence and every later one
in its series.
"""
from flask import Blueprint, jsonify, g

from ..middleware.auth import require_auth
from ..models import Activity
from ..services.activity_service import ActivityService
from ..utils.exceptions import ValidationError
from .params import json_body, body_bool, arg_bool, arg_int, arg_date

activities_bp = Blueprint('activities', __name__)

CREATE_FIELDS = (
    'name', 'date', 'start_time', 'end_time', 'type', 'description',
    'location', 'color', 'recurrence_rule', 'recurrence_end',
    'target_group_ids', 'target_member_ids',
)


@activities_bp.route('', methods=['GET'])
@require_auth
def list_activities():
    """
    List activities.

    Query params:
        start_date, end_date: Inclusive ISO date range
        group_id: Only activities targeting this group
        member_id: Only activities targeting this member directly
    """
    service = ActivityService(actor=g.user_id)
    activities = service.list_activities(
        start_date=arg_date('start_date'),
        end_date=arg_date('end_date'),
        group_id=arg_int('group_id'),
        member_id=arg_int('member_id'),
    )
    return jsonify({
        'activities': [a.to_dict() for a in activities],
        'total': len(activities),
    })


@activities_bp.route('', methods=['POST'])
@require_auth
def create_activity():
    """
    Create an activity.

    Body:
        name, date, start_time, end_time: Required
        type: 'single' (default) or 'recurring'
        recurrence_rule: weekly / biweekly / monthly (recurring only)
        recurrence_end: Last possible occurrence date (recurring only)
        target_group_ids, target_member_ids: Audience
    """
    data = json_body()
    unknown = set(data) - set(CREATE_FIELDS)
    if unknown:
        raise ValidationError(f"Unknown activity field(s): {', '.join(sorted(unknown))}")

    service = ActivityService(actor=g.user_id)
    activity = service.create_activity(
        name=data.get('name'),
        date=data.get('date'),
        start_time=data.get('start_time'),
        end_time=data.get('end_time'),
        type=data.get('type') or Activity.TYPE_SINGLE,
        description=data.get('description'),
        location=data.get('location'),
        color=data.get('color'),
        recurrence_rule=data.get('recurrence_rule'),
        recurrence_end=data.get('recurrence_end'),
        target_group_ids=data.get('target_group_ids'),
        target_member_ids=data.get('target_member_ids'),
    )

    result = activity.to_dict()
    if activity.is_head:
        result['instances_created'] = len(service.get_instances(activity.id))
    return jsonify(result), 201


@activities_bp.route('/<int:activity_id>', methods=['GET'])
@require_auth
def get_activity(activity_id):
    """Activity with its audience and attendance."""
    service = ActivityService(actor=g.user_id)
    return jsonify(service.get_activity_with_attendance(activity_id))


@activities_bp.route('/<int:activity_id>', methods=['PUT'])
@require_auth
def update_activity(activity_id):
    """
    Update an activity.

    Body: the fields to change, plus `update_all_future` (bool) to apply
    the change (except the date) to every later occurrence of the series.
    """
    data = json_body()
    update_all_future = body_bool(data, 'update_all_future')
    data.pop('update_all_future', None)

    service = ActivityService(actor=g.user_id)
    activity = service.update_activity(activity_id, data, update_all_future=update_all_future)
    return jsonify(activity.to_dict())


@activities_bp.route('/<int:activity_id>', methods=['DELETE'])
@require_auth
def delete_activity(activity_id):
    """
    Delete an activity and its attendance.

    Query params:
        delete_recurring: true to also delete every later occurrence
    """
    service = ActivityService(actor=g.user_id)
    result = service.delete_activity(
        activity_id,
        delete_recurring=arg_bool('delete_recurring', False),
    )
    return jsonify({'success': True, **result})


@activities_bp.route('/fix-recurring', methods=['POST'])
@require_auth
def fix_recurring():
    """Generate missing occurrences for recurring series that have none."""
    service = ActivityService(actor=g.user_id)
    return jsonify(service.fix_recurring_activities())
