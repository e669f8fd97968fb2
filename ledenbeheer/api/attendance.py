"""
Attendance API endpoints.
"""
from flask import Blueprint, jsonify, g

from ..middleware.auth import require_auth
from ..services.attendance_service import AttendanceService
from ..utils.exceptions import ValidationError
from .params import json_body, arg_int, arg_date

attendance_bp = Blueprint('attendance', __name__)


def _required_int(data: dict, field: str) -> int:
    value = data.get(field)
    if value is None:
        raise ValidationError(f'{field} is required', field)
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f'{field} must be an integer', field)


@attendance_bp.route('', methods=['POST'])
@require_auth
def mark_attendance():
    """
    Mark one member present or absent.

    Body:
        activity_id, member_id, status: Required
        note: Optional
    """
    data = json_body()
    service = AttendanceService(actor=g.user_id)
    attendance_id = service.mark_attendance(
        activity_id=_required_int(data, 'activity_id'),
        member_id=_required_int(data, 'member_id'),
        status=data.get('status'),
        note=data.get('note'),
    )
    return jsonify({'success': True, 'attendance_id': attendance_id})


@attendance_bp.route('/bulk', methods=['POST'])
@require_auth
def bulk_mark_attendance():
    """
    Mark many members for one activity. Either every entry is saved or none.

    Body:
        activity_id: Required
        attendance: [{member_id, status, note?}, ...]
    """
    data = json_body()
    entries = data.get('attendance')
    if not isinstance(entries, list):
        raise ValidationError('attendance must be a list', 'attendance')

    service = AttendanceService(actor=g.user_id)
    ids = service.bulk_mark_attendance(_required_int(data, 'activity_id'), entries)
    return jsonify({'success': True, 'attendance_ids': ids, 'count': len(ids)})


@attendance_bp.route('/activity/<int:activity_id>', methods=['GET'])
@require_auth
def activity_attendance(activity_id):
    service = AttendanceService(actor=g.user_id)
    records = service.get_attendance_for_activity(activity_id)
    return jsonify({
        'attendance': [r.to_dict(include_member=True) for r in records],
        'total': len(records),
    })


@attendance_bp.route('/member/<int:member_id>', methods=['GET'])
@require_auth
def member_attendance(member_id):
    """
    A member's attendance history, newest first.

    Query params:
        start_date, end_date: Inclusive ISO date range
    """
    service = AttendanceService(actor=g.user_id)
    records = service.get_attendance_for_member(
        member_id,
        start_date=arg_date('start_date'),
        end_date=arg_date('end_date'),
    )
    return jsonify({
        'attendance': [r.to_dict(include_activity=True) for r in records],
        'total': len(records),
    })


@attendance_bp.route('/stats', methods=['GET'])
@require_auth
def attendance_stats():
    service = AttendanceService(actor=g.user_id)
    return jsonify(service.get_attendance_stats(
        start_date=arg_date('start_date'),
        end_date=arg_date('end_date'),
        group_id=arg_int('group_id'),
        member_id=arg_int('member_id'),
    ))
