"""
Report API endpoints.

The attendance and activities reports require an inclusive
start_date / end_date range.
"""
from flask import Blueprint, jsonify

from ..middleware.auth import require_auth
from ..services.report_service import ReportService
from ..utils.exceptions import ValidationError
from .params import arg_int, arg_date

reports_bp = Blueprint('reports', __name__)


def _date_range():
    start_date = arg_date('start_date')
    end_date = arg_date('end_date')
    if start_date is None or end_date is None:
        raise ValidationError('start_date and end_date are required', 'start_date' if start_date is None else 'end_date')
    return start_date, end_date


@reports_bp.route('/attendance', methods=['GET'])
@require_auth
def attendance_report():
    start_date, end_date = _date_range()
    report = ReportService().attendance_report(start_date, end_date, group_id=arg_int('group_id'))
    return jsonify(report)


@reports_bp.route('/activities', methods=['GET'])
@require_auth
def activities_report():
    start_date, end_date = _date_range()
    rows = ReportService().activities_report(start_date, end_date, group_id=arg_int('group_id'))
    return jsonify({'activities': rows, 'total': len(rows)})


@reports_bp.route('/members', methods=['GET'])
@require_auth
def members_report():
    rows = ReportService().members_report(group_id=arg_int('group_id'))
    return jsonify({'members': rows, 'total': len(rows)})
