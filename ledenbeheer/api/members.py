"""
Member API endpoints.

Members are never hard-deleted: DELETE deactivates the member and keeps its
group memberships so history and reports still resolve.
"""
from flask import Blueprint, request, jsonify, g

from ..middleware.auth import require_auth
from ..services.membership_service import MembershipService
from .params import json_body, arg_bool, arg_int

members_bp = Blueprint('members', __name__)


@members_bp.route('', methods=['GET'])
@require_auth
def list_members():
    """
    List members.

    Query params:
        search: Match on first or last name
        group_id: Only members of this group
        is_active: true / false
    """
    service = MembershipService(actor=g.user_id)
    members = service.list_members(
        search=request.args.get('search') or None,
        group_id=arg_int('group_id'),
        is_active=arg_bool('is_active'),
    )
    return jsonify({
        'members': [m.to_dict(include_groups=True) for m in members],
        'total': len(members),
    })


@members_bp.route('', methods=['POST'])
@require_auth
def create_member():
    """
    Create a member.

    Body:
        first_name, last_name: Required
        group_ids: Groups to link the new member to
        phone, email, guardian_*, address, national_register_number, notes
    """
    data = json_body()
    first_name = data.pop('first_name', None)
    last_name = data.pop('last_name', None)
    group_ids = data.pop('group_ids', None)

    service = MembershipService(actor=g.user_id)
    member = service.create_member(first_name, last_name, group_ids=group_ids, **data)
    return jsonify(member.to_dict(include_groups=True)), 201


@members_bp.route('/<int:member_id>', methods=['GET'])
@require_auth
def get_member(member_id):
    service = MembershipService(actor=g.user_id)
    return jsonify(service.get_member(member_id).to_dict(include_groups=True))


@members_bp.route('/<int:member_id>', methods=['PUT'])
@require_auth
def update_member(member_id):
    """
    Update a member.

    Body may contain any member field, `group_ids` (the complete new set of
    groups) and `version` (the version last read, for conflict detection).
    """
    service = MembershipService(actor=g.user_id)
    member = service.update_member(member_id, json_body())
    return jsonify(member.to_dict(include_groups=True))


@members_bp.route('/<int:member_id>', methods=['DELETE'])
@require_auth
def deactivate_member(member_id):
    service = MembershipService(actor=g.user_id)
    member = service.deactivate_member(member_id)
    return jsonify({'success': True, 'member': member.to_dict()})
