"""
Member group API endpoints, including membership edges.
"""
from flask import Blueprint, jsonify, g

from ..middleware.auth import require_auth
from ..services.membership_service import MembershipService
from .params import json_body, arg_bool

groups_bp = Blueprint('groups', __name__)


@groups_bp.route('', methods=['GET'])
@require_auth
def list_groups():
    service = MembershipService(actor=g.user_id)
    groups = service.list_groups(is_active=arg_bool('is_active'))
    return jsonify({
        'groups': [group.to_dict() for group in groups],
        'total': len(groups),
    })


@groups_bp.route('', methods=['POST'])
@require_auth
def create_group():
    """
    Create a group.

    Body:
        name: Required
        color: Required
        description: Optional
    """
    data = json_body()
    service = MembershipService(actor=g.user_id)
    group = service.create_group(
        name=data.get('name'),
        color=data.get('color'),
        description=data.get('description'),
    )
    return jsonify(group.to_dict()), 201


@groups_bp.route('/<int:group_id>', methods=['GET'])
@require_auth
def get_group(group_id):
    """Group with its member list."""
    service = MembershipService(actor=g.user_id)
    return jsonify(service.get_group_with_members(group_id))


@groups_bp.route('/<int:group_id>', methods=['PUT'])
@require_auth
def update_group(group_id):
    service = MembershipService(actor=g.user_id)
    group = service.update_group(group_id, json_body())
    return jsonify(group.to_dict())


@groups_bp.route('/<int:group_id>', methods=['DELETE'])
@require_auth
def delete_group(group_id):
    """Delete a group after unlinking all of its members."""
    service = MembershipService(actor=g.user_id)
    deleted_id = service.delete_group(group_id)
    return jsonify({'success': True, 'deleted_group_id': deleted_id})


# ==================== Membership edges ====================

@groups_bp.route('/<int:group_id>/members/<int:member_id>', methods=['POST'])
@require_auth
def add_member(group_id, member_id):
    service = MembershipService(actor=g.user_id)
    added = service.add_member_to_group(group_id, member_id)
    return jsonify({
        'success': True,
        'changed': added,
        'group': service.get_group(group_id).to_dict(),
    })


@groups_bp.route('/<int:group_id>/members/<int:member_id>', methods=['DELETE'])
@require_auth
def remove_member(group_id, member_id):
    """Remove a member from a group. Removing an absent edge is a no-op."""
    service = MembershipService(actor=g.user_id)
    removed = service.remove_member_from_group(group_id, member_id)
    return jsonify({
        'success': True,
        'changed': removed,
        'group': service.get_group(group_id).to_dict(),
    })
