"""
Membership directory: members, groups and the membership edges between them.

Every edge change goes through _link/_unlink, which also touch both
endpoints so their version counters move. A concurrent writer holding a
stale copy of either side then fails with StaleDataError instead of
silently overwriting.
"""
import logging
from datetime import datetime
from typing import Optional, Dict, Any, List, Iterable

from ..extensions import db
from ..models import Member, MemberGroup
from ..utils.exceptions import (
    UnauthenticatedError,
    MemberNotFoundError,
    GroupNotFoundError,
    ValidationError,
    ConflictError,
)
from .audit_service import audit_service

logger = logging.getLogger(__name__)

MEMBER_FIELDS = (
    'first_name',
    'last_name',
    'phone',
    'email',
    'guardian_name',
    'guardian_email',
    'guardian_phone',
    'address',
    'national_register_number',
    'notes',
    'is_active',
)

GROUP_FIELDS = ('name', 'description', 'color', 'is_active')


class MembershipService:
    """Service for member and group operations."""

    def __init__(self, actor: Optional[str] = None):
        self.actor = actor

    def _require_actor(self) -> str:
        if not self.actor:
            raise UnauthenticatedError()
        return self.actor

    # ==================== Lookups ====================

    def get_member(self, member_id: int) -> Member:
        member = db.session.get(Member, member_id)
        if not member:
            raise MemberNotFoundError(member_id)
        return member

    def get_group(self, group_id: int) -> MemberGroup:
        group = db.session.get(MemberGroup, group_id)
        if not group:
            raise GroupNotFoundError(group_id)
        return group

    def list_members(
        self,
        search: Optional[str] = None,
        group_id: Optional[int] = None,
        is_active: Optional[bool] = None
    ) -> List[Member]:
        """
        List members, optionally filtered.

        Args:
            search: Case-insensitive match on first or last name
            group_id: Only members of this group
            is_active: Only active (True) or deactivated (False) members
        """
        query = Member.query

        if search:
            pattern = f'%{search.strip()}%'
            query = query.filter(
                db.or_(
                    Member.first_name.ilike(pattern),
                    Member.last_name.ilike(pattern),
                )
            )

        if is_active is not None:
            query = query.filter(Member.is_active.is_(is_active))

        if group_id is not None:
            query = query.filter(Member.groups.any(MemberGroup.id == group_id))

        return query.order_by(Member.last_name, Member.first_name).all()

    def list_groups(self, is_active: Optional[bool] = None) -> List[MemberGroup]:
        query = MemberGroup.query
        if is_active is not None:
            query = query.filter(MemberGroup.is_active.is_(is_active))
        return query.order_by(MemberGroup.name).all()

    def get_group_with_members(self, group_id: int) -> Dict[str, Any]:
        return self.get_group(group_id).to_dict(include_members=True)

    # ==================== Edge maintenance ====================

    def _touch(self, *entities) -> None:
        """Force an UPDATE (and version bump) on each entity."""
        now = datetime.utcnow()
        for entity in entities:
            entity.updated_at = now

    def _link(self, group: MemberGroup, member: Member) -> bool:
        if member in group.members:
            return False
        group.members.append(member)
        self._touch(group, member)
        return True

    def _unlink(self, group: MemberGroup, member: Member) -> bool:
        if member not in group.members:
            return False
        group.members.remove(member)
        self._touch(group, member)
        return True

    def _load_groups(self, group_ids: Iterable[int]) -> List[MemberGroup]:
        groups = []
        for group_id in group_ids:
            groups.append(self.get_group(group_id))
        return groups

    def _reconcile_member_groups(self, member: Member, group_ids: Iterable[int]) -> Dict[str, List[int]]:
        """
        Make member's groups exactly `group_ids`.

        The whole target set is resolved before any edge changes, so an
        unknown group id leaves everything untouched.
        """
        wanted = set(self._clean_group_ids(group_ids))
        wanted_groups = self._load_groups(sorted(wanted))
        current = set(member.group_ids)

        removed = []
        for group in list(member.groups):
            if group.id not in wanted and self._unlink(group, member):
                removed.append(group.id)

        added = []
        for group in wanted_groups:
            if group.id not in current and self._link(group, member):
                added.append(group.id)

        return {'added': added, 'removed': removed}

    @staticmethod
    def _clean_group_ids(group_ids) -> List[int]:
        if not isinstance(group_ids, (list, tuple, set)):
            raise ValidationError('group_ids must be a list of ids', 'group_ids')
        cleaned = []
        for raw in group_ids:
            try:
                cleaned.append(int(raw))
            except (TypeError, ValueError):
                raise ValidationError(f"Invalid id '{raw}' in group_ids", 'group_ids')
        return cleaned

    @staticmethod
    def _check_version(entity, expected, resource: str) -> None:
        if expected is None:
            return
        try:
            expected = int(expected)
        except (TypeError, ValueError):
            raise ValidationError('version must be an integer', 'version')
        if expected != entity.version:
            raise ConflictError(resource, expected, entity.version)

    # ==================== Members ====================

    def create_member(
        self,
        first_name: str,
        last_name: str,
        group_ids: Optional[List[int]] = None,
        **fields
    ) -> Member:
        """
        Create a member and link it to the given groups.

        Raises:
            ValidationError: Missing name or unknown field
            GroupNotFoundError: Any group id does not resolve (nothing is saved)
        """
        actor = self._require_actor()

        if not first_name or not str(first_name).strip():
            raise ValidationError('First name is required', 'first_name')
        if not last_name or not str(last_name).strip():
            raise ValidationError('Last name is required', 'last_name')

        unknown = set(fields) - set(MEMBER_FIELDS)
        if unknown:
            raise ValidationError(f"Unknown member field(s): {', '.join(sorted(unknown))}")

        try:
            member = Member(
                first_name=first_name.strip(),
                last_name=last_name.strip(),
                created_by=actor,
                **fields
            )
            db.session.add(member)
            db.session.flush()

            if group_ids:
                self._reconcile_member_groups(member, group_ids)

            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

        logger.info(f"Member {member.id} created by {actor}")
        audit_service.log(actor, 'member.create', member.id, {'name': member.full_name}, resource='members')
        return member

    def update_member(self, member_id: int, data: Dict[str, Any]) -> Member:
        """
        Update member fields and, when group_ids is given, reconcile memberships.

        Args:
            member_id: Member to update
            data: Fields from MEMBER_FIELDS, plus optional 'group_ids'
                  (the complete new set) and 'version' (the version the
                  caller last read)

        Raises:
            MemberNotFoundError, GroupNotFoundError, ValidationError, ConflictError
        """
        actor = self._require_actor()
        data = dict(data or {})
        group_ids = data.pop('group_ids', None)
        version = data.pop('version', None)

        unknown = set(data) - set(MEMBER_FIELDS)
        if unknown:
            raise ValidationError(f"Unknown member field(s): {', '.join(sorted(unknown))}")

        for required in ('first_name', 'last_name'):
            if required in data and not (data[required] or '').strip():
                raise ValidationError(f"{required.replace('_', ' ').capitalize()} cannot be empty", required)

        try:
            member = self.get_member(member_id)
            self._check_version(member, version, 'Member')

            changes = {'added': [], 'removed': []}
            if group_ids is not None:
                changes = self._reconcile_member_groups(member, group_ids)

            for field, value in data.items():
                setattr(member, field, value)

            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

        logger.info(
            f"Member {member_id} updated by {actor} "
            f"(groups +{changes['added']} -{changes['removed']})"
        )
        audit_service.log(
            actor, 'member.update', member_id,
            {'fields': sorted(data), 'groups_added': changes['added'], 'groups_removed': changes['removed']},
            resource='members'
        )
        return member

    def deactivate_member(self, member_id: int) -> Member:
        """
        Soft-delete a member.

        Group memberships are kept so reports still resolve group names;
        inactive members drop out of activity audiences.
        """
        actor = self._require_actor()

        try:
            member = self.get_member(member_id)
            member.is_active = False
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

        logger.info(f"Member {member_id} deactivated by {actor}")
        audit_service.log(actor, 'member.deactivate', member_id, resource='members')
        return member

    # ==================== Groups ====================

    def create_group(self, name: str, color: str, description: Optional[str] = None) -> MemberGroup:
        actor = self._require_actor()

        if not name or not name.strip():
            raise ValidationError('Group name is required', 'name')
        if not color:
            raise ValidationError('Group color is required', 'color')

        try:
            group = MemberGroup(
                name=name.strip(),
                color=color,
                description=description,
                created_by=actor,
            )
            db.session.add(group)
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

        logger.info(f"Group {group.id} '{group.name}' created by {actor}")
        audit_service.log(actor, 'group.create', group.id, {'name': group.name}, resource='groups')
        return group

    def update_group(self, group_id: int, data: Dict[str, Any]) -> MemberGroup:
        actor = self._require_actor()
        data = dict(data or {})
        version = data.pop('version', None)

        unknown = set(data) - set(GROUP_FIELDS)
        if unknown:
            raise ValidationError(f"Unknown group field(s): {', '.join(sorted(unknown))}")
        if 'name' in data and not (data['name'] or '').strip():
            raise ValidationError('Group name cannot be empty', 'name')

        try:
            group = self.get_group(group_id)
            self._check_version(group, version, 'Group')
            for field, value in data.items():
                setattr(group, field, value)
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

        audit_service.log(actor, 'group.update', group_id, {'fields': sorted(data)}, resource='groups')
        return group

    def add_member_to_group(self, group_id: int, member_id: int) -> bool:
        """
        Add a membership edge. Idempotent.

        Returns:
            True if the edge was created, False if it already existed
        """
        actor = self._require_actor()

        try:
            group = self.get_group(group_id)
            member = self.get_member(member_id)
            added = self._link(group, member)
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

        if added:
            logger.info(f"Member {member_id} added to group {group_id} by {actor}")
            audit_service.log(actor, 'group.add_member', group_id, {'member_id': member_id}, resource='groups')
        return added

    def remove_member_from_group(self, group_id: int, member_id: int) -> bool:
        """
        Remove a membership edge. Idempotent.

        Returns:
            True if an edge was removed, False if there was none
        """
        actor = self._require_actor()

        try:
            group = self.get_group(group_id)
            member = self.get_member(member_id)
            removed = self._unlink(group, member)
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

        if removed:
            logger.info(f"Member {member_id} removed from group {group_id} by {actor}")
            audit_service.log(actor, 'group.remove_member', group_id, {'member_id': member_id}, resource='groups')
        return removed

    def delete_group(self, group_id: int) -> int:
        """
        Delete a group after detaching every member from it.

        Members themselves are untouched apart from losing the edge.
        """
        actor = self._require_actor()

        try:
            group = self.get_group(group_id)
            detached = [member.id for member in list(group.members)]
            for member in list(group.members):
                self._unlink(group, member)
            db.session.flush()
            db.session.delete(group)
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

        logger.info(f"Group {group_id} deleted by {actor}, {len(detached)} member(s) detached")
        audit_service.log(actor, 'group.delete', group_id, {'detached_member_ids': detached}, resource='groups')
        return group_id
