"""
Tests for ActivityService.

Covers series expansion, "this and all future" edits and deletes,
orphan promotion and the recurring repair.
"""
from datetime import date

import pytest

from ledenbeheer.models import Activity, Attendance
from ledenbeheer.services import ActivityService
from ledenbeheer.utils.exceptions import (
    UnauthenticatedError,
    ActivityNotFoundError,
    GroupNotFoundError,
    ValidationError,
    InvalidStateError,
)


def series_by_date(head_id):
    """Head plus instances of a series keyed by date."""
    records = Activity.query.filter(
        (Activity.id == head_id) | (Activity.parent_activity_id == head_id)
    ).all()
    return {a.date: a for a in records}


class TestCreateActivity:
    """Tests for single and recurring creation."""

    def test_create_single(self, sample_activity):
        assert sample_activity.type == 'single'
        assert sample_activity.parent_activity_id is None
        assert Activity.query.count() == 1

    def test_create_requires_actor(self, app):
        with pytest.raises(UnauthenticatedError):
            ActivityService().create_activity('X', date(2024, 1, 1), '10:00', '11:00')

    def test_weekly_series_expands(self, weekly_series):
        """Head on 01-01 plus instances on 01-08, 01-15 and 01-22."""
        records = Activity.query.order_by(Activity.date).all()

        assert [a.date for a in records] == [
            date(2024, 1, 1), date(2024, 1, 8), date(2024, 1, 15), date(2024, 1, 22)
        ]
        assert records[0].id == weekly_series.id
        for instance in records[1:]:
            assert instance.parent_activity_id == weekly_series.id
            assert instance.type == 'single'
            assert instance.recurrence_rule is None
            assert instance.location == 'Room A'

    def test_monthly_series_clamps(self, scheduler):
        head = scheduler.create_activity(
            name='Board meeting', date='2024-01-31', start_time='20:00', end_time='22:00',
            type='recurring', recurrence_rule='monthly', recurrence_end='2024-04-30',
        )
        dates = [a.date for a in scheduler.get_instances(head.id)]
        assert dates == [date(2024, 2, 29), date(2024, 3, 31), date(2024, 4, 30)]

    def test_recurring_end_on_start_has_no_instances(self, scheduler):
        head = scheduler.create_activity(
            name='Once', date='2024-01-01', start_time='10:00', end_time='11:00',
            type='recurring', recurrence_rule='weekly', recurrence_end='2024-01-01',
        )
        assert scheduler.get_instances(head.id) == []

    def test_instances_copy_targets(self, scheduler, sample_group, sample_member):
        head = scheduler.create_activity(
            name='Training', date='2024-01-01', start_time='10:00', end_time='11:00',
            type='recurring', recurrence_rule='biweekly', recurrence_end='2024-01-29',
            target_group_ids=[sample_group.id], target_member_ids=[sample_member.id],
        )
        for instance in scheduler.get_instances(head.id):
            assert instance.target_group_ids == [sample_group.id]
            assert instance.target_member_ids == [sample_member.id]

    @pytest.mark.parametrize('overrides', [
        {'type': 'recurring'},
        {'type': 'recurring', 'recurrence_rule': 'weekly'},
        {'type': 'recurring', 'recurrence_rule': 'daily', 'recurrence_end': '2024-02-01'},
        {'type': 'recurring', 'recurrence_rule': 'weekly', 'recurrence_end': '2023-12-01'},
        {'recurrence_rule': 'weekly'},
        {'type': 'weird'},
        {'start_time': '7pm'},
        {'name': ''},
    ])
    def test_create_validation(self, scheduler, overrides):
        params = dict(name='Training', date='2024-01-01', start_time='10:00', end_time='11:00')
        params.update(overrides)
        with pytest.raises(ValidationError):
            scheduler.create_activity(**params)
        assert Activity.query.count() == 0

    def test_unknown_target_group(self, scheduler):
        with pytest.raises(GroupNotFoundError):
            scheduler.create_activity(
                name='Training', date='2024-01-01', start_time='10:00', end_time='11:00',
                target_group_ids=[404],
            )


class TestUpdateActivity:
    """Tests for single and future-series updates."""

    def test_update_single_record(self, scheduler, weekly_series):
        instance = series_by_date(weekly_series.id)[date(2024, 1, 15)]
        scheduler.update_activity(instance.id, {'location': 'Room B'})

        series = series_by_date(weekly_series.id)
        assert series[date(2024, 1, 15)].location == 'Room B'
        assert series[date(2024, 1, 22)].location == 'Room A'

    def test_update_all_future_from_instance(self, scheduler, weekly_series):
        """Editing the 01-15 instance changes 01-15 and 01-22 only."""
        instance = series_by_date(weekly_series.id)[date(2024, 1, 15)]
        scheduler.update_activity(instance.id, {'location': 'Room B'}, update_all_future=True)

        series = series_by_date(weekly_series.id)
        assert series[date(2024, 1, 1)].location == 'Room A'
        assert series[date(2024, 1, 8)].location == 'Room A'
        assert series[date(2024, 1, 15)].location == 'Room B'
        assert series[date(2024, 1, 22)].location == 'Room B'

    def test_update_all_future_from_head(self, scheduler, weekly_series):
        scheduler.update_activity(weekly_series.id, {'name': 'Choir'}, update_all_future=True)
        assert {a.name for a in series_by_date(weekly_series.id).values()} == {'Choir'}

    def test_future_update_does_not_move_other_dates(self, scheduler, weekly_series):
        instance = series_by_date(weekly_series.id)[date(2024, 1, 8)]
        scheduler.update_activity(
            instance.id, {'date': '2024-01-09', 'start_time': '20:00'}, update_all_future=True
        )

        series = series_by_date(weekly_series.id)
        assert set(series) == {date(2024, 1, 1), date(2024, 1, 9), date(2024, 1, 15), date(2024, 1, 22)}
        assert series[date(2024, 1, 15)].start_time == '20:00'
        assert series[date(2024, 1, 1)].start_time == '19:00'

    def test_update_unknown_field(self, scheduler, sample_activity):
        with pytest.raises(ValidationError):
            scheduler.update_activity(sample_activity.id, {'type': 'recurring'})

    def test_update_missing(self, scheduler):
        with pytest.raises(ActivityNotFoundError):
            scheduler.update_activity(999, {'name': 'X'})


class TestDeleteActivity:
    """Tests for deletion, attendance cascade and orphan handling."""

    def test_delete_whole_series(self, scheduler, ledger, sample_member, weekly_series):
        for activity in series_by_date(weekly_series.id).values():
            ledger.mark_attendance(activity.id, sample_member.id, 'present')

        result = scheduler.delete_activity(weekly_series.id, delete_recurring=True)

        assert Activity.query.count() == 0
        assert Attendance.query.count() == 0
        assert len(result['deleted_activity_ids']) == 4
        assert result['deleted_attendance'] == 4

    def test_delete_single_removes_attendance(self, scheduler, ledger, sample_member, sample_activity):
        activity_id = sample_activity.id
        ledger.mark_attendance(activity_id, sample_member.id, 'absent')

        scheduler.delete_activity(activity_id)

        assert Attendance.query.filter_by(activity_id=activity_id).count() == 0

    def test_delete_this_and_future(self, scheduler, weekly_series):
        instance = series_by_date(weekly_series.id)[date(2024, 1, 15)]
        result = scheduler.delete_activity(instance.id, delete_recurring=True)

        remaining = series_by_date(weekly_series.id)
        assert set(remaining) == {date(2024, 1, 1), date(2024, 1, 8)}
        assert len(result['deleted_activity_ids']) == 2
        # Head's end moves back so the repair cannot regrow deleted dates
        assert remaining[date(2024, 1, 1)].recurrence_end == date(2024, 1, 14)

    def test_delete_this_and_future_removes_attendance(self, scheduler, ledger, sample_member, weekly_series):
        series = series_by_date(weekly_series.id)
        for activity in series.values():
            ledger.mark_attendance(activity.id, sample_member.id, 'present')
        doomed_ids = [series[date(2024, 1, 15)].id, series[date(2024, 1, 22)].id]

        result = scheduler.delete_activity(doomed_ids[0], delete_recurring=True)

        assert result['deleted_attendance'] == 2
        assert Attendance.query.filter(Attendance.activity_id.in_(doomed_ids)).count() == 0
        assert Attendance.query.count() == 2

    def test_delete_future_that_includes_moved_head(self, db, scheduler, weekly_series):
        """A head moved past the deleted date goes too; the earliest survivor takes over."""
        head_id = weekly_series.id
        scheduler.update_activity(head_id, {'date': '2024-01-20'})
        series = series_by_date(head_id)
        first_instance_id = series[date(2024, 1, 8)].id

        result = scheduler.delete_activity(series[date(2024, 1, 15)].id, delete_recurring=True)

        assert head_id in result['deleted_activity_ids']
        assert len(result['deleted_activity_ids']) == 3
        assert result['promoted_activity_id'] == first_instance_id

        promoted = db.session.get(Activity, first_instance_id)
        assert promoted.type == 'recurring'
        assert promoted.recurrence_rule == 'weekly'
        assert promoted.recurrence_end == date(2024, 1, 14)
        assert promoted.parent_activity_id is None
        assert Activity.query.count() == 1

    def test_delete_one_instance(self, scheduler, weekly_series):
        instance = series_by_date(weekly_series.id)[date(2024, 1, 8)]
        scheduler.delete_activity(instance.id)
        assert set(series_by_date(weekly_series.id)) == {
            date(2024, 1, 1), date(2024, 1, 15), date(2024, 1, 22)
        }

    def test_delete_head_promotes_earliest_instance(self, scheduler, weekly_series):
        head_id = weekly_series.id
        result = scheduler.delete_activity(head_id)

        new_head = Activity.query.filter_by(date=date(2024, 1, 8)).one()
        assert result['promoted_activity_id'] == new_head.id
        assert new_head.type == 'recurring'
        assert new_head.recurrence_rule == 'weekly'
        assert new_head.recurrence_end == date(2024, 1, 22)
        assert new_head.parent_activity_id is None

        others = Activity.query.filter(Activity.id != new_head.id).all()
        assert len(others) == 2
        assert all(a.parent_activity_id == new_head.id for a in others)
        assert db_has_no_reference_to(head_id)

    def test_instances_never_recurse(self, scheduler, weekly_series):
        scheduler.delete_activity(weekly_series.id)
        for activity in Activity.query.filter(Activity.parent_activity_id.isnot(None)).all():
            assert activity.type == 'single'
            assert activity.recurrence_rule is None

    def test_delete_missing(self, scheduler):
        with pytest.raises(ActivityNotFoundError):
            scheduler.delete_activity(999)


def db_has_no_reference_to(activity_id):
    return Activity.query.filter_by(parent_activity_id=activity_id).count() == 0


class TestFixRecurring:
    """Tests for the recurring repair."""

    def _legacy_head(self, db):
        head = Activity(
            name='Legacy', date=date(2024, 2, 5), start_time='10:00', end_time='11:00',
            type='recurring', recurrence_rule='weekly', recurrence_end=date(2024, 2, 26),
            target_group_ids=[], target_member_ids=[], created_by='import',
        )
        db.session.add(head)
        db.session.commit()
        return head

    def test_repair_expands_heads_without_instances(self, db, scheduler):
        head = self._legacy_head(db)

        result = scheduler.fix_recurring_activities()

        assert result == {'fixed': 1, 'instances_created': 3}
        assert [a.date for a in scheduler.get_instances(head.id)] == [
            date(2024, 2, 12), date(2024, 2, 19), date(2024, 2, 26)
        ]

    def test_repair_is_idempotent(self, db, scheduler, weekly_series):
        self._legacy_head(db)
        scheduler.fix_recurring_activities()
        count = Activity.query.count()

        assert scheduler.fix_recurring_activities() == {'fixed': 0, 'instances_created': 0}
        assert Activity.query.count() == count

    def test_repair_skips_heads_without_rule(self, db, scheduler):
        db.session.add(Activity(
            name='Broken', date=date(2024, 2, 5), start_time='10:00', end_time='11:00',
            type='recurring', recurrence_rule=None, recurrence_end=None,
        ))
        db.session.commit()
        assert scheduler.fix_recurring_activities() == {'fixed': 0, 'instances_created': 0}

    def test_expanding_single_activity_is_invalid(self, scheduler, sample_activity):
        with pytest.raises(InvalidStateError):
            scheduler._expand_instances(sample_activity)


class TestActivityLookups:

    def test_list_in_range(self, scheduler, weekly_series, sample_activity):
        activities = scheduler.list_activities(start_date=date(2024, 1, 8), end_date=date(2024, 1, 15))
        assert [a.date for a in activities] == [date(2024, 1, 8), date(2024, 1, 15)]

    def test_list_by_group(self, scheduler, sample_group):
        scheduler.create_activity(
            name='Juniors only', date='2024-05-01', start_time='10:00', end_time='11:00',
            target_group_ids=[sample_group.id],
        )
        scheduler.create_activity(name='Everyone', date='2024-05-02', start_time='10:00', end_time='11:00')

        names = [a.name for a in scheduler.list_activities(group_id=sample_group.id)]
        assert names == ['Juniors only']

    def test_activity_with_attendance(self, directory, scheduler, ledger, sample_group, sample_member, other_member):
        directory.add_member_to_group(sample_group.id, sample_member.id)
        directory.add_member_to_group(sample_group.id, other_member.id)
        activity = scheduler.create_activity(
            name='Match', date='2024-05-04', start_time='14:00', end_time='16:00',
            target_group_ids=[sample_group.id],
        )
        ledger.mark_attendance(activity.id, sample_member.id, 'present')

        data = scheduler.get_activity_with_attendance(activity.id)

        assert data['attendance_count'] == {'present': 1, 'absent': 0, 'total': 2}
        by_id = {m['id']: m for m in data['members']}
        assert by_id[sample_member.id]['attendance']['status'] == 'present'
        assert by_id[other_member.id]['attendance'] is None

    def test_series_overview(self, scheduler, weekly_series):
        overview = scheduler.series_overview()
        assert overview == [{
            'id': weekly_series.id,
            'name': 'Rehearsal',
            'recurrence_rule': 'weekly',
            'first_date': '2024-01-01',
            'last_date': '2024-01-22',
            'recurrence_end': '2024-01-22',
            'instances': 3,
        }]
