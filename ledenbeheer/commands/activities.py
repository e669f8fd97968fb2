"""
CLI Commands for recurring activity maintenance.

The repair can be run manually or from cron:

# Repair recurring series (run nightly at 2 AM)
0 2 * * * cd /app && flask activities fix-recurring
"""

import click
from flask.cli import with_appcontext

from ..services.activity_service import ActivityService


@click.group('activities')
def activities_cli():
    """Recurring activity commands."""
    pass


@activities_cli.command('fix-recurring')
@click.option('--actor', default='cli', show_default=True, help='Actor recorded on created instances')
@with_appcontext
def fix_recurring(actor):
    """
    Generate occurrences for recurring series that have none.

    Safe to run repeatedly: a series that already has instances is left alone.
    """
    result = ActivityService(actor=actor).fix_recurring_activities()

    click.echo(f"Series repaired: {result['fixed']}")
    click.echo(f"Instances created: {result['instances_created']}")


@activities_cli.command('stats')
@with_appcontext
def series_stats():
    """Show every recurring series with its instance count."""
    overview = ActivityService().series_overview()

    if not overview:
        click.echo("No recurring series")
        return

    click.echo(f"\nRecurring series: {len(overview)}")
    for series in overview:
        click.echo(
            f"  [{series['id']}] {series['name']} ({series['recurrence_rule']}): "
            f"{series['first_date']} .. {series['last_date']}, "
            f"{series['instances']} instances, ends {series['recurrence_end']}"
        )


def init_app(app):
    """Register CLI commands with the Flask app."""
    app.cli.add_command(activities_cli)
