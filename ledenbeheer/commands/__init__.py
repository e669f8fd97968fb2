"""
CLI Commands for Ledenbeheer.

Usage:
    flask activities fix-recurring     # Generate missing occurrences for recurring series
    flask activities stats             # Show recurring series and their instance counts
"""
from .activities import init_app as init_activity_commands


def init_app(app):
    """Register all CLI commands with the Flask app."""
    init_activity_commands(app)
