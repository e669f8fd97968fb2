"""
Ledenbeheer membership administration
Flask application factory
"""
import os
import logging
from flask import Flask
from flask_cors import CORS
from sqlalchemy.orm.exc import StaleDataError

from .extensions import db, migrate
from .config import get_config, validate_config
from .utils.logging_config import setup_logging
from .utils.errors import ErrorCode, error_response, bad_request, not_found, conflict, internal_error
from .utils.exceptions import LedenbeheerError

logger = logging.getLogger(__name__)


def create_app(config_name: str = None) -> Flask:
    """
    Application factory for creating Flask app instances.

    Args:
        config_name: Configuration environment (development, production, testing)

    Returns:
        Configured Flask application
    """
    if config_name is None:
        config_name = os.getenv('FLASK_ENV', 'development')

    # Setup logging before anything else
    setup_logging()
    validate_config(config_name)

    app = Flask(__name__)
    app.config.from_object(get_config(config_name))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    CORS(
        app,
        origins=app.config['CORS_ORIGINS'],
        supports_credentials=True,
        allow_headers=['Content-Type', 'Authorization', 'X-User-Id', 'X-User-Email'],
    )

    register_blueprints(app)

    # Register CLI commands
    from .commands import init_app as init_commands
    init_commands(app)

    register_error_handlers(app)

    @app.route('/health')
    def health_check():
        return {'status': 'healthy', 'service': 'ledenbeheer'}

    logger.info(f'Ledenbeheer app created ({config_name})')
    return app


def register_blueprints(app: Flask) -> None:
    """Register all API blueprints."""
    from .api.members import members_bp
    from .api.groups import groups_bp
    from .api.activities import activities_bp
    from .api.attendance import attendance_bp
    from .api.reports import reports_bp
    from .api.audit import audit_bp

    app.register_blueprint(members_bp, url_prefix='/api/members')
    app.register_blueprint(groups_bp, url_prefix='/api/groups')
    app.register_blueprint(activities_bp, url_prefix='/api/activities')
    app.register_blueprint(attendance_bp, url_prefix='/api/attendance')
    app.register_blueprint(reports_bp, url_prefix='/api/reports')
    app.register_blueprint(audit_bp, url_prefix='/api/audit')


def register_error_handlers(app: Flask) -> None:
    """Register error handlers."""

    @app.errorhandler(LedenbeheerError)
    def handle_domain_error(error):
        return error_response(error.message, error.code, error.status_code)

    @app.errorhandler(StaleDataError)
    def handle_stale_data(error):
        db.session.rollback()
        return conflict('The record was changed by someone else, reload and retry')

    @app.errorhandler(400)
    def handle_bad_request(error):
        return bad_request(getattr(error, 'description', None) or 'Bad request')

    @app.errorhandler(404)
    def handle_not_found(error):
        return not_found('Not found')

    @app.errorhandler(405)
    def handle_method_not_allowed(error):
        return error_response('Method not allowed', ErrorCode.INVALID_REQUEST, 405, log_error=False)

    @app.errorhandler(500)
    def handle_internal_error(error):
        logger.exception('Unhandled error')
        db.session.rollback()
        return internal_error()
