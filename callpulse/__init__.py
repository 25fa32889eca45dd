"""
Flask application factory.

Creates and configures the Flask app, registers all blueprints and the
error handlers that turn intake/store failures into JSON responses.
"""
import logging
from flask import Flask, jsonify

logger = logging.getLogger('callpulse')

# StoreError.kind → HTTP status
STORE_ERROR_STATUS = {
    'not_authenticated': 401,
    'not_found': 404,
    'constraint': 409,
    'network': 500,
}


def _register_error_handlers(app):
    from werkzeug.exceptions import RequestEntityTooLarge
    from callpulse.services.intake import IntakeError, FileTooLargeError, FILE_TOO_LARGE_MESSAGE
    from callpulse.services.store import StoreError

    @app.errorhandler(IntakeError)
    def handle_intake_error(e):
        return jsonify({'status': 'error', 'error': e.code, 'message': e.message}), e.status_code

    @app.errorhandler(RequestEntityTooLarge)
    def handle_body_too_large(e):
        # Body over MAX_CONTENT_LENGTH, raised while werkzeug parses the form
        return jsonify({
            'status': 'error',
            'error': FileTooLargeError.code,
            'message': FILE_TOO_LARGE_MESSAGE,
        }), 413

    @app.errorhandler(StoreError)
    def handle_store_error(e):
        status = STORE_ERROR_STATUS.get(e.kind, 500)
        if status == 500:
            # Details are in the log; callers get a generic message.
            message = 'Something went wrong. Please try again.'
        else:
            message = e.message
        return jsonify({'status': 'error', 'error': e.kind, 'message': message}), status


def create_app():
    """Create and configure the Flask application."""
    from callpulse.logging_config import configure_logging
    from callpulse.config import SECRET_KEY, MAX_UPLOAD_BYTES, CHANGE_LISTENER_ENABLED

    app = Flask(__name__)

    configure_logging(app)

    app.secret_key = SECRET_KEY
    # Leave headroom over the file limit so oversize uploads reach validation
    # and get the specific "exceeds 100MB" message.
    app.config['MAX_CONTENT_LENGTH'] = MAX_UPLOAD_BYTES + 10 * 1024 * 1024

    from callpulse.auth import load_user
    app.before_request(load_user)

    _register_error_handlers(app)

    # Register blueprints
    from callpulse.routes.dashboard import bp as dashboard_bp
    from callpulse.routes.leads import bp as leads_bp
    from callpulse.routes.recordings import bp as recordings_bp

    app.register_blueprint(dashboard_bp)
    app.register_blueprint(leads_bp)
    app.register_blueprint(recordings_bp)

    # Import models so Base.metadata knows about them (required for SQLAlchemy).
    # Schema is managed by Alembic — no create_all() call.
    import importlib
    importlib.import_module('callpulse.models.lead_group')
    importlib.import_module('callpulse.models.lead')
    importlib.import_module('callpulse.models.recording')
    importlib.import_module('callpulse.models.analysis')
    importlib.import_module('callpulse.models.metrics_aggregate')

    if CHANGE_LISTENER_ENABLED:
        from callpulse.extensions import redis_client
        from callpulse.services.changes import ChangeListener
        app.extensions['change_listener'] = ChangeListener(redis_client)
        app.extensions['change_listener'].start()
        logger.info("Change listener started")

    return app
