from flask import Flask, jsonify
from flask_cors import CORS

from panelflow.logging_config import configure_logging, get_logger
from panelflow.models import db

logger = get_logger(__name__)


def create_app(config_class=None):
    # Import config after dotenv is loaded
    from panelflow.config import get_config
    from panelflow.db_config import configure_database
    from panelflow.api import api_bp
    from panelflow.workflow_lock import project_lock_manager

    # Get the appropriate config class based on environment
    if config_class is None:
        config_class = get_config()

    app = Flask(__name__)
    app.config.from_object(config_class)

    configure_logging(log_level=app.config.get("LOG_LEVEL", "INFO"), log_file=app.config.get("LOG_FILE"))

    # Configure database separately
    configure_database(app)

    logger.info(f"Starting application in {config_class.ENV} environment")
    logger.info(f"Database URI: {app.config.get('SQLALCHEMY_DATABASE_URI', 'Not set')[:50]}...")

    # Get allowed origins from environment variable
    allowed_origins = app.config.get("CORS_ORIGINS", "*")
    if allowed_origins != "*":
        # Parse comma-separated list if provided
        allowed_origins = [origin.strip() for origin in allowed_origins.split(",")]

    CORS(app,
         resources={r"/*": {"origins": allowed_origins}},
         supports_credentials=True,
         allow_headers=["Content-Type", "Authorization", "X-Actor-Id"],
         methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"])

    db.init_app(app)

    with app.app_context():
        # Only create tables if they don't exist
        db.create_all()

    project_lock_manager.timeout_seconds = app.config.get("REINITIALIZE_LOCK_TIMEOUT", 30)

    app.register_blueprint(api_bp, url_prefix="/api")

    @app.errorhandler(Exception)
    def handle_exception(e):
        """Handle all exceptions and return a JSON error body"""
        if hasattr(e, 'code') and isinstance(e.code, int):
            status_code = e.code
        elif hasattr(e, 'status_code'):
            status_code = e.status_code
        else:
            status_code = 500

        if status_code >= 500:
            logger.error("Unhandled exception", error=str(e), exc_info=True)

        response = jsonify({
            "error": str(e),
            "message": "An error occurred processing your request"
        })
        response.status_code = status_code
        return response

    return app
