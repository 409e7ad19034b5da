import os
import logging
from rich.logging import RichHandler
from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException
from asgiref.wsgi import WsgiToAsgi
import matplotlib
matplotlib.use("Agg")

from config import Config
from feedback_app.errors import FeedbackError
from feedback_app.models import init_db, Question
from routes.admin_routes import admin_bp
from routes.auth_routes import auth_bp
from routes.report_routes import report_bp
from routes.student_routes import student_bp

logger = logging.getLogger("feedback_portal")


def setup_logging(level="INFO"):
    """Configure rich logging on the root logger."""
    logging.basicConfig(
        level=level,
        format="%(message)s",
    )
    logging.root.setLevel(level)
    logging.root.handlers = [
        RichHandler(rich_tracebacks=True, show_path=True, tracebacks_show_locals=False,
                    log_time_format="[%b %d, %Y, %I:%M:%S %p]",
                    )
    ]


def register_error_handlers(app):
    @app.errorhandler(FeedbackError)
    def handle_feedback_error(error):
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        return jsonify({'error': error.description}), error.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(error):
        logger.exception(f"Unhandled error: {error}")
        return jsonify({'error': 'Internal server error'}), 500


def create_app(overrides=None):
    """Application factory.

    overrides: optional dict applied on top of ``Config`` (tests pass a
    temporary DATABASE_PATH here)
    """
    app = Flask(__name__)
    app.config.from_object(Config)
    if overrides:
        app.config.update(overrides)

    setup_logging(app.config['LOG_LEVEL'])

    app.register_blueprint(auth_bp)
    app.register_blueprint(student_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(report_bp)
    register_error_handlers(app)

    with app.app_context():
        init_db()
        if Question.count() == 0:
            Question.reset_defaults()

    logger.info(f"Feedback portal ready (database: {app.config['DATABASE_PATH']})")
    return app


def create_asgi_app():
    """ASGI entry point for uvicorn (``factory=True``)."""
    return WsgiToAsgi(create_app())


if __name__ == "__main__":
    import uvicorn
    host = os.environ.get('HOST', '0.0.0.0')
    port = int(os.environ.get('PORT', '8000'))
    logger.info(f"Starting server on {host}:{port}")
    uvicorn.run(create_asgi_app, factory=True, host=host, port=port, log_config=None)
