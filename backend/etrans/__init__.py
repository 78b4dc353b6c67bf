# backend/etrans/__init__.py
import logging

from flask import Flask, request

from .config import Config, validate_config
from .extensions import db, limiter, migrate
from .logging_config import configure_logging

logger = logging.getLogger(__name__)

LOCAL_ORIGINS = {
    "http://localhost:5173",
    "http://127.0.0.1:5173",
    "http://localhost:4173",
    "http://127.0.0.1:4173",
}


def create_app(overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if overrides:
        app.config.update(overrides)

    configure_logging(app)

    problems = validate_config(app.config)
    if problems:
        if app.config.get("IS_PRODUCTION"):
            raise RuntimeError("Invalid configuration: " + "; ".join(problems))
        for problem in problems:
            logger.warning(problem)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)
    limiter.init_app(app)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    from .errors import register_error_handlers
    register_error_handlers(app)

    # Optional collaborators; absent keys select the disabled variants
    from .services.assistant_service import build_assistant
    from .services.email_service import build_mailer

    app.extensions["mailer"] = build_mailer(app.config)
    app.extensions["assistant"] = build_assistant(app.config)
    if not app.extensions["mailer"].available:
        logger.warning("RESEND_API_KEY not set, verification emails are disabled")
    if app.extensions["assistant"] is None:
        logger.warning("GEMINI_API_KEY not set, the assistant is disabled")

    # Register blueprints
    from .routes.system import system_bp
    from .routes.auth import auth_bp
    from .routes.shipments import shipments_bp
    from .routes.finance import finance_bp
    from .routes.ai import ai_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(shipments_bp)
    app.register_blueprint(finance_bp)
    app.register_blueprint(ai_bp)

    allowed_origins = LOCAL_ORIGINS | {app.config["FRONTEND_URL"]}

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        if origin in allowed_origins:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Access-Control-Allow-Credentials"] = "true"
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,PATCH,OPTIONS"
        return response

    @app.after_request
    def log_request(response):
        logger.debug(
            "%s %s %s", request.method, request.path, response.status_code,
            extra={"remote_addr": request.remote_addr},
        )
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
