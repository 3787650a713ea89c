# backend/efectivio/__init__.py
import logging

from flask import Flask, request

from .config import Config
from .extensions import db, migrate



def create_app(test_config: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if test_config:
        app.config.update(test_config)

    app.logger.setLevel(getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # External capabilities, chosen once from config
    from .services.identity import init_identity
    from .services.object_storage import init_object_storage
    from .services.email_service import init_email

    init_identity(app)
    init_object_storage(app)
    init_email(app)

    # Register blueprints
    from .routes.system import system_bp
    from .routes.auth import auth_bp
    from .routes.users import users_bp
    from .routes.profile import profile_bp
    from .routes.audit import audit_bp
    from .routes.clients import clients_bp
    from .routes.quotes import quotes_bp
    from .routes.invoices import invoices_bp
    from .routes.expenses import expenses_bp
    from .routes.accounting import accounts_bp, journal_bp, reports_bp
    from .routes.files import files_bp
    from .routes.portal import portal_bp
    from .routes.settings import settings_bp, white_label_bp
    from .routes.webhooks import webhooks_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(users_bp)
    app.register_blueprint(profile_bp)
    app.register_blueprint(audit_bp)
    app.register_blueprint(clients_bp)
    app.register_blueprint(quotes_bp)
    app.register_blueprint(invoices_bp)
    app.register_blueprint(expenses_bp)
    app.register_blueprint(accounts_bp)
    app.register_blueprint(journal_bp)
    app.register_blueprint(reports_bp)
    app.register_blueprint(files_bp)
    app.register_blueprint(portal_bp)
    app.register_blueprint(settings_bp)
    app.register_blueprint(white_label_bp)
    app.register_blueprint(webhooks_bp)

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        if origin in app.config.get("CORS_ALLOWED_ORIGINS", set()):
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,PATCH,OPTIONS"
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
