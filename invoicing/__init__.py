# invoicing/__init__.py
from __future__ import annotations

import click
from flask import Flask
from werkzeug.exceptions import HTTPException

from .settings import Config
from .extensions import db, migrate, login_manager, limiter


def create_app(config_object=None) -> Flask:
    app = Flask(__name__)
    app.config.from_object(config_object or Config)

    # ======================
    # Logging
    # ======================
    # app.logger is the "invoicing" logger; service module loggers propagate to it.
    app.logger.setLevel(str(app.config.get("LOG_LEVEL", "INFO")).upper())

    # ======================
    # Initialize Extensions
    # ======================
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    limiter.init_app(app)

    # ======================
    # Import Models (CRITICAL)
    # ======================
    from . import models  # noqa: F401

    # ======================
    # Outbound services
    # ======================
    from .services.dispatch import Dispatcher

    app.extensions["invoicing.dispatcher"] = Dispatcher.from_config(app.config)

    # ======================
    # Register Blueprints
    # ======================
    from .invoices import invoices_bp
    from .quotes import quotes_bp

    app.register_blueprint(invoices_bp)
    app.register_blueprint(quotes_bp)

    register_error_handlers(app)
    register_commands(app)

    return app


def register_error_handlers(app: Flask) -> None:
    from .errors import DomainError
    from .utils.responses import error

    @app.errorhandler(DomainError)
    def domain_error(e: DomainError):
        if e.status_code >= 500:
            app.logger.error("%s: %s", type(e).__name__, e.message)
        return error(e.message, e.status_code)

    # 401 / 403 / 404 / 405 / 429 ...
    @app.errorhandler(HTTPException)
    def http_error(e: HTTPException):
        if e.code == 429:
            return error("Too many requests. Please try again later.", 429)
        return error(e.description or e.name, e.code or 500)

    @app.errorhandler(Exception)
    def unhandled(e: Exception):
        db.session.rollback()
        app.logger.exception("Unhandled error")
        return error("Internal server error", 500)


def register_commands(app: Flask) -> None:
    from .services.sweeper import update_expired_quotes, update_late_invoices

    @app.cli.command("mark-late-invoices")
    def mark_late_invoices():
        """Mark overdue pending / sent invoices as late."""
        count = update_late_invoices()
        click.echo(f"{count} invoice(s) marked late")

    @app.cli.command("mark-expired-quotes")
    def mark_expired_quotes():
        """Mark draft / sent quotes past their validity date as expired."""
        count = update_expired_quotes()
        click.echo(f"{count} quote(s) marked expired")

