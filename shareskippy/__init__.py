"""
Application factory for the ShareSkippy API.

This module provides a function to create and configure the Flask
application. All extensions (SQLAlchemy, Migrate, JWT) and the
application services (mailer, notification dispatcher, rate limiter)
are initialised here. Individual blueprints for different parts of the
API are registered inside the factory to allow for modular development
and unit testing.

Environment variables control the database connection, secrets and
email delivery. In production set at least ``DATABASE_URL``,
``JWT_SECRET_KEY``, ``CRON_SECRET_TOKEN`` and the ``SMTP_*`` settings.
A default configuration is provided for development, using SQLite when
no database URL is available.
"""

from __future__ import annotations

import logging
import os
from datetime import timedelta

from flask import Flask
from flask_migrate import Migrate
from flask_jwt_extended import JWTManager

# instantiate extensions without binding them to an app yet.  They will
# be bound in create_app().  This pattern avoids issues with circular
# imports and makes testing easier.
from .db import db  # use shared db object from db.py
migrate = Migrate()
jwt = JWTManager()

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _default_config() -> dict:
    return dict(
        SQLALCHEMY_DATABASE_URI=os.environ.get("DATABASE_URL", "sqlite:///shareskippy.db"),
        SQLALCHEMY_TRACK_MODIFICATIONS=False,
        JWT_SECRET_KEY=os.environ.get("JWT_SECRET_KEY", "please-change-this-secret-key"),
        JWT_ACCESS_TOKEN_EXPIRES=timedelta(days=1),
        APP_URL=os.environ.get("APP_URL", "https://shareskippy.com"),
        CRON_SECRET_TOKEN=os.environ.get("CRON_SECRET_TOKEN", ""),
        SMTP_HOST=os.environ.get("SMTP_HOST", ""),
        SMTP_PORT=int(os.environ.get("SMTP_PORT", "587")),
        SMTP_USERNAME=os.environ.get("SMTP_USERNAME", ""),
        SMTP_PASSWORD=os.environ.get("SMTP_PASSWORD", ""),
        SMTP_USE_TLS=_env_flag("SMTP_USE_TLS", True),
        SMTP_USE_SSL=_env_flag("SMTP_USE_SSL", False),
        MAIL_FROM=os.environ.get("MAIL_FROM", "ShareSkippy <noreply@send.shareskippy.com>"),
        NOTIFICATIONS_SYNC=_env_flag("NOTIFICATIONS_SYNC", False),
        NOTIFICATION_WORKERS=int(os.environ.get("NOTIFICATION_WORKERS", "4")),
        ACCOUNT_DELETION_GRACE_DAYS=int(os.environ.get("ACCOUNT_DELETION_GRACE_DAYS", "30")),
        MEETING_RATE_LIMIT=int(os.environ.get("MEETING_RATE_LIMIT", "10")),
        MEETING_RATE_WINDOW=int(os.environ.get("MEETING_RATE_WINDOW", "60")),
        LOG_LEVEL=os.environ.get("LOG_LEVEL", "INFO"),
    )


def create_app(test_config: dict | None = None) -> Flask:
    """Create and configure a Flask application.

    Parameters
    ----------
    test_config: dict | None, optional
        Optional configuration overrides used when running tests.

    Returns
    -------
    Flask
        A configured Flask application instance.
    """
    app = Flask(__name__)

    # Default configuration. Override using environment variables or
    # by passing a ``test_config`` mapping.
    app.config.update(_default_config())

    if test_config:
        app.config.update(test_config)
    app.config.setdefault("MAIL_SUPPRESS_SEND", app.config.get("TESTING", False))

    logging.basicConfig(level=app.config["LOG_LEVEL"], format=LOG_FORMAT)

    # Initialise extensions with the app
    db.init_app(app)
    migrate.init_app(app, db)
    jwt.init_app(app)

    from .services.mailer import Mailer
    from .services.notifications import NotificationDispatcher
    from .util.ratelimit import RateLimiter

    Mailer(app)
    NotificationDispatcher(app)
    app.extensions["rate_limiter"] = RateLimiter()

    # Register custom error handlers
    from .errors import register_error_handlers
    register_error_handlers(app)

    # Register blueprints. Importing here avoids circular imports.
    from .routes.auth import auth_bp
    from .routes.profiles import profiles_bp
    from .routes.community import community_bp
    from .routes.meetings import meetings_bp
    from .routes.messages import messages_bp
    from .routes.account import account_bp
    from .routes.emails import emails_bp
    from .routes.cron import cron_bp

    app.register_blueprint(auth_bp, url_prefix="/api")
    app.register_blueprint(profiles_bp, url_prefix="/api")
    app.register_blueprint(community_bp, url_prefix="/api")
    app.register_blueprint(meetings_bp, url_prefix="/api")
    app.register_blueprint(messages_bp, url_prefix="/api")
    app.register_blueprint(account_bp, url_prefix="/api")
    app.register_blueprint(emails_bp, url_prefix="/api")
    app.register_blueprint(cron_bp, url_prefix="/api")

    # Provide a simple health check route
    @app.route("/api/health")
    def health_check() -> dict[str, str]:
        """Return a simple health check response.

        This endpoint can be used by deployment platforms to verify
        that the application has started correctly.
        """
        return {"status": "ok"}

    return app
