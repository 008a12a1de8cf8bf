"""Request authentication helpers shared by the blueprints."""
from __future__ import annotations

import hmac
import logging
from functools import wraps

from flask import current_app, request
from flask_jwt_extended import get_jwt_identity

from .. import db
from ..errors import ConfigurationError, UnauthorizedError
from ..models import Profile, UserActivity
from .timeutils import utcnow

logger = logging.getLogger(__name__)


def current_profile() -> Profile:
    """Return the profile behind the current JWT.

    Raises ``UnauthorizedError`` when the token outlived its profile.
    """
    profile = db.session.get(Profile, get_jwt_identity())
    if profile is None:
        raise UnauthorizedError("Account no longer exists.")
    return profile


def record_activity(profile_id: str) -> None:
    """Record an activity event; committed with the caller's transaction."""
    db.session.add(UserActivity(profile_id=profile_id, occurred_at=utcnow()))


def cron_token_required(view):
    """Require ``Authorization: Bearer <CRON_SECRET_TOKEN>``."""

    @wraps(view)
    def wrapper(*args, **kwargs):
        expected = current_app.config.get("CRON_SECRET_TOKEN")
        if not expected:
            logger.error("CRON_SECRET_TOKEN not configured")
            raise ConfigurationError("Cron token not configured.")
        supplied = request.headers.get("Authorization", "")
        if not hmac.compare_digest(supplied.encode(), f"Bearer {expected}".encode()):
            raise UnauthorizedError("Unauthorized")
        return view(*args, **kwargs)

    return wrapper
