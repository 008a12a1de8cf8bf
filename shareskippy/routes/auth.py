"""
Authentication routes for ShareSkippy.

Provides endpoints for registering new members and logging in to obtain
JSON Web Tokens (JWTs). These tokens are required for accessing
protected resources throughout the API.
"""

from __future__ import annotations

import logging

from flask import Blueprint, request
from flask_jwt_extended import create_access_token
from marshmallow import ValidationError as SchemaError

from .. import db
from ..errors import ConflictError, ForbiddenError, UnauthorizedError, ValidationError
from ..models import Profile, UserSettings
from ..schemas import ProfileSchema, RegisterSchema
from ..services.account_deletion import is_email_deleted, normalize_email
from ..services.notifications import dispatch, send_welcome
from ..util.auth import record_activity
from ..util.sanitization import strip_tags

logger = logging.getLogger(__name__)

auth_bp = Blueprint("auth", __name__)

COMMUNITY_PATH = "/community"
PROFILE_EDIT_PATH = "/profile/edit"


@auth_bp.route("/register", methods=["POST"])
def register() -> tuple[dict, int]:
    """Register a new member.

    Expects JSON with ``email``, ``password``, ``first_name`` and optional
    ``last_name``. Emails must be unique, and addresses of deleted
    accounts cannot be reused. A welcome email is queued on success.
    """
    try:
        data = RegisterSchema().load(request.get_json(silent=True) or {})
    except SchemaError as err:
        raise ValidationError("Invalid registration details.", err.messages)

    email = normalize_email(data["email"])
    if is_email_deleted(email):
        raise ForbiddenError("This email belongs to a deleted account and cannot be used again.")
    if Profile.query.filter_by(email=email).first():
        raise ConflictError("A user with that email already exists.")

    profile = Profile(
        email=email,
        first_name=strip_tags(data["first_name"]),
        last_name=strip_tags(data["last_name"]),
    )
    profile.set_password(data["password"])
    profile.settings = UserSettings()
    db.session.add(profile)
    db.session.commit()
    logger.info("Registered profile %s", profile.id)

    dispatch(send_welcome, profile.id)
    return ProfileSchema().dump(profile), 201


@auth_bp.route("/login", methods=["POST"])
def login() -> tuple[dict, int]:
    """Authenticate a member and return a JWT.

    Expects JSON with ``email`` and ``password``. Besides the token the
    response names the page to continue to: the community feed for a
    complete profile, otherwise the profile editor.
    """
    data = request.get_json(silent=True) or {}
    email = normalize_email(data.get("email") or "")
    password = data.get("password") or ""
    profile = Profile.query.filter_by(email=email).first()
    if not profile or not profile.check_password(password):
        raise UnauthorizedError("Invalid email or password.")

    record_activity(profile.id)
    db.session.commit()

    access_token = create_access_token(identity=profile.id)
    next_path = COMMUNITY_PATH if profile.is_complete else PROFILE_EDIT_PATH
    return {"access_token": access_token, "user": ProfileSchema().dump(profile), "next": next_path}, 200
