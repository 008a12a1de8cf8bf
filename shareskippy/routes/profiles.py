"""
Routes for viewing and editing member profiles.

Members edit their own profile through ``/profiles/me``. Viewing another
member's profile counts as a profile view for the weekly follow-up
stats.
"""

from __future__ import annotations

from flask import Blueprint, request
from flask_jwt_extended import jwt_required
from marshmallow import ValidationError as SchemaError

from .. import db
from ..errors import NotFoundError, ValidationError
from ..models import Profile, ProfileView, UserSettings
from ..schemas import ProfileSchema, ProfileUpdateSchema, PublicProfileSchema
from ..util.auth import current_profile, record_activity
from ..util.sanitization import clean_optional, strip_tags
from ..util.timeutils import utcnow

profiles_bp = Blueprint("profiles", __name__)

FREE_TEXT_FIELDS = ("first_name", "last_name", "city", "neighborhood", "bio", "phone_number")


@profiles_bp.route("/profiles/me", methods=["GET"])
@jwt_required()
def get_own_profile() -> tuple[dict, int]:
    """Return the caller's full profile."""
    return ProfileSchema().dump(current_profile()), 200


@profiles_bp.route("/profiles/me", methods=["PUT"])
@jwt_required()
def update_own_profile() -> tuple[dict, int]:
    """Update the caller's profile.

    Accepts any subset of the editable fields. Free-text values are
    stripped of markup; ``email_notifications`` toggles notification
    emails.
    """
    profile = current_profile()
    try:
        data = ProfileUpdateSchema().load(request.get_json(silent=True) or {})
    except SchemaError as err:
        raise ValidationError("Invalid profile details.", err.messages)

    if "email_notifications" in data:
        if profile.settings is None:
            profile.settings = UserSettings()
        profile.settings.email_notifications = data.pop("email_notifications")

    for field, value in data.items():
        if field in ("first_name", "last_name"):
            value = strip_tags(value)
        elif field in FREE_TEXT_FIELDS:
            value = clean_optional(value)
        setattr(profile, field, value)
    profile.updated_at = utcnow()
    record_activity(profile.id)
    db.session.commit()
    return ProfileSchema().dump(profile), 200


@profiles_bp.route("/profiles/<string:profile_id>", methods=["GET"])
@jwt_required()
def view_profile(profile_id: str) -> tuple[dict, int]:
    """Return another member's public profile and count the view."""
    viewer = current_profile()
    profile = db.session.get(Profile, profile_id)
    if profile is None:
        raise NotFoundError("Profile not found.")
    if profile.id != viewer.id:
        db.session.add(ProfileView(viewed_profile_id=profile.id, viewer_id=viewer.id))
    record_activity(viewer.id)
    db.session.commit()
    return PublicProfileSchema().dump(profile), 200
