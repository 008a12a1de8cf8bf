"""
Serialization schemas using Marshmallow for ShareSkippy.

Model schemas convert SQLAlchemy objects into JSON-friendly
representations. Sensitive fields, such as password hashes and
email addresses of other members, are excluded. The plain ``Schema``
classes at the bottom validate request bodies for write endpoints.
"""

from __future__ import annotations

from datetime import timezone

from marshmallow import Schema, fields, validate, validates_schema, ValidationError, EXCLUDE
from marshmallow_sqlalchemy import SQLAlchemyAutoSchema

from .models import (
    AccountDeletionRequest,
    DeletionStatus,
    Meeting,
    MeetingStatus,
    Message,
    PostType,
    Profile,
    ProfileRole,
)


class ProfileSchema(SQLAlchemyAutoSchema):
    """Schema for serialising the caller's own ``Profile``."""

    role = fields.Enum(ProfileRole, by_value=True, allow_none=True)
    display_name = fields.String(dump_only=True)
    is_complete = fields.Boolean(dump_only=True)
    dogs = fields.Method("get_dogs", dump_only=True)

    class Meta:
        model = Profile
        # Exclude password_hash from the serialised output
        exclude = ("password_hash",)

    def get_dogs(self, obj: Profile) -> list[str]:
        return [dog.name for dog in obj.dogs]


class PublicProfileSchema(ProfileSchema):
    """Another member's profile; contact details are withheld."""

    class Meta(ProfileSchema.Meta):
        exclude = ("password_hash", "email", "phone_number", "last_name")


class ProfileSummarySchema(Schema):
    """One item of the community feed.

    Dumps the ``(profile, last_online_at, bio_excerpt)`` entries built by
    ``shareskippy.services.profile_feed``.
    """

    id = fields.String(attribute="profile.id")
    first_name = fields.String(attribute="profile.first_name")
    display_name = fields.String(attribute="profile.display_name")
    photo_url = fields.String(attribute="profile.profile_photo_url", allow_none=True)
    city = fields.String(attribute="profile.city", allow_none=True)
    neighborhood = fields.String(attribute="profile.neighborhood", allow_none=True)
    role = fields.Enum(ProfileRole, by_value=True, attribute="profile.role")
    display_lat = fields.Float(attribute="profile.display_lat", allow_none=True)
    display_lng = fields.Float(attribute="profile.display_lng", allow_none=True)
    bio_excerpt = fields.String()
    last_online_at = fields.DateTime()


class ParticipantSchema(Schema):
    id = fields.String()
    first_name = fields.String()
    last_name = fields.String()
    profile_photo_url = fields.String(allow_none=True)


class AvailabilitySummarySchema(Schema):
    id = fields.Integer()
    title = fields.String()
    post_type = fields.Enum(PostType, by_value=True)


class MeetingSchema(SQLAlchemyAutoSchema):
    """Schema for serialising ``Meeting`` objects."""

    status = fields.Enum(MeetingStatus, by_value=True)
    requester = fields.Nested(ParticipantSchema)
    recipient = fields.Nested(ParticipantSchema)
    availability = fields.Nested(AvailabilitySummarySchema, allow_none=True)

    class Meta:
        model = Meeting
        include_fk = True


class MessageSchema(SQLAlchemyAutoSchema):
    class Meta:
        model = Message
        include_fk = True


class DeletionRequestSchema(SQLAlchemyAutoSchema):
    status = fields.Enum(DeletionStatus, by_value=True)

    class Meta:
        model = AccountDeletionRequest
        exclude = ("error",)


class RegisterSchema(Schema):
    """Validate a registration request."""

    class Meta:
        unknown = EXCLUDE

    email = fields.Email(required=True)
    password = fields.String(required=True, validate=validate.Length(min=8, max=128))
    first_name = fields.String(required=True, validate=validate.Length(min=1, max=50))
    last_name = fields.String(load_default="", validate=validate.Length(max=50))


class ProfileUpdateSchema(Schema):
    """Validate a partial profile update. Only supplied keys are applied."""

    class Meta:
        unknown = EXCLUDE

    first_name = fields.String(validate=validate.Length(min=1, max=50))
    last_name = fields.String(validate=validate.Length(max=50))
    phone_number = fields.String(allow_none=True, validate=validate.Length(max=32))
    profile_photo_url = fields.Url(allow_none=True)
    city = fields.String(allow_none=True, validate=validate.Length(max=100))
    neighborhood = fields.String(allow_none=True, validate=validate.Length(max=100))
    role = fields.Enum(ProfileRole, by_value=True, allow_none=True)
    bio = fields.String(allow_none=True, validate=validate.Length(max=2000))
    display_lat = fields.Float(allow_none=True, validate=validate.Range(min=-90, max=90))
    display_lng = fields.Float(allow_none=True, validate=validate.Range(min=-180, max=180))
    email_notifications = fields.Boolean()


class MeetingCreateSchema(Schema):
    """Validate a new meeting proposal."""

    class Meta:
        unknown = EXCLUDE

    recipient_id = fields.String(required=True, validate=validate.Length(min=1, max=32))
    availability_id = fields.Integer(allow_none=True, load_default=None)
    title = fields.String(required=True, validate=validate.Length(min=1, max=200))
    description = fields.String(allow_none=True, load_default=None, validate=validate.Length(max=2000))
    meeting_place = fields.String(required=True, validate=validate.Length(min=1, max=255))
    start_datetime = fields.AwareDateTime(required=True, default_timezone=timezone.utc)
    end_datetime = fields.AwareDateTime(required=True, default_timezone=timezone.utc)

    @validates_schema
    def validate_window(self, data, **kwargs):
        start = data.get("start_datetime")
        end = data.get("end_datetime")
        if start and end and start >= end:
            raise ValidationError("End time must be after start time.", "end_datetime")


class MeetingStatusSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    status = fields.Enum(
        MeetingStatus,
        by_value=True,
        required=True,
        validate=validate.OneOf([MeetingStatus.CONFIRMED, MeetingStatus.CANCELLED]),
    )


class MessageCreateSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    recipient_id = fields.String(required=True, validate=validate.Length(min=1, max=32))
    content = fields.String(required=True, validate=validate.Length(min=1, max=5000))


class DeletionCreateSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    reason = fields.String(allow_none=True, load_default=None, validate=validate.Length(max=500))
