"""
Routes for scheduling meetings between members.

A meeting is proposed by the requester and starts out ``pending``. The
recipient confirms it; either participant may cancel it. Both
participants get a confirmation email when a meeting is created.
"""

from __future__ import annotations

import logging

from flask import Blueprint, request
from flask_jwt_extended import jwt_required
from marshmallow import ValidationError as SchemaError
from sqlalchemy import or_

from .. import db
from ..errors import ForbiddenError, NotFoundError, ValidationError
from ..models import AvailabilityPost, Meeting, MeetingStatus, Profile
from ..schemas import MeetingCreateSchema, MeetingSchema, MeetingStatusSchema
from ..services.notifications import dispatch, send_meeting_scheduled
from ..util.auth import current_profile, record_activity
from ..util.ratelimit import rate_limited
from ..util.sanitization import clean_optional, strip_tags
from ..util.timeutils import to_naive_utc

logger = logging.getLogger(__name__)

meetings_bp = Blueprint("meetings", __name__)

CANCELLABLE = (MeetingStatus.PENDING, MeetingStatus.CONFIRMED)


@meetings_bp.route("/meetings", methods=["GET"])
@jwt_required()
def list_meetings() -> tuple[dict, int]:
    """List the caller's meetings, earliest first."""
    profile = current_profile()
    meetings = (
        Meeting.query.filter(
            or_(Meeting.requester_id == profile.id, Meeting.recipient_id == profile.id)
        )
        .order_by(Meeting.start_datetime.asc())
        .all()
    )
    return {"meetings": MeetingSchema(many=True).dump(meetings)}, 200


@meetings_bp.route("/meetings", methods=["POST"])
@jwt_required()
@rate_limited("meetings:create", "MEETING_RATE_LIMIT", "MEETING_RATE_WINDOW")
def create_meeting() -> tuple[dict, int]:
    """Propose a meeting to another member.

    Requires ``recipient_id``, ``title``, ``meeting_place``,
    ``start_datetime`` and ``end_datetime`` (ISO 8601, start before end).
    Optionally accepts ``description`` and ``availability_id``.
    """
    profile = current_profile()
    try:
        data = MeetingCreateSchema().load(request.get_json(silent=True) or {})
    except SchemaError as err:
        raise ValidationError("Invalid meeting details.", err.messages)

    if data["recipient_id"] == profile.id:
        raise ValidationError("You cannot schedule a meeting with yourself.", {"recipient_id": ["Must be another member."]})
    if db.session.get(Profile, data["recipient_id"]) is None:
        raise NotFoundError("Recipient not found.")
    if data["availability_id"] is not None and db.session.get(AvailabilityPost, data["availability_id"]) is None:
        raise NotFoundError("Availability post not found.")

    meeting = Meeting(
        requester_id=profile.id,
        recipient_id=data["recipient_id"],
        availability_id=data["availability_id"],
        title=strip_tags(data["title"]),
        description=clean_optional(data["description"]),
        meeting_place=strip_tags(data["meeting_place"]),
        start_datetime=to_naive_utc(data["start_datetime"]),
        end_datetime=to_naive_utc(data["end_datetime"]),
        status=MeetingStatus.PENDING,
    )
    db.session.add(meeting)
    record_activity(profile.id)
    db.session.commit()
    logger.info("Meeting %s created by %s for %s", meeting.id, profile.id, meeting.recipient_id)

    for participant_id in (meeting.requester_id, meeting.recipient_id):
        dispatch(send_meeting_scheduled, meeting.id, participant_id)
    return {"meeting": MeetingSchema().dump(meeting)}, 201


@meetings_bp.route("/meetings/<int:meeting_id>", methods=["PATCH"])
@jwt_required()
def update_meeting_status(meeting_id: int) -> tuple[dict, int]:
    """Confirm or cancel a meeting.

    Only the recipient may confirm a pending meeting. Either participant
    may cancel a pending or confirmed meeting.
    """
    profile = current_profile()
    meeting = db.session.get(Meeting, meeting_id)
    if meeting is None or not meeting.involves(profile.id):
        raise NotFoundError("Meeting not found.")
    try:
        data = MeetingStatusSchema().load(request.get_json(silent=True) or {})
    except SchemaError as err:
        raise ValidationError("Invalid meeting status.", err.messages)

    status = data["status"]
    if status is MeetingStatus.CONFIRMED:
        if meeting.recipient_id != profile.id:
            raise ForbiddenError("Only the recipient can confirm a meeting.")
        if meeting.status is not MeetingStatus.PENDING:
            raise ValidationError("Only pending meetings can be confirmed.", {"status": ["Meeting is not pending."]})
    elif meeting.status not in CANCELLABLE:
        raise ValidationError("This meeting can no longer be cancelled.", {"status": ["Meeting is closed."]})

    meeting.status = status
    record_activity(profile.id)
    db.session.commit()
    return {"meeting": MeetingSchema().dump(meeting)}, 200
