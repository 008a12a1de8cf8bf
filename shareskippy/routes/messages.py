"""
Routes for direct messages between members.

Sending a message notifies the recipient by email in the background.
"""

from __future__ import annotations

from flask import Blueprint, request
from flask_jwt_extended import jwt_required
from marshmallow import ValidationError as SchemaError

from .. import db
from ..errors import NotFoundError, ValidationError
from ..models import Message, Profile
from ..schemas import MessageCreateSchema, MessageSchema
from ..services.notifications import dispatch, send_new_message
from ..util.auth import current_profile, record_activity
from ..util.sanitization import strip_tags

messages_bp = Blueprint("messages", __name__)


@messages_bp.route("/messages", methods=["POST"])
@jwt_required()
def send_message() -> tuple[dict, int]:
    """Send a message to another member. Requires ``recipient_id`` and ``content``."""
    sender = current_profile()
    try:
        data = MessageCreateSchema().load(request.get_json(silent=True) or {})
    except SchemaError as err:
        raise ValidationError("Invalid message.", err.messages)

    content = strip_tags(data["content"])
    if not content:
        raise ValidationError("Message cannot be empty.", {"content": ["Message cannot be empty."]})
    if data["recipient_id"] == sender.id:
        raise ValidationError("You cannot message yourself.", {"recipient_id": ["Must be another member."]})
    if db.session.get(Profile, data["recipient_id"]) is None:
        raise NotFoundError("Recipient not found.")

    message = Message(sender_id=sender.id, recipient_id=data["recipient_id"], content=content)
    db.session.add(message)
    record_activity(sender.id)
    db.session.commit()

    dispatch(send_new_message, message.recipient_id, sender.id, content, message.id, message.created_at)
    return MessageSchema().dump(message), 201
