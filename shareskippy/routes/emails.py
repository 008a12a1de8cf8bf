"""
Internal routes that send a single transactional email on demand.

These are meant for other services and operators, so they share the
cron bearer token rather than member JWTs. Unlike the background
notifications, failures here are reported to the caller.
"""

from __future__ import annotations

from flask import Blueprint, request

from ..errors import ValidationError
from ..services import email_campaigns, notifications
from ..util.auth import cron_token_required

emails_bp = Blueprint("emails", __name__)

_DISABLED_RESPONSE = {"success": True, "message": "Email notifications disabled for user"}


def _require(data: dict, *keys: str) -> None:
    missing = [key for key in keys if not data.get(key)]
    if missing:
        raise ValidationError(
            f"Missing fields: {', '.join(missing)}",
            {key: ["Missing data for required field."] for key in missing},
        )


def _respond(status: str, sent_message: str) -> tuple[dict, int]:
    if status == notifications.DISABLED:
        return dict(_DISABLED_RESPONSE), 200
    return {"success": True, "message": sent_message}, 200


@emails_bp.route("/emails/welcome", methods=["POST"])
@cron_token_required
def welcome_email() -> tuple[dict, int]:
    """Send the welcome email. Requires ``userId``."""
    data = request.get_json(silent=True) or {}
    _require(data, "userId")
    status = notifications.send_welcome(data["userId"])
    return _respond(status, "Welcome email sent successfully")


@emails_bp.route("/emails/new-message", methods=["POST"])
@cron_token_required
def new_message_email() -> tuple[dict, int]:
    """Notify ``recipientId`` of a message from ``senderId``."""
    data = request.get_json(silent=True) or {}
    _require(data, "recipientId", "senderId", "messagePreview")
    status = notifications.send_new_message(
        data["recipientId"], data["senderId"], data["messagePreview"], data.get("messageId")
    )
    return _respond(status, "New message notification sent successfully")


@emails_bp.route("/emails/meeting-scheduled", methods=["POST"])
@cron_token_required
def meeting_scheduled_email() -> tuple[dict, int]:
    """Send a meeting confirmation. Requires ``meetingId`` and ``userId``."""
    data = request.get_json(silent=True) or {}
    _require(data, "meetingId", "userId")
    status = notifications.send_meeting_scheduled(data["meetingId"], data["userId"])
    return _respond(status, "Meeting scheduled confirmation sent successfully")


@emails_bp.route("/emails/follow-up", methods=["POST"])
@cron_token_required
def follow_up_email() -> tuple[dict, int]:
    """Send the one-week follow-up. Requires ``userId``."""
    data = request.get_json(silent=True) or {}
    _require(data, "userId")
    status = email_campaigns.send_follow_up(data["userId"])
    return _respond(status, "Follow-up email sent successfully")
