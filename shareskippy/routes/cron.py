"""
Routes triggered by the external scheduler.

Every route requires ``Authorization: Bearer <CRON_SECRET_TOKEN>``.
"""

from __future__ import annotations

from flask import Blueprint

from ..services import account_deletion, email_campaigns
from ..util.auth import cron_token_required

cron_bp = Blueprint("cron", __name__)


@cron_bp.route("/cron/process-deletions", methods=["POST"])
@cron_token_required
def process_deletions() -> tuple[dict, int]:
    """Delete every account whose deletion request is due."""
    return account_deletion.process_deletions(), 200


@cron_bp.route("/cron/process-deletions", methods=["GET"])
@cron_token_required
def deletion_status() -> tuple[dict, int]:
    """Report pending and due deletion requests, for monitoring."""
    return account_deletion.deletion_status(), 200


@cron_bp.route("/cron/send-email-reminders", methods=["GET"])
@cron_token_required
def send_email_reminders() -> tuple[dict, int]:
    """Remind participants of confirmed meetings happening tomorrow."""
    return email_campaigns.send_meeting_reminders(), 200


@cron_bp.route("/cron/send-follow-up-emails", methods=["GET"])
@cron_token_required
def send_follow_up_emails() -> tuple[dict, int]:
    """Send the one-week check-in to members who joined seven days ago."""
    return email_campaigns.send_follow_up_emails(), 200
