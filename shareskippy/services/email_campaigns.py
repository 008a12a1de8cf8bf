"""Scheduled email campaigns.

Two jobs are triggered by the cron routes once a day:

* meeting reminders for confirmed meetings starting tomorrow (UTC);
* a one-week follow-up with activity stats for members who signed up
  seven days ago.

Each item is processed independently. An email failure for one meeting
or member is logged, recorded in the returned ``errors`` list, and the
job moves on to the next item.
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import or_

from .. import db
from ..errors import EmailError
from ..models import Meeting, MeetingStatus, Message, Profile, ProfileView, UserSettings
from ..util.timeutils import day_window, utcnow
from . import email_templates
from .notifications import DISABLED, SENT, get_profile, meeting_details

logger = logging.getLogger(__name__)

STATS_WINDOW = timedelta(days=7)
FOLLOW_UP_AFTER_DAYS = 7


def weekly_stats(profile_id: str, now: Optional[datetime] = None) -> dict[str, int]:
    """Activity counts for ``profile_id`` over the last seven days."""
    since = (now or utcnow()) - STATS_WINDOW
    profile_views = ProfileView.query.filter(
        ProfileView.viewed_profile_id == profile_id, ProfileView.created_at >= since
    ).count()
    messages_received = Message.query.filter(
        Message.recipient_id == profile_id, Message.created_at >= since
    ).count()
    meetings_scheduled = Meeting.query.filter(
        or_(Meeting.requester_id == profile_id, Meeting.recipient_id == profile_id),
        Meeting.created_at >= since,
    ).count()
    conversations = (
        db.session.query(Message.sender_id, Message.recipient_id)
        .filter(
            or_(Message.sender_id == profile_id, Message.recipient_id == profile_id),
            Message.created_at >= since,
        )
        .all()
    )
    partners = {
        recipient_id if sender_id == profile_id else sender_id
        for sender_id, recipient_id in conversations
    }
    return {
        "profile_views": profile_views,
        "messages_received": messages_received,
        "meetings_scheduled": meetings_scheduled,
        "connections_made": len(partners),
    }


def send_follow_up(profile_id: str, now: Optional[datetime] = None) -> str:
    """Send the one-week follow-up to a single member."""
    profile = get_profile(profile_id)
    if not profile.notifications_enabled:
        return DISABLED
    email_templates.send_follow_up_email(
        to=profile.email,
        user_name=profile.first_name or "there",
        user_dog_name=profile.first_dog_name or "your dog",
        **weekly_stats(profile.id, now),
    )
    return SENT


def _mark_follow_up_sent(profile: Profile, when: datetime) -> None:
    if profile.settings is None:
        profile.settings = UserSettings(profile_id=profile.id)
    profile.settings.follow_up_email_sent = True
    profile.settings.follow_up_email_sent_at = when
    db.session.commit()


def send_follow_up_emails(now: Optional[datetime] = None) -> dict:
    """Follow up with every member who joined seven days ago."""
    now = now or utcnow()
    start, end = day_window(-FOLLOW_UP_AFTER_DAYS, now)
    profiles = (
        Profile.query.outerjoin(UserSettings)
        .filter(Profile.created_at >= start, Profile.created_at < end)
        .filter(or_(UserSettings.id.is_(None), UserSettings.follow_up_email_sent.is_(False)))
        .all()
    )

    emails_sent = 0
    errors = []
    for profile in profiles:
        try:
            if send_follow_up(profile.id, now) == SENT:
                emails_sent += 1
                _mark_follow_up_sent(profile, now)
        except EmailError as exc:
            logger.error("Follow-up email to profile %s failed: %s", profile.id, exc)
            errors.append({"userId": profile.id, "email": profile.email, "error": str(exc)})

    logger.info("Follow-up emails: %d sent to %d members", emails_sent, len(profiles))
    return {
        "success": True,
        "message": "Follow-up emails processed",
        "emailsSent": emails_sent,
        "usersProcessed": len(profiles),
        "errors": errors or None,
    }


def send_meeting_reminders(now: Optional[datetime] = None) -> dict:
    """Remind both participants of confirmed meetings starting tomorrow."""
    start, end = day_window(1, now)
    meetings = (
        Meeting.query.filter(
            Meeting.status == MeetingStatus.CONFIRMED,
            Meeting.reminder_sent.is_(False),
            Meeting.start_datetime >= start,
            Meeting.start_datetime < end,
        )
        .order_by(Meeting.start_datetime.asc())
        .all()
    )

    emails_sent = 0
    errors = []
    for meeting in meetings:
        try:
            for participant, flag in (
                (meeting.requester, "requester_reminded"),
                (meeting.recipient, "recipient_reminded"),
            ):
                if getattr(meeting, flag):
                    continue
                if participant.notifications_enabled:
                    email_templates.send_meeting_reminder(
                        to=participant.email, **meeting_details(meeting, participant)
                    )
                    emails_sent += 1
                setattr(meeting, flag, True)
                db.session.commit()
            meeting.reminder_sent = True
            db.session.commit()
        except EmailError as exc:
            logger.error("Reminder for meeting %s failed: %s", meeting.id, exc)
            errors.append({"meetingId": meeting.id, "error": str(exc)})

    logger.info("Meeting reminders: %d emails for %d meetings", emails_sent, len(meetings))
    return {
        "success": True,
        "message": "Meeting reminders processed",
        "emailsSent": emails_sent,
        "meetingsProcessed": len(meetings),
        "errors": errors or None,
    }
