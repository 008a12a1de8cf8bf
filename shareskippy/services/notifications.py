"""Fire-and-forget email notifications.

Write paths such as registration, meeting creation and messaging notify
other members by email. Delivery must never fail or slow down the write
that triggered it, so notifications are handed to
:class:`NotificationDispatcher`, which runs them on a small thread pool
inside a fresh application context. A failing job is logged and
dropped: delivery is at most once and never retried.

The job functions below are also called directly by the internal email
routes, in which case their exceptions propagate to the caller.
"""
from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime
from typing import Callable, Optional

from flask import current_app

from .. import db
from ..errors import NotFoundError
from ..models import Meeting, Profile
from ..util.sanitization import excerpt
from ..util.timeutils import utcnow
from . import email_templates

logger = logging.getLogger(__name__)

SENT = "sent"
DISABLED = "disabled"
MESSAGE_PREVIEW_LENGTH = 100


class NotificationDispatcher:
    """Run notification jobs off the request path.

    With ``NOTIFICATIONS_SYNC`` set the job runs inline before
    :meth:`submit` returns; failures are still swallowed.
    """

    def __init__(self, app=None) -> None:
        self.app = None
        self.executor: Optional[ThreadPoolExecutor] = None
        if app is not None:
            self.init_app(app)

    def init_app(self, app) -> None:
        self.app = app
        self.sync = bool(app.config.get("NOTIFICATIONS_SYNC", False))
        if not self.sync:
            self.executor = ThreadPoolExecutor(
                max_workers=int(app.config.get("NOTIFICATION_WORKERS", 4)),
                thread_name_prefix="notifications",
            )
        app.extensions["notifications"] = self

    def _run(self, job: Callable, args: tuple, kwargs: dict) -> None:
        with self.app.app_context():
            try:
                result = job(*args, **kwargs)
                logger.info("Notification %s%s finished: %s", job.__name__, args, result)
            except Exception:
                logger.exception("Notification %s%s failed", job.__name__, args)
                db.session.rollback()

    def submit(self, job: Callable, *args, **kwargs) -> Optional[Future]:
        if self.sync or self.executor is None:
            self._run(job, args, kwargs)
            return None
        return self.executor.submit(self._run, job, args, kwargs)

    def shutdown(self, wait: bool = True) -> None:
        if self.executor is not None:
            self.executor.shutdown(wait=wait)


def dispatch(job: Callable, *args, **kwargs) -> Optional[Future]:
    """Queue ``job`` on the current application's dispatcher."""
    return current_app.extensions["notifications"].submit(job, *args, **kwargs)


def get_profile(profile_id: str, label: str = "User") -> Profile:
    profile = db.session.get(Profile, profile_id)
    if profile is None:
        raise NotFoundError(f"{label} not found.")
    return profile


def format_meeting_date(value: datetime) -> str:
    return value.strftime("%A, %B %d, %Y")


def format_meeting_time(value: datetime) -> str:
    return value.strftime("%I:%M %p UTC")


def meeting_details(meeting: Meeting, profile: Profile) -> dict:
    """Variables for the meeting templates, from ``profile``'s point of view."""
    other = meeting.other_party(profile.id)
    base_url = email_templates.app_url()
    return {
        "user_name": profile.first_name or "there",
        "user_dog_name": profile.first_dog_name or "your dog",
        "other_user_name": other.full_name,
        "other_user_dog_name": other.first_dog_name or "their dog",
        "meeting_date": format_meeting_date(meeting.start_datetime),
        "meeting_time": format_meeting_time(meeting.start_datetime),
        "meeting_location": meeting.meeting_place,
        "meeting_notes": meeting.description or "",
        "meeting_url": f"{base_url}/meetings/{meeting.id}",
        "message_url": f"{base_url}/messages",
    }


def send_welcome(profile_id: str) -> str:
    profile = get_profile(profile_id)
    email_templates.send_welcome_email(to=profile.email, user_name=profile.first_name or "there")
    return SENT


def send_meeting_scheduled(meeting_id: int, profile_id: str) -> str:
    """Confirm a newly scheduled meeting to one of its participants."""
    meeting = db.session.get(Meeting, meeting_id)
    if meeting is None or not meeting.involves(profile_id):
        raise NotFoundError("Meeting not found.")
    profile = get_profile(profile_id)
    if not profile.notifications_enabled:
        return DISABLED
    email_templates.send_meeting_scheduled_confirmation(to=profile.email, **meeting_details(meeting, profile))
    return SENT


def send_new_message(
    recipient_id: str,
    sender_id: str,
    message_preview: str,
    message_id: Optional[int] = None,
    sent_at: Optional[datetime] = None,
) -> str:
    recipient = get_profile(recipient_id, "Recipient")
    sender = get_profile(sender_id, "Sender")
    if not recipient.notifications_enabled:
        return DISABLED
    base_url = email_templates.app_url()
    message_url = f"{base_url}/messages/{message_id}" if message_id else f"{base_url}/messages"
    email_templates.send_new_message_notification(
        to=recipient.email,
        recipient_name=recipient.first_name or "there",
        sender_name=sender.full_name,
        sender_initial=(sender.first_name or "U")[0].upper(),
        message_preview=excerpt(message_preview, MESSAGE_PREVIEW_LENGTH),
        message_time=(sent_at or utcnow()).strftime("%b %d, %Y %I:%M %p UTC"),
        message_url=message_url,
    )
    return SENT
