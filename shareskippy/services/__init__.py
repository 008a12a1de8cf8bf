"""Service layer for ShareSkippy.

This package contains business logic that sits between the
Flask route handlers and the database models. Separating
services into their own modules keeps the routes thin and
makes the feed ranking, email campaigns and deletion sweep
easy to unit test.

Nothing in this package should perform any HTTP handling.
Instead, services return simple Python data structures or
database objects, and raise exceptions defined in
``shareskippy.errors`` when something goes wrong.
"""

from .profile_feed import GeoFilter, get_profile_page
from .account_deletion import process_deletions, request_deletion, cancel_deletion
from .email_campaigns import send_follow_up_emails, send_meeting_reminders
from .notifications import dispatch

__all__ = [
    "GeoFilter",
    "get_profile_page",
    "process_deletions",
    "request_deletion",
    "cancel_deletion",
    "send_follow_up_emails",
    "send_meeting_reminders",
    "dispatch",
]
