"""Email template rendering and named senders.

Each transactional email has an HTML and a plain-text template under
``shareskippy/templates/emails``. :func:`render_email` fills both with a
flat variable mapping. Placeholders without a matching variable render
blank, and so do ``None`` values; callers are responsible for supplying
every variable a template uses.

The ``send_*`` helpers build the subject and variables for one kind of
email and hand the result to the configured
:class:`~shareskippy.services.mailer.Mailer`.
"""
from __future__ import annotations

import os
from typing import Any, Mapping

from flask import current_app
from jinja2 import Environment, FileSystemLoader, TemplateNotFound, select_autoescape

from ..errors import EmailError
from .mailer import get_mailer

TEMPLATES_DIR = os.path.join(os.path.dirname(os.path.dirname(__file__)), "templates", "emails")

jinja_env = Environment(
    loader=FileSystemLoader(TEMPLATES_DIR),
    autoescape=select_autoescape(enabled_extensions=("html",), default_for_string=False),
    finalize=lambda value: "" if value is None else value,
    keep_trailing_newline=True,
)

TEMPLATES = ("welcome", "new_message", "meeting_scheduled", "meeting_reminder", "follow_up")


def render_email(template_name: str, variables: Mapping[str, Any] | None = None) -> tuple[str, str]:
    """Render the HTML and text bodies of a named template."""
    variables = dict(variables or {})
    try:
        html = jinja_env.get_template(f"{template_name}.html").render(**variables)
        text = jinja_env.get_template(f"{template_name}.txt").render(**variables)
    except TemplateNotFound as exc:
        raise EmailError(f"Unknown email template: {template_name}") from exc
    return html, text


def app_url() -> str:
    return current_app.config["APP_URL"].rstrip("/")


def _send(template_name: str, to: str, subject: str, variables: Mapping[str, Any]) -> bool:
    html, text = render_email(template_name, {"app_url": app_url(), **variables})
    return get_mailer().send(to=to, subject=subject, html=html, text=text)


def send_welcome_email(*, to: str, user_name: str) -> bool:
    return _send(
        "welcome",
        to,
        f"Welcome to ShareSkippy, {user_name}! 🐕",
        {"user_name": user_name},
    )


def send_new_message_notification(
    *,
    to: str,
    recipient_name: str,
    sender_name: str,
    sender_initial: str,
    message_preview: str,
    message_time: str,
    message_url: str,
) -> bool:
    return _send(
        "new_message",
        to,
        f"New message from {sender_name} on ShareSkippy 💬",
        {
            "recipient_name": recipient_name,
            "sender_name": sender_name,
            "sender_initial": sender_initial,
            "message_preview": message_preview,
            "message_time": message_time,
            "message_url": message_url,
        },
    )


def _meeting_variables(**kwargs: Any) -> dict[str, Any]:
    keys = (
        "user_name",
        "user_dog_name",
        "other_user_name",
        "other_user_dog_name",
        "meeting_date",
        "meeting_time",
        "meeting_location",
        "meeting_notes",
        "meeting_url",
        "message_url",
    )
    return {key: kwargs.get(key) for key in keys}


def send_meeting_scheduled_confirmation(*, to: str, **details: Any) -> bool:
    variables = _meeting_variables(**details)
    return _send(
        "meeting_scheduled",
        to,
        f"Meeting Confirmed! Playdate with {variables['other_user_name']} 🎉",
        variables,
    )


def send_meeting_reminder(*, to: str, **details: Any) -> bool:
    variables = _meeting_variables(**details)
    return _send(
        "meeting_reminder",
        to,
        f"Reminder: Playdate with {variables['other_user_name']} tomorrow! ⏰",
        variables,
    )


def send_follow_up_email(
    *,
    to: str,
    user_name: str,
    user_dog_name: str,
    profile_views: int = 0,
    messages_received: int = 0,
    meetings_scheduled: int = 0,
    connections_made: int = 0,
) -> bool:
    return _send(
        "follow_up",
        to,
        "How's ShareSkippy going? - 1 Week Check-in 📅",
        {
            "user_name": user_name,
            "user_dog_name": user_dog_name,
            "profile_views": profile_views,
            "messages_received": messages_received,
            "meetings_scheduled": meetings_scheduled,
            "connections_made": connections_made,
        },
    )
