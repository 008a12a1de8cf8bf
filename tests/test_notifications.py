"""Notification job and dispatcher tests."""
from datetime import datetime

import pytest

from shareskippy import db
from shareskippy.errors import NotFoundError
from shareskippy.models import Meeting, MeetingStatus
from shareskippy.services import notifications
from shareskippy.services.notifications import NotificationDispatcher

START = datetime(2026, 6, 12, 17, 30)


def make_meeting(requester, recipient, **fields):
    values = dict(
        requester_id=requester.id,
        recipient_id=recipient.id,
        title="Park walk",
        meeting_place="Dolores Park",
        start_datetime=START,
        end_datetime=START.replace(hour=18, minute=30),
        status=MeetingStatus.CONFIRMED,
    )
    values.update(fields)
    meeting = Meeting(**values)
    db.session.add(meeting)
    db.session.commit()
    return meeting


def test_dispatcher_swallows_job_failures(app, caplog):
    calls = []

    def failing_job(value):
        calls.append(value)
        raise RuntimeError("boom")

    result = notifications.dispatch(failing_job, 7)
    assert result is None
    assert calls == [7]
    assert "failing_job" in caplog.text


def test_async_dispatcher_runs_job_in_app_context(app):
    dispatcher = NotificationDispatcher()
    app.config["NOTIFICATIONS_SYNC"] = False
    dispatcher.init_app(app)
    try:
        future = dispatcher.submit(lambda: app.config["APP_URL"])
        future.result(timeout=5)
    finally:
        dispatcher.shutdown()
    assert future.exception() is None


def test_meeting_confirmation_uses_participant_point_of_view(app, make_profile, outbox):
    maya = make_profile(first_name="Maya", last_name="Lopez", dogs=["Biscuit"])
    sam = make_profile(first_name="Sam", last_name="Okafor")
    meeting = make_meeting(sam, maya, description="Bring treats")

    assert notifications.send_meeting_scheduled(meeting.id, maya.id) == notifications.SENT
    (email,) = outbox
    assert email.to == maya.email
    assert email.subject == "Meeting Confirmed! Playdate with Sam Okafor 🎉"
    assert "Friday, June 12, 2026" in email.text
    assert "05:30 PM UTC" in email.text
    assert "Dolores Park" in email.text
    assert "their dog" in email.text
    assert f"https://shareskippy.test/meetings/{meeting.id}" in email.text


def test_meeting_confirmation_respects_settings(app, make_profile, outbox):
    quiet = make_profile(notifications=False)
    other = make_profile()
    meeting = make_meeting(other, quiet)
    assert notifications.send_meeting_scheduled(meeting.id, quiet.id) == notifications.DISABLED
    assert outbox == []


def test_meeting_confirmation_for_outsider_is_not_found(app, make_profile):
    a, b, c = make_profile(), make_profile(), make_profile()
    meeting = make_meeting(a, b)
    with pytest.raises(NotFoundError):
        notifications.send_meeting_scheduled(meeting.id, c.id)


def test_new_message_preview_is_truncated(app, make_profile, outbox):
    recipient = make_profile(first_name="Priya")
    sender = make_profile(first_name="leo", last_name="Schmidt")
    notifications.send_new_message(recipient.id, sender.id, "w" * 150, message_id=12)
    (email,) = outbox
    assert email.subject == "New message from leo Schmidt on ShareSkippy 💬"
    assert '"' + "w" * 100 + '..."' in email.text
    assert "https://shareskippy.test/messages/12" in email.text
    assert ">L<" in email.html


def test_new_message_unknown_sender(app, make_profile):
    recipient = make_profile()
    with pytest.raises(NotFoundError, match="Sender not found."):
        notifications.send_new_message(recipient.id, "missing", "hi")
