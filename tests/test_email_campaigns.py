"""Tests for the reminder and follow-up campaigns."""
from datetime import datetime, timedelta

from shareskippy import db
from shareskippy.errors import EmailError
from shareskippy.models import Meeting, MeetingStatus, Message, ProfileView, UserSettings
from shareskippy.services import email_campaigns

NOW = datetime(2026, 6, 10, 8, 0)


def add_meeting(requester, recipient, start, status=MeetingStatus.CONFIRMED, **fields):
    meeting = Meeting(
        requester_id=requester.id,
        recipient_id=recipient.id,
        title="Walk",
        meeting_place="Crissy Field",
        start_datetime=start,
        end_datetime=start + timedelta(hours=1),
        status=status,
        **fields,
    )
    db.session.add(meeting)
    db.session.commit()
    return meeting


def test_reminders_cover_confirmed_meetings_tomorrow(app, make_profile, outbox):
    a, b = make_profile(first_name="Ana"), make_profile(first_name="Ben")
    due = add_meeting(a, b, datetime(2026, 6, 11, 0, 0))
    add_meeting(a, b, datetime(2026, 6, 11, 23, 59), status=MeetingStatus.PENDING)
    add_meeting(a, b, datetime(2026, 6, 12, 0, 0))
    add_meeting(a, b, datetime(2026, 6, 10, 23, 0))

    result = email_campaigns.send_meeting_reminders(NOW)
    assert result == {
        "success": True,
        "message": "Meeting reminders processed",
        "emailsSent": 2,
        "meetingsProcessed": 1,
        "errors": None,
    }
    assert {email.to for email in outbox} == {a.email, b.email}
    assert all(email.subject.startswith("Reminder: Playdate with ") for email in outbox)
    assert db.session.get(Meeting, due.id).reminder_sent is True


def test_reminders_are_not_repeated(app, make_profile, outbox):
    a, b = make_profile(), make_profile()
    add_meeting(a, b, datetime(2026, 6, 11, 15, 0))
    email_campaigns.send_meeting_reminders(NOW)
    second = email_campaigns.send_meeting_reminders(NOW)
    assert second["meetingsProcessed"] == 0
    assert len(outbox) == 2


def test_reminders_skip_opted_out_participants(app, make_profile, outbox):
    a, quiet = make_profile(), make_profile(notifications=False)
    add_meeting(a, quiet, datetime(2026, 6, 11, 15, 0))
    result = email_campaigns.send_meeting_reminders(NOW)
    assert result["emailsSent"] == 1
    assert [email.to for email in outbox] == [a.email]


def test_reminder_failure_is_reported_and_others_continue(app, make_profile, monkeypatch):
    a, b, c = make_profile(), make_profile(), make_profile()
    failing = add_meeting(a, b, datetime(2026, 6, 11, 9, 0))
    add_meeting(a, c, datetime(2026, 6, 11, 10, 0))
    mailer = app.extensions["mailer"]
    real_send = mailer.send

    def flaky_send(to, **kwargs):
        if to == b.email:
            raise EmailError("mailbox unavailable")
        return real_send(to=to, **kwargs)

    monkeypatch.setattr(mailer, "send", flaky_send)
    result = email_campaigns.send_meeting_reminders(NOW)
    assert result["meetingsProcessed"] == 2
    assert result["errors"] == [{"meetingId": failing.id, "error": "mailbox unavailable"}]
    assert result["emailsSent"] == 3


def test_weekly_stats(app, make_profile):
    me, pal, other = make_profile(), make_profile(), make_profile()
    recent, old = NOW - timedelta(days=2), NOW - timedelta(days=9)
    db.session.add_all(
        [
            ProfileView(viewed_profile_id=me.id, viewer_id=pal.id, created_at=recent),
            ProfileView(viewed_profile_id=me.id, viewer_id=other.id, created_at=old),
            Message(sender_id=pal.id, recipient_id=me.id, content="hi", created_at=recent),
            Message(sender_id=pal.id, recipient_id=me.id, content="again", created_at=recent),
            Message(sender_id=me.id, recipient_id=other.id, content="hello", created_at=recent),
        ]
    )
    db.session.commit()
    add_meeting(pal, me, NOW + timedelta(days=3), created_at=recent)

    assert email_campaigns.weekly_stats(me.id, NOW) == {
        "profile_views": 1,
        "messages_received": 2,
        "meetings_scheduled": 1,
        "connections_made": 2,
    }


def test_follow_up_targets_members_who_joined_a_week_ago(app, make_profile, outbox):
    week_old = make_profile(first_name="Ana", dogs=["Rex"], created_at=datetime(2026, 6, 3, 14, 0))
    make_profile(created_at=datetime(2026, 6, 4, 0, 0))
    make_profile(created_at=datetime(2026, 6, 2, 23, 59))
    already = make_profile(created_at=datetime(2026, 6, 3, 9, 0))
    already.settings.follow_up_email_sent = True
    db.session.commit()

    result = email_campaigns.send_follow_up_emails(NOW)
    assert result["emailsSent"] == 1
    assert result["usersProcessed"] == 1
    assert result["errors"] is None
    (email,) = outbox
    assert email.to == week_old.email
    assert "Hey Ana," in email.text

    settings = UserSettings.query.filter_by(profile_id=week_old.id).one()
    assert settings.follow_up_email_sent is True
    assert settings.follow_up_email_sent_at == NOW

    assert email_campaigns.send_follow_up_emails(NOW)["usersProcessed"] == 0


def test_follow_up_creates_missing_settings_row(app, make_profile, outbox):
    profile = make_profile(created_at=datetime(2026, 6, 3, 14, 0))
    db.session.delete(profile.settings)
    db.session.commit()
    assert email_campaigns.send_follow_up_emails(NOW)["emailsSent"] == 1
    assert UserSettings.query.filter_by(profile_id=profile.id).one().follow_up_email_sent is True


def test_rerun_after_partial_failure_only_reminds_the_missing_participant(app, make_profile, outbox, monkeypatch):
    a, b = make_profile(), make_profile()
    meeting = add_meeting(a, b, datetime(2026, 6, 11, 9, 0))
    mailer = app.extensions["mailer"]
    real_send = mailer.send

    def refuse_b(to, **kwargs):
        if to == b.email:
            raise EmailError("mailbox unavailable")
        return real_send(to=to, **kwargs)

    monkeypatch.setattr(mailer, "send", refuse_b)
    first = email_campaigns.send_meeting_reminders(NOW)
    assert first["emailsSent"] == 1
    assert [email.to for email in outbox] == [a.email]
    stored = db.session.get(Meeting, meeting.id)
    assert stored.requester_reminded is True
    assert stored.recipient_reminded is False
    assert stored.reminder_sent is False

    monkeypatch.setattr(mailer, "send", real_send)
    second = email_campaigns.send_meeting_reminders(NOW)
    assert second["emailsSent"] == 1
    assert [email.to for email in outbox] == [a.email, b.email]
    assert db.session.get(Meeting, meeting.id).reminder_sent is True
