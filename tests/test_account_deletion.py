"""Account deletion request and sweep tests."""
from datetime import datetime, timedelta

from shareskippy import db
from shareskippy.models import (
    AccountDeletionRequest,
    AvailabilityPost,
    DeletedEmail,
    DeletionStatus,
    Dog,
    Meeting,
    MeetingStatus,
    Message,
    PostType,
    Profile,
    ProfileView,
    UserActivity,
    UserSettings,
)
from shareskippy.services import account_deletion
from shareskippy.util.timeutils import utcnow

NOW = datetime(2026, 8, 1, 3, 0)


def schedule(profile, when, reason=None):
    deletion = AccountDeletionRequest(
        profile_id=profile.id, reason=reason, requested_at=when - timedelta(days=30), scheduled_deletion_date=when
    )
    db.session.add(deletion)
    db.session.commit()
    return deletion


def test_request_and_cancel_deletion(client, make_profile, auth_headers):
    profile = make_profile()
    headers = auth_headers(profile)
    assert client.get("/api/account/deletion", headers=headers).status_code == 404

    created = client.post("/api/account/deletion", headers=headers, json={"reason": " Moving away "})
    assert created.status_code == 201
    body = created.get_json()
    assert body["status"] == "pending"
    assert body["reason"] == "Moving away"
    assert "error" not in body
    deletion = db.session.get(AccountDeletionRequest, body["id"])
    assert deletion.scheduled_deletion_date - deletion.requested_at == timedelta(days=30)

    assert client.post("/api/account/deletion", headers=headers, json={}).status_code == 409
    assert client.get("/api/account/deletion", headers=headers).get_json()["id"] == body["id"]

    cancelled = client.delete("/api/account/deletion", headers=headers)
    assert cancelled.get_json()["status"] == "cancelled"
    assert client.delete("/api/account/deletion", headers=headers).status_code == 404


def test_sweep_with_nothing_due(app, make_profile):
    schedule(make_profile(), NOW + timedelta(days=1))
    result = account_deletion.process_deletions(NOW)
    assert result == {
        "message": "No deletion requests ready for processing",
        "processedCount": 0,
        "timestamp": NOW.isoformat(),
    }


def test_sweep_deletes_profile_and_dependents(app, make_profile):
    leaving = make_profile(email="Leaving@Example.com", dogs=["Rex"], activity=[NOW])
    staying = make_profile()
    db.session.add_all(
        [
            Message(sender_id=leaving.id, recipient_id=staying.id, content="bye"),
            Meeting(
                requester_id=staying.id,
                recipient_id=leaving.id,
                title="Walk",
                meeting_place="Park",
                start_datetime=NOW,
                end_datetime=NOW + timedelta(hours=1),
                status=MeetingStatus.CONFIRMED,
            ),
        ]
    )
    db.session.commit()
    leaving_id = leaving.id
    deletion = schedule(leaving, NOW, reason="No longer have a dog")

    result = account_deletion.process_deletions(NOW)
    assert result["processedCount"] == 1
    assert result["processedUsers"] == [leaving_id]
    assert "errors" not in result

    assert db.session.get(Profile, leaving_id) is None
    assert db.session.get(Profile, staying.id) is not None
    assert Message.query.count() == 0
    assert Meeting.query.count() == 0
    tombstone = DeletedEmail.query.one()
    assert tombstone.email == "leaving@example.com"
    assert tombstone.deletion_reason == "No longer have a dog"
    assert db.session.get(AccountDeletionRequest, deletion.id).status is DeletionStatus.COMPLETED


def test_sweep_removes_every_dependent_row(app, make_profile):
    leaving = make_profile(dogs=["Rex", "Mochi"], activity=[NOW - timedelta(hours=n) for n in range(3)])
    staying = make_profile()
    leaving_id = leaving.id
    rows = []
    for n in range(3):
        start = NOW + timedelta(days=n)
        rows += [
            Message(sender_id=leaving_id, recipient_id=staying.id, content=f"out {n}"),
            Message(sender_id=staying.id, recipient_id=leaving_id, content=f"in {n}"),
            ProfileView(viewed_profile_id=leaving_id, viewer_id=staying.id),
            ProfileView(viewed_profile_id=staying.id, viewer_id=leaving_id),
            AvailabilityPost(owner_id=leaving_id, title=f"Post {n}", post_type=PostType.DOG_AVAILABLE),
        ]
        for requester, recipient in ((leaving, staying), (staying, leaving)):
            rows.append(
                Meeting(
                    requester_id=requester.id,
                    recipient_id=recipient.id,
                    title="Walk",
                    meeting_place="Park",
                    start_datetime=start,
                    end_datetime=start + timedelta(hours=1),
                )
            )
    db.session.add_all(rows)
    db.session.commit()
    schedule(leaving, NOW)

    result = account_deletion.process_deletions(NOW)
    assert result["processedUsers"] == [leaving_id]

    assert Message.query.count() == 0
    assert Meeting.query.count() == 0
    assert ProfileView.query.count() == 0
    assert AvailabilityPost.query.count() == 0
    assert Dog.query.filter_by(owner_id=leaving_id).count() == 0
    assert UserActivity.query.filter_by(profile_id=leaving_id).count() == 0
    assert UserSettings.query.filter_by(profile_id=leaving_id).count() == 0
    assert db.session.get(Profile, staying.id).settings is not None


def test_sweep_continues_after_a_failure(app, make_profile, monkeypatch):
    first, broken, last = make_profile(), make_profile(), make_profile()
    for profile in (first, broken, last):
        schedule(profile, NOW - timedelta(minutes=1))
    broken_id = broken.id
    real_delete = account_deletion._delete_profile

    def flaky_delete(deletion, now):
        if deletion.profile_id == broken_id:
            raise RuntimeError("constraint violated")
        real_delete(deletion, now)

    monkeypatch.setattr(account_deletion, "_delete_profile", flaky_delete)
    result = account_deletion.process_deletions(NOW)

    assert result["processedCount"] == 2
    assert result["errors"] == [{"userId": broken_id, "error": "constraint violated"}]
    failed = AccountDeletionRequest.query.filter_by(profile_id=broken_id).one()
    assert failed.status is DeletionStatus.FAILED
    assert failed.error == "constraint violated"
    assert db.session.get(Profile, broken_id) is not None
    assert Profile.query.count() == 1


def test_deleted_email_cannot_register_again(client, make_profile):
    profile = make_profile(email="gone@example.com")
    schedule(profile, utcnow() - timedelta(seconds=1))
    account_deletion.process_deletions()
    response = client.post(
        "/api/register", json={"email": "gone@example.com", "password": "password123", "first_name": "Again"}
    )
    assert response.status_code == 403


def test_deletion_status(app, make_profile):
    schedule(make_profile(), NOW - timedelta(days=1))
    schedule(make_profile(), NOW + timedelta(days=1))
    assert account_deletion.deletion_status(NOW) == {
        "status": "healthy",
        "pendingDeletions": 2,
        "readyForProcessing": 1,
        "timestamp": NOW.isoformat(),
    }
